"""Management CLI for plant partitions and the approval queue.

Usage:
    python -m plantops.cli routes <entity>                       # Partition per plant
    python -m plantops.cli pending                               # Pending approval requests
    python -m plantops.cli issue-token <user> <role> [plant]     # Dev bearer token
"""

import asyncio
import sys

from plantops.auth.jwt import create_access_token
from plantops.plants import PlantRouter
from plantops.services.lifespan import build_services


def show_routes(entity: str):
    router = PlantRouter.from_settings()
    for plant, partition in router.partitions(entity):
        marker = " (base)" if plant == router.base_plant else ""
        print(f"  {plant:<8} -> {partition}{marker}")


async def _pending() -> int:
    store, workflow = await build_services()
    try:
        result = await workflow.list("pending")
    finally:
        await store.service.aclose()

    if not result.ok:
        print(f"  FAILED ({result.kind.value}): {result.error}")
        return 1

    for r in result.data:
        print(
            f"  {r.id}  {r.action_type:<6} {r.target_entity_type}/{r.target_id}"
            f" [{r.target_plant}]  by {r.requested_by} at {r.requested_at}"
        )
        print(f"      reason: {r.reason}")
    print(f"\n{len(result.data)} pending request(s)")
    return 0


def list_pending() -> int:
    return asyncio.run(_pending())


def issue_token(username: str, role: str, plant: str | None = None):
    print(create_access_token(username=username, role=role, plant=plant))


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    args = sys.argv[2:]
    if cmd == "routes" and args:
        show_routes(args[0])
    elif cmd == "pending":
        sys.exit(list_pending())
    elif cmd == "issue-token" and len(args) >= 2:
        issue_token(*args[:3])
    else:
        print("Usage: python -m plantops.cli [routes <entity>|pending|issue-token <user> <role> [plant]]")
