"""Pytest configuration and fixtures for PlantOps tests.

Provides an in-memory data service, the routed store and approval workflow
built on it, a set of actors covering every role, and an HTTP client
wired to the same services.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from plantops.auth.deps import get_store, get_workflow
from plantops.auth.jwt import create_access_token
from plantops.auth.permissions import Actor
from plantops.main import app
from plantops.plants import PlantRouter
from plantops.services.approval import ApprovalWorkflow
from plantops.services.data_service import InMemoryDataService
from plantops.services.record_store import PlantRoutedRecordStore


# ── Core service fixtures ────────────────────────────────────────

@pytest.fixture
def data_service() -> InMemoryDataService:
    return InMemoryDataService()


@pytest.fixture
def plant_router() -> PlantRouter:
    return PlantRouter(["NPK2", "NPK1"], base_plant="NPK2")


@pytest.fixture
def store(data_service, plant_router) -> PlantRoutedRecordStore:
    return PlantRoutedRecordStore(data_service, plant_router)


@pytest.fixture
def clock():
    """Monotonic ISO timestamps so newest-first ordering is deterministic."""
    ticks = iter(range(1, 10_000))
    return lambda: f"2026-01-01T00:00:{next(ticks):05d}+00:00"


@pytest.fixture
def workflow(store, clock) -> ApprovalWorkflow:
    return ApprovalWorkflow(store, partition="approval_requests", clock=clock)


# ── Actor fixtures ───────────────────────────────────────────────

@pytest.fixture
def admin() -> Actor:
    return Actor(role="admin", plant="ALL", display_name="admin", username="admin")


@pytest.fixture
def supervisor() -> Actor:
    return Actor(role="supervisor", plant="NPK1", display_name="Budi", username="budi")


@pytest.fixture
def operator() -> Actor:
    """A `user`-role actor at NPK1: edits and deletes need approval."""
    return Actor(role="user", plant="NPK1", display_name="Sari", username="sari")


@pytest.fixture
def manager() -> Actor:
    return Actor(role="manager", plant="ALL", display_name="Rina", username="rina")


@pytest.fixture
def seeded(data_service) -> InMemoryDataService:
    """One downtime record per plant."""
    data_service.partitions["downtime"] = [
        {"id": "r2", "tanggal": "2026-01-02", "item": "Dryer", "_plant": "NPK1"},
    ]
    data_service.partitions["downtime_NPK1"] = [
        {"id": "r1", "tanggal": "2026-01-05", "item": "Granulator", "field": "X"},
    ]
    return data_service


# ── HTTP fixtures ────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(store, workflow) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the service dependencies overridden."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_workflow] = lambda: workflow

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers(actor: Actor) -> dict:
    token = create_access_token(
        username=actor.username,
        role=actor.role,
        plant=actor.plant,
        display_name=actor.display_name,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "store: Record store tests")
    config.addinivalue_line("markers", "approval: Approval workflow tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
