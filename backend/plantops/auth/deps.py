"""FastAPI dependencies for the current actor and core services.

Dependencies:
  get_current_actor        → decode the bearer JWT into an Actor
  get_store / get_workflow → collaborators built at startup (services/lifespan.py)
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from plantops.auth.jwt import decode_token
from plantops.auth.permissions import Actor
from plantops.services.approval import ApprovalWorkflow
from plantops.services.record_store import PlantRoutedRecordStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ── Core actor dependency ───────────────────────────────────

async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """Decode the JWT and build the request's Actor.

    Capabilities are evaluated once here and travel with the Actor.
    """
    payload = decode_token(token)
    username: str | None = payload.get("sub")
    if not username or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Actor(
        role=payload.get("role") or "",
        plant=payload.get("plant"),
        display_name=payload.get("name") or username,
        username=username,
    )


# ── Service dependencies ────────────────────────────────────

def get_store(request: Request) -> PlantRoutedRecordStore:
    return request.app.state.store


def get_workflow(request: Request) -> ApprovalWorkflow:
    return request.app.state.workflow
