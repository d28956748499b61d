"""Pydantic schemas for plant-routed record endpoints.

Record bodies are open field bags: business fields pass through untouched.
The plant tag travels as `_plant` inside the record.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from plantops.schemas.approval import PendingRequestOut


class RecordEdit(BaseModel):
    """Proposed new state of an existing record."""

    data: dict[str, Any] = Field(default_factory=dict)
    plant: str | None = None
    reason: str | None = None


class MutationResponse(BaseModel):
    """`applied` carries the authoritative record; `pending` the approval request."""

    status: Literal["applied", "pending"]
    record: dict[str, Any] | None = None
    request: PendingRequestOut | None = None
