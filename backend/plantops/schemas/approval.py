"""Pydantic schemas for approval requests.

PendingRequest is both the in-process model and, through to_row/from_row,
the row format of the shared approval partition. Rows use camelCase keys
and store targetData as a JSON string, the format the existing front end
already writes.
"""

import enum
import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from plantops.plants import PLANT_FIELD, entity_from_sheet_key


def load_target_data(v) -> dict:
    if v is None or v == "":
        return {}
    if isinstance(v, str):
        return json.loads(v)
    return v


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PendingRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str | None = None
    action_type: Literal["edit", "delete"]
    target_entity_type: str
    target_id: str
    target_data: dict[str, Any] = Field(default_factory=dict)
    target_plant: str
    reason: str
    requested_by: str
    requested_by_role: str
    requested_by_plant: str | None = None
    status: ApprovalStatus = ApprovalStatus.PENDING
    requested_at: str
    resolved_at: str | None = None
    resolved_by: str | None = None
    review_notes: str | None = None

    @field_validator("id", "target_id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        # Sheet rows come back with numeric ids.
        return None if v is None or v == "" else str(v)

    @field_validator("target_data", mode="before")
    @classmethod
    def _parse_target_data(cls, v):
        return load_target_data(v)

    @property
    def is_pending(self) -> bool:
        return self.status is ApprovalStatus.PENDING

    def to_row(self) -> dict:
        row = self.model_dump(by_alias=True, mode="json", exclude_none=True)
        row["targetData"] = json.dumps(self.target_data)
        row["targetSheet"] = self.target_entity_type
        return row

    @classmethod
    def from_row(cls, row: dict) -> "PendingRequest":
        data = dict(row)
        sheet_plant = None
        if "targetEntityType" not in data and data.get("targetSheet"):
            data["targetEntityType"], sheet_plant = entity_from_sheet_key(str(data["targetSheet"]))
        if "targetPlant" not in data:
            snapshot = load_target_data(data.get("targetData"))
            data["targetPlant"] = (
                snapshot.get(PLANT_FIELD) or sheet_plant or data.get("requestedByPlant")
            )
        return cls.model_validate(data)


# ── API schemas ─────────────────────────────────────────────

class DecisionBody(BaseModel):
    notes: str | None = None


class PendingRequestOut(BaseModel):
    id: str | None
    action_type: str
    target_entity_type: str
    target_id: str
    target_data: dict[str, Any]
    target_plant: str
    reason: str
    requested_by: str
    requested_by_role: str
    requested_by_plant: str | None
    status: ApprovalStatus
    requested_at: str
    resolved_at: str | None
    resolved_by: str | None
    review_notes: str | None

    model_config = {"from_attributes": True}


class ApprovalListResponse(BaseModel):
    items: list[PendingRequestOut]
    total: int
    pending_count: int


class DecisionResult(BaseModel):
    request: PendingRequestOut
    record: dict[str, Any] | None = None
