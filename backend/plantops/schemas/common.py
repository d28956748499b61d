"""Common schemas used across the application."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ListResponse(BaseModel, Generic[T]):
    """Generic list wrapper.

    Usage:
        response_model=ListResponse[dict]

    Returns:
        {
            "items": [...],
            "total": 150
        }
    """
    items: list[T]
    total: int


class CapabilitiesOut(BaseModel):
    can_add: bool
    can_edit_direct: bool
    can_delete_direct: bool
    needs_approval_for_edit: bool
    needs_approval_for_delete: bool
    is_view_only: bool
    can_view_users_page: bool
    can_view_rkap_page: bool
    can_view_settings: bool
    can_view_all_plants: bool

    model_config = {"from_attributes": True}


class ActorOut(BaseModel):
    username: str
    display_name: str
    role: str
    plant: str | None
    capabilities: CapabilitiesOut

    model_config = {"from_attributes": True}

