"""Role capability table and permission evaluation for PlantOps.

Design:
  - Each role maps to a fixed Capabilities record (defined here, not in the
    data service). Unknown roles get the most restrictive record.
  - `evaluate(role, plant)` computes the effective capabilities for an actor.
    Plant only refines page visibility: the users page and the cross-plant
    view are reserved for actors not bound to a single plant.
  - Capabilities are computed once per request (see auth/deps.py) and passed
    along explicitly instead of re-deriving them at each call site.

Mutation policy:
  create  -> direct when can_add, else forbidden
  edit    -> direct when can_edit_direct, approval when needs_approval_for_edit
  delete  -> direct when can_delete_direct, approval when needs_approval_for_delete
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

from plantops.plants import is_unrestricted


class Role(str, enum.Enum):
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    AVP = "avp"
    MANAGER = "manager"
    USER = "user"
    EKSTERNAL = "eksternal"


class MutationAction(str, enum.Enum):
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class MutationPolicy(str, enum.Enum):
    DIRECT = "direct"
    APPROVAL_REQUIRED = "approval_required"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Capabilities:
    can_add: bool = False
    can_edit_direct: bool = False
    can_delete_direct: bool = False
    needs_approval_for_edit: bool = False
    needs_approval_for_delete: bool = False
    is_view_only: bool = True
    can_view_users_page: bool = False
    can_view_rkap_page: bool = False
    can_view_settings: bool = False
    can_view_all_plants: bool = False


# ── Role → capabilities ─────────────────────────────────────

_DIRECT_WRITER = Capabilities(
    can_add=True,
    can_edit_direct=True,
    can_delete_direct=True,
    is_view_only=False,
    can_view_rkap_page=True,
    can_view_settings=True,
)

_READ_ONLY = Capabilities(is_view_only=True, can_view_all_plants=True)

# Most restrictive record, used for unknown roles.
RESTRICTED = Capabilities()

ROLE_CAPABILITIES: dict[str, Capabilities] = {
    Role.ADMIN.value: replace(
        _DIRECT_WRITER, can_view_users_page=True, can_view_all_plants=True
    ),
    Role.SUPERVISOR.value: _DIRECT_WRITER,
    Role.AVP.value: _DIRECT_WRITER,
    Role.USER.value: Capabilities(
        can_add=True,
        needs_approval_for_edit=True,
        needs_approval_for_delete=True,
        is_view_only=False,
    ),
    Role.MANAGER.value: _READ_ONLY,
    Role.EKSTERNAL.value: _READ_ONLY,
}


# ── Evaluation ──────────────────────────────────────────────

def evaluate(role: str | None, plant: str | None = None) -> Capabilities:
    """Compute the effective capabilities for (role, plant).

    1. Start with the role's table entry (RESTRICTED for unknown roles).
    2. An admin bound to one plant keeps everything except the users page
       and the cross-plant view.
    """
    caps = ROLE_CAPABILITIES.get(role or "", RESTRICTED)

    if role == Role.ADMIN.value and not is_unrestricted(plant):
        caps = replace(caps, can_view_users_page=False, can_view_all_plants=False)

    return caps


@dataclass(frozen=True)
class Actor:
    """The caller of a core operation. Capabilities are fixed at construction."""
    role: str
    plant: str | None = None
    display_name: str = ""
    username: str = ""
    capabilities: Capabilities = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "capabilities", evaluate(self.role, self.plant))

    @property
    def name(self) -> str:
        return self.display_name or self.username or self.role


def classify_mutation(caps: Capabilities, action: MutationAction | str) -> MutationPolicy:
    """Decide whether a mutation is applied now, deferred, or refused."""
    action = MutationAction(action)

    if action is MutationAction.CREATE:
        return MutationPolicy.DIRECT if caps.can_add else MutationPolicy.FORBIDDEN

    if action is MutationAction.EDIT:
        direct, gated = caps.can_edit_direct, caps.needs_approval_for_edit
    else:
        direct, gated = caps.can_delete_direct, caps.needs_approval_for_delete

    if direct:
        return MutationPolicy.DIRECT
    if gated:
        return MutationPolicy.APPROVAL_REQUIRED
    return MutationPolicy.FORBIDDEN


def can_review(caps: Capabilities, action: MutationAction | str) -> bool:
    """Review authority for a pending request of the given action.

    There is no separate reviewer role: whoever may apply the action
    directly may approve or reject it.
    """
    action = MutationAction(action)
    if action is MutationAction.EDIT:
        return caps.can_edit_direct
    if action is MutationAction.DELETE:
        return caps.can_delete_direct
    return False


# ── Single-answer helpers ───────────────────────────────────

def can_add(role: str) -> bool:
    return evaluate(role).can_add


def can_edit_direct(role: str) -> bool:
    return evaluate(role).can_edit_direct


def can_delete_direct(role: str) -> bool:
    return evaluate(role).can_delete_direct


def needs_approval_for_edit(role: str) -> bool:
    return evaluate(role).needs_approval_for_edit


def needs_approval_for_delete(role: str) -> bool:
    return evaluate(role).needs_approval_for_delete


def is_view_only(role: str) -> bool:
    return evaluate(role).is_view_only


def can_view_users_page(role: str, plant: str | None = None) -> bool:
    return evaluate(role, plant).can_view_users_page


def can_view_rkap_page(role: str, plant: str | None = None) -> bool:
    return evaluate(role, plant).can_view_rkap_page


def can_view_settings(role: str, plant: str | None = None) -> bool:
    return evaluate(role, plant).can_view_settings
