"""Plant partitioning: one logical entity name, one physical partition per plant.

Key components:
  - PlantRouter              maps (entity, plant) -> partition name
  - validate_entity_name()   prevents arbitrary partition names from requests
  - PLANT_SCOPED_ENTITIES    entities that live in per-plant partitions
  - SHARED_ENTITIES          entities kept in a single unrouted partition

Naming convention (load-bearing, existing sheets depend on it):
  base plant    -> "<entity>"            e.g. downtime
  other plants  -> "<entity>_<PLANT>"    e.g. downtime_NPK1
"""

from __future__ import annotations

import re

from plantops.config import settings

# Plant value carried by actors who are not tied to a single plant.
ALL_PLANTS = "ALL"

# Key under which every routed record carries its plant tag.
PLANT_FIELD = "_plant"


# ── Entity registry ─────────────────────────────────────────

PLANT_SCOPED_ENTITIES: frozenset[str] = frozenset({
    "produksi_npk",
    "produksi_blending",
    "produksi_npk_mini",
    "timesheet_forklift",
    "timesheet_loader",
    "downtime",
    "workrequest",
    "bahanbaku",
    "vibrasi",
    "gatepass",
    "perta",
    "perbaikan_tahunan",
    "trouble_record",
    "kop",
})

SHARED_ENTITIES: frozenset[str] = frozenset({
    "users",
    "sessions",
    "approval_requests",
    "monthly_notes",
    "notifications",
    "akun",
    "rkap",
    "dokumentasi_foto",
})


_ENTITY_RE = re.compile(r"^[a-z][a-z0-9_]{0,62}$")


def validate_entity_name(entity: str) -> str:
    """Ensure an entity name is safe to use as a partition base name."""
    if not _ENTITY_RE.match(entity or ""):
        raise ValueError(f"Invalid entity name: {entity!r}")
    return entity


# Sheet keys the legacy front end stores in approval rows (`targetSheet: "DOWNTIME"`).
LEGACY_SHEET_KEYS: dict[str, str] = {
    **{name.upper(): name for name in PLANT_SCOPED_ENTITIES | SHARED_ENTITIES},
    "WORK_REQUEST": "workrequest",
    "BAHAN_BAKU": "bahanbaku",
    "GATE_PASS": "gatepass",
}


def _sheet_name(key: str) -> str:
    if key in PLANT_SCOPED_ENTITIES or key in SHARED_ENTITIES:
        return key
    return LEGACY_SHEET_KEYS.get(key.upper(), key.lower())


def entity_from_sheet_key(value: str, plants: list[str] | None = None) -> tuple[str, str | None]:
    """Map a stored sheet reference to (entity, plant named by a suffix).

    Accepts entity names ("downtime"), legacy sheet keys ("DOWNTIME",
    "WORK_REQUEST") and keys carrying a plant suffix ("PRODUKSI_NPK_NPK1").
    Anything unrecognised comes back lowercased for validation to reject.
    """
    plants = settings.plant_list if plants is None else plants
    name = _sheet_name(value)
    if name in PLANT_SCOPED_ENTITIES or name in SHARED_ENTITIES:
        return name, None

    for plant in plants:
        suffix = f"_{plant}".upper()
        if value.upper().endswith(suffix):
            base = _sheet_name(value[: -len(suffix)])
            if base in PLANT_SCOPED_ENTITIES:
                return base, plant
    return name, None


def is_plant_scoped(entity: str) -> bool:
    return entity in PLANT_SCOPED_ENTITIES


def is_unrestricted(plant: str | None) -> bool:
    """True for actors not bound to one plant (no plant, or ALL)."""
    return plant is None or plant == ALL_PLANTS


# ── Routing ─────────────────────────────────────────────────

class PlantRouter:
    """Single owner of the entity/plant -> partition naming convention."""

    def __init__(self, plants: list[str] | tuple[str, ...], base_plant: str):
        if not plants:
            raise ValueError("At least one plant is required")
        if base_plant not in plants:
            raise ValueError(f"Base plant {base_plant!r} is not one of {list(plants)}")
        if ALL_PLANTS in plants:
            raise ValueError(f"{ALL_PLANTS!r} is reserved and cannot name a plant")
        self.plants: tuple[str, ...] = tuple(plants)
        self.base_plant = base_plant

    @classmethod
    def from_settings(cls) -> "PlantRouter":
        return cls(settings.plant_list, settings.base_plant)

    def validate_plant(self, plant: str | None) -> str:
        if plant not in self.plants:
            raise ValueError(
                f"Unknown plant {plant!r}. Must be one of: {', '.join(self.plants)}"
            )
        return plant

    def route(self, entity: str, plant: str | None) -> str:
        validate_entity_name(entity)
        self.validate_plant(plant)
        if plant == self.base_plant:
            return entity
        return f"{entity}_{plant}"

    def partitions(self, entity: str) -> list[tuple[str, str]]:
        """Return (plant, partition) for every known plant, in plant order."""
        return [(plant, self.route(entity, plant)) for plant in self.plants]
