"""Plant-routed record store.

One logical entity name, N physical partitions (one per plant). Reads fan
out to every partition and tag each record with its source plant; writes
go to exactly one partition chosen by the record's plant tag.

Every operation returns a StoreResult instead of raising: callers branch
on `kind` (ok / transport_error / business_error).
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any

from plantops.plants import PLANT_FIELD, PlantRouter, validate_entity_name
from plantops.services.data_service import RemoteDataService, TransportError

logger = logging.getLogger("plantops.store")


class ResultKind(str, enum.Enum):
    OK = "ok"
    TRANSPORT_ERROR = "transport_error"
    BUSINESS_ERROR = "business_error"


@dataclass
class StoreResult:
    kind: ResultKind
    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.OK

    @classmethod
    def success(cls, data: Any = None) -> "StoreResult":
        return cls(ResultKind.OK, data=data)

    @classmethod
    def transport(cls, error: str) -> "StoreResult":
        return cls(ResultKind.TRANSPORT_ERROR, error=error)

    @classmethod
    def rejected(cls, error: str | None) -> "StoreResult":
        return cls(ResultKind.BUSINESS_ERROR, error=error or "Unknown error")


def _tag(records: list[dict], plant: str) -> list[dict]:
    return [{**r, PLANT_FIELD: plant} for r in records]


def sort_newest_first(records: list[dict], key: str = "tanggal") -> list[dict]:
    """Stable newest-first ordering; records without `key` go last."""
    dated = [r for r in records if r.get(key)]
    undated = [r for r in records if not r.get(key)]
    return sorted(dated, key=lambda r: str(r[key]), reverse=True) + undated


class PlantRoutedRecordStore:
    def __init__(self, service: RemoteDataService, router: PlantRouter):
        self.service = service
        self.router = router

    def route(self, entity: str, plant: str | None) -> str:
        return self.router.route(entity, plant)

    # ── Reads ───────────────────────────────────────────────

    async def _read_partition(self, partition: str) -> StoreResult:
        try:
            response = await self.service.read(partition)
        except TransportError as e:
            return StoreResult.transport(str(e))
        if not response.success:
            return StoreResult.rejected(response.error)
        return StoreResult.success(list(response.records or []))

    async def read_all(self, entity: str) -> StoreResult:
        """Merge every plant's partition; a failing partition contributes nothing."""
        targets = self.router.partitions(entity)
        results = await asyncio.gather(
            *(self._read_partition(partition) for _, partition in targets)
        )

        merged: list[dict] = []
        for (plant, partition), result in zip(targets, results):
            if not result.ok:
                logger.warning(
                    "Partition %s unavailable, skipping: %s",
                    partition,
                    result.error,
                    extra={"partition": partition, "plant": plant, "kind": result.kind.value},
                )
                continue
            merged.extend(_tag(result.data, plant))

        return StoreResult.success(merged)

    async def read_plant(self, entity: str, plant: str) -> StoreResult:
        result = await self._read_partition(self.route(entity, plant))
        if result.ok:
            result.data = _tag(result.data, plant)
        return result

    async def read_shared(self, name: str) -> StoreResult:
        """Read an unrouted partition (approval queue, users, rkap, ...)."""
        return await self._read_partition(validate_entity_name(name))

    # ── Writes ──────────────────────────────────────────────

    async def _write(self, partition: str, operation: str, payload: dict) -> StoreResult:
        try:
            response = await self.service.write(partition, operation, payload)
        except TransportError as e:
            logger.error(
                "%s on %s failed: %s", operation, partition, e,
                extra={"partition": partition, "operation": operation},
            )
            return StoreResult.transport(str(e))
        if not response.success:
            return StoreResult.rejected(response.error)
        return StoreResult.success(response.record)

    async def create(self, entity: str, record: dict) -> StoreResult:
        plant = record.get(PLANT_FIELD)
        result = await self._write(self.route(entity, plant), "create", record)
        if result.ok:
            result.data = {**record, **(result.data or {}), PLANT_FIELD: plant}
        return result

    async def update(self, entity: str, record: dict) -> StoreResult:
        plant = record.get(PLANT_FIELD)
        result = await self._write(self.route(entity, plant), "update", record)
        if result.ok:
            result.data = {**record, **(result.data or {}), PLANT_FIELD: plant}
        return result

    async def delete(self, entity: str, record_id: str, plant: str) -> StoreResult:
        result = await self._write(self.route(entity, plant), "delete", {"id": record_id})
        if result.ok:
            result.data = {"id": record_id, PLANT_FIELD: plant}
        return result

    async def create_shared(self, name: str, record: dict) -> StoreResult:
        result = await self._write(validate_entity_name(name), "create", record)
        if result.ok:
            result.data = {**record, **(result.data or {})}
        return result

    async def update_shared(self, name: str, record: dict) -> StoreResult:
        result = await self._write(validate_entity_name(name), "update", record)
        if result.ok:
            result.data = {**record, **(result.data or {})}
        return result
