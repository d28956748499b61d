"""Approval workflow — gate edits and deletes behind a review step.

Flow:
  request_mutation(actor, action, ...)
      direct            -> applied to the record store immediately
      approval required -> submit(): a PendingRequest row in the approval partition
      forbidden         -> refused before any store call
  decide(reviewer, request_id, approve|reject)
      approve -> replay the captured mutation through the same store call
                 the direct path uses, then mark the request approved
      reject  -> mark the request rejected, no mutation

State machine per request: pending -> approved | rejected, both terminal.
A request is only marked approved after its replay succeeded; a failed
replay leaves it pending so a reviewer can retry. A retried delete whose
record is already gone counts as applied.

Plant-bound actors (no cross-plant view) only mutate their own plant.

Nothing here raises for expected failures. Every operation returns a
WorkflowResult and the caller branches on `outcome`.

Applied mutations and decisions leave a row in the notification partition.
That write is best effort: a failure is logged and never changes the outcome.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError

from plantops.auth.permissions import (
    Actor,
    MutationAction,
    MutationPolicy,
    can_review,
    classify_mutation,
)
from plantops.config import settings
from plantops.plants import PLANT_FIELD, is_unrestricted, validate_entity_name
from plantops.schemas.approval import ApprovalStatus, PendingRequest
from plantops.services.record_store import (
    PlantRoutedRecordStore,
    ResultKind,
    StoreResult,
    sort_newest_first,
)
from plantops.utils.locks import InProcessDecisionLock

logger = logging.getLogger("plantops.approval")


class Decision(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class WorkflowOutcome(str, enum.Enum):
    APPLIED = "applied"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    VALIDATION_ERROR = "validation_error"
    AUTHORIZATION_ERROR = "authorization_error"
    NOT_FOUND = "not_found"
    STORE_ERROR = "store_error"
    NOT_RECORDED = "not_recorded"
    REPLAY_FAILED = "replay_failed"
    STATUS_NOT_RECORDED = "status_not_recorded"


_APPLIED_VERBS = {
    MutationAction.CREATE: "baru ditambahkan",
    MutationAction.EDIT: "telah diupdate",
    MutationAction.DELETE: "telah dihapus",
}

_SUCCESS = {
    WorkflowOutcome.APPLIED,
    WorkflowOutcome.PENDING,
    WorkflowOutcome.APPROVED,
    WorkflowOutcome.REJECTED,
}


@dataclass
class WorkflowResult:
    outcome: WorkflowOutcome
    request: PendingRequest | None = None
    record: dict | None = None
    error: str | None = None
    error_kind: ResultKind | None = None
    # Distinguishes validation failures that share an outcome ("not_pending", ...).
    code: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in _SUCCESS


def _invalid(message: str, code: str = "invalid") -> WorkflowResult:
    return WorkflowResult(WorkflowOutcome.VALIDATION_ERROR, error=message, code=code)


def _denied(message: str) -> WorkflowResult:
    return WorkflowResult(WorkflowOutcome.AUTHORIZATION_ERROR, error=message)


def _from_store(outcome: WorkflowOutcome, result: StoreResult, **kwargs) -> WorkflowResult:
    return WorkflowResult(outcome, error=result.error, error_kind=result.kind, **kwargs)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class ApprovalWorkflow:
    def __init__(
        self,
        store: PlantRoutedRecordStore,
        lock=None,
        partition: str | None = None,
        clock: Callable[[], str] = _utcnow,
        notification_partition: str | None = None,
    ):
        self.store = store
        self.lock = lock or InProcessDecisionLock()
        self.partition = partition or settings.approval_partition
        self.notification_partition = notification_partition or settings.notification_partition
        self.clock = clock

    # ── Shared mutation path ────────────────────────────────

    async def _apply(
        self,
        action: MutationAction,
        entity: str,
        *,
        data: dict | None = None,
        record_id: str | None = None,
        plant: str | None = None,
    ) -> StoreResult:
        """The one place a record mutation reaches the store."""
        if action is MutationAction.CREATE:
            return await self.store.create(entity, data)
        if action is MutationAction.EDIT:
            return await self.store.update(entity, data)
        return await self.store.delete(entity, record_id, plant)

    def _resolve_target(
        self, action: MutationAction, entity: str, target: dict | str, plant: str | None
    ) -> tuple[dict | None, str | None, str]:
        """Normalize a record-or-id argument to (data, record_id, plant).

        Raises ValueError for a target the action cannot be applied to.
        """
        validate_entity_name(entity)
        if isinstance(target, dict):
            data = dict(target)
            plant = data.get(PLANT_FIELD) or plant
            self.store.router.validate_plant(plant)
            data[PLANT_FIELD] = plant
            record_id = data.get("id")
            if action is not MutationAction.CREATE and not record_id:
                raise ValueError(f"{action.value} requires a record id")
            return data, (str(record_id) if record_id else None), plant

        if action is not MutationAction.DELETE:
            raise ValueError(f"{action.value} requires the record's field data, not only its id")
        if not target:
            raise ValueError("delete requires a record id")
        self.store.router.validate_plant(plant)
        return None, str(target), plant

    @staticmethod
    def _outside_plant(actor: Actor, plant: str) -> WorkflowResult | None:
        """Plant-bound actors only write to their own plant's partitions."""
        if actor.capabilities.can_view_all_plants or is_unrestricted(actor.plant):
            return None
        if plant == actor.plant:
            return None
        return _denied(f"{actor.name} is bound to plant {actor.plant} and may not change {plant} records")

    async def _notify(self, actor: Actor, message: str, plant: str | None, to_user: str = "ALL") -> None:
        row = {
            "message": message,
            "timestamp": self.clock(),
            "read": False,
            "fromUser": actor.username or actor.name,
            "fromPlant": plant or actor.plant or "",
            "toUser": to_user,
        }
        result = await self.store.create_shared(self.notification_partition, row)
        if not result.ok:
            logger.warning(
                "Notification not sent: %s", result.error,
                extra={"kind": result.kind.value, "to_user": to_user},
            )

    async def request_mutation(
        self,
        actor: Actor,
        action: MutationAction | str,
        entity: str,
        target: dict | str,
        reason: str | None = None,
        plant: str | None = None,
    ) -> WorkflowResult:
        """Apply, defer, or refuse a mutation according to the actor's capabilities."""
        try:
            action = MutationAction(action)
        except ValueError:
            return _invalid(f"Unknown action {action!r}")

        policy = classify_mutation(actor.capabilities, action)

        if policy is MutationPolicy.FORBIDDEN:
            logger.info(
                "Refused %s on %s for role %s", action.value, entity, actor.role,
                extra={"actor": actor.name, "role": actor.role},
            )
            return _denied(f"Role {actor.role!r} may not {action.value} {entity} records")

        if policy is MutationPolicy.APPROVAL_REQUIRED:
            return await self.submit(actor, action, entity, target, reason, plant=plant)

        try:
            data, record_id, plant = self._resolve_target(action, entity, target, plant)
        except ValueError as e:
            return _invalid(str(e))
        refused = self._outside_plant(actor, plant)
        if refused:
            return refused

        result = await self._apply(action, entity, data=data, record_id=record_id, plant=plant)
        if not result.ok:
            return _from_store(WorkflowOutcome.STORE_ERROR, result)

        verb = _APPLIED_VERBS[action]
        await self._notify(actor, f"Data {entity} ({plant}) {verb} oleh {actor.name}", plant)
        return WorkflowResult(WorkflowOutcome.APPLIED, record=result.data)

    # ── Submit ──────────────────────────────────────────────

    async def submit(
        self,
        actor: Actor,
        action: MutationAction | str,
        entity: str,
        target: dict | str,
        reason: str | None,
        plant: str | None = None,
    ) -> WorkflowResult:
        """Record a gated edit/delete as a pending request."""
        try:
            action = MutationAction(action)
        except ValueError:
            return _invalid(f"Unknown action {action!r}")
        if action is MutationAction.CREATE:
            return _invalid("Create is never gated; add the record directly")

        caps = actor.capabilities
        gated = caps.needs_approval_for_edit if action is MutationAction.EDIT else caps.needs_approval_for_delete
        if not gated:
            if classify_mutation(caps, action) is MutationPolicy.DIRECT:
                return _invalid(
                    f"Role {actor.role!r} can {action.value} directly; no approval needed",
                    code="direct_capability",
                )
            return _denied(f"Role {actor.role!r} may not request a {action.value}")

        if not (reason or "").strip():
            return _invalid("A reason is required for an approval request", code="reason_required")

        try:
            data, record_id, plant = self._resolve_target(action, entity, target, plant)
        except ValueError as e:
            return _invalid(str(e))
        refused = self._outside_plant(actor, plant)
        if refused:
            return refused

        if data is None:
            snapshot = await self._snapshot(entity, record_id, plant)
            if snapshot is None:
                return WorkflowResult(
                    WorkflowOutcome.NOT_FOUND,
                    error=f"{entity} record not found: {record_id}",
                )
            data = snapshot

        request = PendingRequest(
            action_type=action.value,
            target_entity_type=entity,
            target_id=record_id,
            target_data=data,
            target_plant=plant,
            reason=reason.strip(),
            requested_by=actor.name,
            requested_by_role=actor.role,
            requested_by_plant=actor.plant,
            status=ApprovalStatus.PENDING,
            requested_at=self.clock(),
        )

        result = await self.store.create_shared(self.partition, request.to_row())
        if not result.ok:
            logger.error(
                "Could not record %s request for %s %s: %s",
                action.value, entity, record_id, result.error,
                extra={"actor": actor.name, "kind": result.kind.value},
            )
            return _from_store(WorkflowOutcome.NOT_RECORDED, result)

        request = request.model_copy(update={"id": str(result.data.get("id"))})
        logger.info(
            "Approval request %s recorded: %s %s %s by %s",
            request.id, action.value, entity, record_id, actor.name,
        )
        return WorkflowResult(WorkflowOutcome.PENDING, request=request)

    async def _snapshot(self, entity: str, record_id: str, plant: str) -> dict | None:
        """Current state of a record about to be deleted.

        Falls back to a bare id/plant snapshot when the partition can't be
        read; the id and plant are all a delete replay needs.
        """
        result = await self.store.read_plant(entity, plant)
        if not result.ok:
            logger.warning(
                "Snapshot of %s %s unavailable: %s", entity, record_id, result.error,
                extra={"kind": result.kind.value},
            )
            return {"id": record_id, PLANT_FIELD: plant}
        for record in result.data:
            if str(record.get("id")) == record_id:
                return record
        return None

    # ── Read side ───────────────────────────────────────────

    async def _load(self) -> StoreResult:
        result = await self.store.read_shared(self.partition)
        if not result.ok:
            return result

        requests: list[PendingRequest] = []
        for row in result.data:
            try:
                requests.append(PendingRequest.from_row(row))
            except (ValidationError, ValueError) as e:
                logger.warning(f"Skipping malformed approval row {row.get('id')!r}: {e}")
        return StoreResult.success(requests)

    async def list(self, status: ApprovalStatus | str | None = None) -> StoreResult:
        """Requests (optionally of one status), newest first."""
        if status is not None:
            try:
                status = ApprovalStatus(status)
            except ValueError:
                return StoreResult.rejected(f"Unknown approval status {status!r}")

        result = await self._load()
        if not result.ok:
            return result

        requests = result.data
        if status is not None:
            requests = [r for r in requests if r.status is status]

        by_time = sort_newest_first(
            [{"requested_at": r.requested_at, "request": r} for r in requests],
            key="requested_at",
        )
        return StoreResult.success([item["request"] for item in by_time])

    async def get(self, request_id: str) -> WorkflowResult:
        result = await self._load()
        if not result.ok:
            return _from_store(WorkflowOutcome.STORE_ERROR, result)
        for request in result.data:
            if request.id == str(request_id):
                return WorkflowResult(WorkflowOutcome(request.status.value), request=request)
        return WorkflowResult(WorkflowOutcome.NOT_FOUND, error=f"Approval request not found: {request_id}")

    # ── Decide ──────────────────────────────────────────────

    async def decide(
        self,
        reviewer: Actor,
        request_id: str,
        decision: Decision | str,
        notes: str | None = None,
    ) -> WorkflowResult:
        """Approve (replay + mark approved) or reject (mark rejected) a pending request."""
        try:
            decision = Decision(decision)
        except ValueError:
            return _invalid(f"Unknown decision {decision!r}")

        caps = reviewer.capabilities
        if not (can_review(caps, MutationAction.EDIT) or can_review(caps, MutationAction.DELETE)):
            return _denied(f"Role {reviewer.role!r} may not review approval requests")

        async with self.lock.acquire(str(request_id)) as held:
            if not held:
                return _invalid(
                    f"A decision on request {request_id} is already in progress",
                    code="decision_in_progress",
                )

            # Re-read right before acting: the status in any caller's copy may be stale.
            current = await self.get(request_id)
            if current.outcome in (WorkflowOutcome.NOT_FOUND, WorkflowOutcome.STORE_ERROR):
                return current
            request = current.request

            if not request.is_pending:
                return WorkflowResult(
                    WorkflowOutcome.VALIDATION_ERROR,
                    request=request,
                    error=f"Request {request_id} is not pending (status: {request.status.value})",
                    code="not_pending",
                )

            if not can_review(caps, request.action_type):
                return _denied(
                    f"Role {reviewer.role!r} may not review {request.action_type} requests"
                )

            if decision is Decision.REJECT:
                return await self._resolve(request, reviewer, ApprovalStatus.REJECTED, notes)

            replay = await self._replay(request)
            if not replay.ok and await self._delete_already_applied(request, replay):
                logger.info(
                    "Record %s %s already deleted; recording approval of request %s",
                    request.target_entity_type, request.target_id, request.id,
                )
                replay = StoreResult.success({"id": request.target_id, PLANT_FIELD: request.target_plant})
            if not replay.ok:
                logger.error(
                    "Replay of approval request %s failed: %s", request.id, replay.error,
                    extra={"request_id": request.id, "kind": replay.kind.value},
                )
                return _from_store(WorkflowOutcome.REPLAY_FAILED, replay, request=request)

            return await self._resolve(
                request, reviewer, ApprovalStatus.APPROVED, notes, record=replay.data
            )

    async def _replay(self, request: PendingRequest) -> StoreResult:
        action = MutationAction(request.action_type)
        try:
            if action is MutationAction.EDIT:
                data = {**request.target_data, PLANT_FIELD: request.target_plant}
                return await self._apply(action, request.target_entity_type, data=data)
            return await self._apply(
                action,
                request.target_entity_type,
                record_id=request.target_id,
                plant=request.target_plant,
            )
        except ValueError as e:
            return StoreResult.rejected(str(e))

    async def _delete_already_applied(self, request: PendingRequest, replay: StoreResult) -> bool:
        """A delete whose record is already gone needs only its status written.

        Covers a retry after the delete went through but marking the request
        approved failed. Only a business answer qualifies; an unreachable
        partition proves nothing.
        """
        if request.action_type != MutationAction.DELETE.value:
            return False
        if replay.kind is not ResultKind.BUSINESS_ERROR:
            return False
        try:
            current = await self.store.read_plant(request.target_entity_type, request.target_plant)
        except ValueError:
            return False
        if not current.ok:
            return False
        return all(str(r.get("id")) != request.target_id for r in current.data)

    async def _resolve(
        self,
        request: PendingRequest,
        reviewer: Actor,
        status: ApprovalStatus,
        notes: str | None,
        record: dict | None = None,
    ) -> WorkflowResult:
        resolved = request.model_copy(
            update={
                "status": status,
                "resolved_at": self.clock(),
                "resolved_by": reviewer.name,
                "review_notes": (notes or "").strip() or None,
            }
        )
        result = await self.store.update_shared(self.partition, resolved.to_row())
        if not result.ok:
            logger.error(
                "Could not mark request %s %s: %s", request.id, status.value, result.error,
                extra={"request_id": request.id, "kind": result.kind.value},
            )
            outcome = (
                WorkflowOutcome.STATUS_NOT_RECORDED
                if status is ApprovalStatus.APPROVED
                else WorkflowOutcome.STORE_ERROR
            )
            return _from_store(outcome, result, request=request, record=record)

        logger.info("Approval request %s %s by %s", request.id, status.value, reviewer.name)
        verdict = "disetujui" if status is ApprovalStatus.APPROVED else "ditolak"
        await self._notify(
            reviewer,
            f"Permintaan {request.action_type} {request.target_entity_type} Anda telah {verdict} oleh {reviewer.name}",
            request.target_plant,
            to_user=request.requested_by,
        )
        outcome = WorkflowOutcome.APPROVED if status is ApprovalStatus.APPROVED else WorkflowOutcome.REJECTED
        return WorkflowResult(outcome, request=resolved, record=record)
