"""Plant-routed record routes — merged list + create / edit / delete.

Endpoints:
    GET    /api/records/{entity}               Merged list, newest first
    POST   /api/records/{entity}               Create (direct only)
    PUT    /api/records/{entity}/{record_id}   Edit   → 200 applied | 202 pending approval
    DELETE /api/records/{entity}/{record_id}   Delete → 200 applied | 202 pending approval

Edits and deletes go through the approval workflow, which decides per role
whether the mutation is applied now, recorded for review, or refused.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response, status

from plantops.auth.deps import get_current_actor, get_store, get_workflow
from plantops.auth.permissions import Actor, MutationAction
from plantops.middleware.exceptions import (
    PermissionDeniedError,
    ResourceNotFoundError,
    ValidationFailedError,
    raise_for_store,
    raise_for_workflow,
)
from plantops.plants import PLANT_FIELD, is_plant_scoped, is_unrestricted
from plantops.schemas.approval import PendingRequestOut
from plantops.schemas.common import ListResponse
from plantops.schemas.records import MutationResponse, RecordEdit
from plantops.services.approval import ApprovalWorkflow, WorkflowOutcome, WorkflowResult
from plantops.services.record_store import PlantRoutedRecordStore, sort_newest_first

router = APIRouter()


def _validate_entity(entity: str) -> None:
    if not is_plant_scoped(entity):
        raise ResourceNotFoundError("Entity", entity)


def _default_plant(actor: Actor, plant: str | None) -> str | None:
    """Explicit plant wins; otherwise a plant-bound actor's own plant."""
    if plant:
        return plant
    return None if is_unrestricted(actor.plant) else actor.plant


def _mutation_response(result: WorkflowResult, response: Response) -> MutationResponse:
    if result.outcome is WorkflowOutcome.PENDING:
        response.status_code = status.HTTP_202_ACCEPTED
        return MutationResponse(status="pending", request=PendingRequestOut.model_validate(result.request))
    return MutationResponse(status="applied", record=result.record)


# ── Routes ───────────────────────────────────────────────────

@router.get("/{entity}", response_model=ListResponse[dict[str, Any]])
async def list_records(
    entity: str,
    plant: str | None = Query(None, description="Restrict to one plant"),
    sort_key: str = Query("tanggal"),
    actor: Actor = Depends(get_current_actor),
    store: PlantRoutedRecordStore = Depends(get_store),
):
    """All plants for cross-plant viewers, otherwise the actor's own plant."""
    _validate_entity(entity)
    sees_all = actor.capabilities.can_view_all_plants or is_unrestricted(actor.plant)

    if plant is None and sees_all:
        result = await store.read_all(entity)
    else:
        target = plant or actor.plant
        if not sees_all and target != actor.plant:
            raise PermissionDeniedError(f"No access to plant {target}")
        try:
            result = await store.read_plant(entity, target)
        except ValueError as e:
            raise ValidationFailedError(str(e)) from e

    raise_for_store(result)
    items = sort_newest_first(result.data, key=sort_key)
    return ListResponse(items=items, total=len(items))


@router.post("/{entity}", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def create_record(
    entity: str,
    response: Response,
    record: dict[str, Any] = Body(...),
    plant: str | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    workflow: ApprovalWorkflow = Depends(get_workflow),
):
    _validate_entity(entity)
    record = {k: v for k, v in record.items() if k != "id"}
    record[PLANT_FIELD] = record.get(PLANT_FIELD) or _default_plant(actor, plant)

    result = await workflow.request_mutation(actor, MutationAction.CREATE, entity, record)
    raise_for_workflow(result, "Entity", entity)
    return _mutation_response(result, response)


@router.put("/{entity}/{record_id}", response_model=MutationResponse)
async def edit_record(
    entity: str,
    record_id: str,
    body: RecordEdit,
    response: Response,
    actor: Actor = Depends(get_current_actor),
    workflow: ApprovalWorkflow = Depends(get_workflow),
):
    _validate_entity(entity)
    data = {**body.data, "id": record_id}
    data[PLANT_FIELD] = data.get(PLANT_FIELD) or _default_plant(actor, body.plant)

    result = await workflow.request_mutation(
        actor, MutationAction.EDIT, entity, data, reason=body.reason
    )
    raise_for_workflow(result, entity, record_id)
    return _mutation_response(result, response)


@router.delete("/{entity}/{record_id}", response_model=MutationResponse)
async def delete_record(
    entity: str,
    record_id: str,
    response: Response,
    plant: str | None = Query(None),
    reason: str | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    workflow: ApprovalWorkflow = Depends(get_workflow),
):
    _validate_entity(entity)
    result = await workflow.request_mutation(
        actor,
        MutationAction.DELETE,
        entity,
        record_id,
        reason=reason,
        plant=_default_plant(actor, plant),
    )
    raise_for_workflow(result, entity, record_id)
    return _mutation_response(result, response)
