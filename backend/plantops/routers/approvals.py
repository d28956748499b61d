"""Approval queue routes.

Endpoints:
    GET    /api/approvals                       List requests (?status=pending|approved|rejected)
    GET    /api/approvals/{request_id}          One request
    POST   /api/approvals/{request_id}/approve  Replay the captured change, mark approved
    POST   /api/approvals/{request_id}/reject   Mark rejected, no change applied

Reviewers (roles with direct edit/delete capability) see the whole queue;
everyone else sees only the requests they submitted.
"""

from fastapi import APIRouter, Body, Depends, Query

from plantops.auth.deps import get_current_actor, get_workflow
from plantops.auth.permissions import Actor, MutationAction, can_review
from plantops.middleware.exceptions import (
    ResourceNotFoundError,
    raise_for_store,
    raise_for_workflow,
)
from plantops.schemas.approval import (
    ApprovalListResponse,
    ApprovalStatus,
    DecisionBody,
    DecisionResult,
    PendingRequest,
    PendingRequestOut,
)
from plantops.services.approval import ApprovalWorkflow, Decision

router = APIRouter()


def _is_reviewer(actor: Actor) -> bool:
    caps = actor.capabilities
    return can_review(caps, MutationAction.EDIT) or can_review(caps, MutationAction.DELETE)


def _visible(actor: Actor, request: PendingRequest) -> bool:
    return _is_reviewer(actor) or request.requested_by == actor.name


def _out(request: PendingRequest) -> PendingRequestOut:
    return PendingRequestOut.model_validate(request)


@router.get("/", response_model=ApprovalListResponse)
async def list_approvals(
    status: ApprovalStatus | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    workflow: ApprovalWorkflow = Depends(get_workflow),
):
    result = await workflow.list(status)
    raise_for_store(result)

    items = [r for r in result.data if _visible(actor, r)]
    return ApprovalListResponse(
        items=[_out(r) for r in items],
        total=len(items),
        pending_count=sum(1 for r in items if r.is_pending),
    )


@router.get("/{request_id}", response_model=PendingRequestOut)
async def get_approval(
    request_id: str,
    actor: Actor = Depends(get_current_actor),
    workflow: ApprovalWorkflow = Depends(get_workflow),
):
    result = await workflow.get(request_id)
    raise_for_workflow(result, "Approval request", request_id)
    if not _visible(actor, result.request):
        raise ResourceNotFoundError("Approval request", request_id)
    return _out(result.request)


async def _decide(
    workflow: ApprovalWorkflow,
    actor: Actor,
    request_id: str,
    decision: Decision,
    body: DecisionBody | None,
) -> DecisionResult:
    result = await workflow.decide(actor, request_id, decision, notes=body.notes if body else None)
    raise_for_workflow(result, "Approval request", request_id)
    return DecisionResult(request=_out(result.request), record=result.record)


@router.post("/{request_id}/approve", response_model=DecisionResult)
async def approve_request(
    request_id: str,
    body: DecisionBody | None = Body(None),
    actor: Actor = Depends(get_current_actor),
    workflow: ApprovalWorkflow = Depends(get_workflow),
):
    return await _decide(workflow, actor, request_id, Decision.APPROVE, body)


@router.post("/{request_id}/reject", response_model=DecisionResult)
async def reject_request(
    request_id: str,
    body: DecisionBody | None = Body(None),
    actor: Actor = Depends(get_current_actor),
    workflow: ApprovalWorkflow = Depends(get_workflow),
):
    return await _decide(workflow, actor, request_id, Decision.REJECT, body)
