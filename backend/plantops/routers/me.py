"""Current actor and the capability set the front end uses to show or hide actions."""

from fastapi import APIRouter, Depends

from plantops.auth.deps import get_current_actor
from plantops.auth.permissions import Actor
from plantops.schemas.common import ActorOut

router = APIRouter()


@router.get("/", response_model=ActorOut)
async def who_am_i(actor: Actor = Depends(get_current_actor)):
    return ActorOut.model_validate(actor)


@router.get("/capabilities")
async def my_capabilities(actor: Actor = Depends(get_current_actor)):
    return ActorOut.model_validate(actor).capabilities
