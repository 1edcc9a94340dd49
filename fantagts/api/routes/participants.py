from fastapi import APIRouter, Depends, Request
from typing import List

from ..deps import get_gateway, get_engine, get_dispatcher
from ...schemas.participants import ParticipantCreate, ParticipantResponse, RosterEntry, PushSubscription
from ...schemas.auction import MessageResponse
from ...services.errors import ParticipantLimitReached
from ...services.gateway import slugify_participant_id

router = APIRouter()


@router.get("/", response_model=List[ParticipantResponse])
async def list_participants(gateway=Depends(get_gateway)):
    return await gateway.list_participants()


@router.post("/", response_model=ParticipantResponse)
async def create_participant(
    participant: ParticipantCreate,
    request: Request,
    gateway=Depends(get_gateway),
    engine=Depends(get_engine),
):
    """Register a participant; the id is derived from the display name."""
    engine.ensure_not_busy()
    max_participants = request.app.state.settings.max_participants
    # Re-saving an active participant adds nobody
    is_update = await gateway.participant_is_active(slugify_participant_id(participant.display_name))
    if not is_update and await gateway.count_active_participants() >= max_participants:
        raise ParticipantLimitReached(f"At most {max_participants} participants")
    return await gateway.create_participant(**participant.model_dump())


@router.delete("/{participant_id}", response_model=MessageResponse)
async def delete_participant(participant_id: str, gateway=Depends(get_gateway), engine=Depends(get_engine)):
    engine.ensure_not_busy()
    await gateway.delete_participant(participant_id)
    return {"message": f"Participant {participant_id} removed"}


@router.get("/{participant_id}/roster", response_model=List[RosterEntry])
async def participant_roster(participant_id: str, gateway=Depends(get_gateway)):
    """Slots won by a participant across all rounds."""
    return await gateway.participant_roster(participant_id)


@router.post("/{participant_id}/push", response_model=MessageResponse)
async def subscribe_push(
    participant_id: str,
    subscription: PushSubscription,
    gateway=Depends(get_gateway),
    dispatcher=Depends(get_dispatcher),
):
    # Raises NotFound for unknown participants
    await gateway.get_participant_balance(participant_id)
    dispatcher.subscribe(participant_id, subscription.endpoint)
    return {"message": "Push notifications enabled"}
