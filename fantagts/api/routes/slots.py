from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ..deps import get_gateway, get_engine
from ...schemas.teams import SlotResponse, RegenerateSlotsResponse

router = APIRouter()


@router.get("/", response_model=List[SlotResponse])
async def list_slots(
    position: Optional[str] = Query(None, description="Position tag, e.g. M1 or F2"),
    gateway=Depends(get_gateway),
):
    return await gateway.list_slots(position.upper() if position else None)


@router.post("/regenerate", response_model=RegenerateSlotsResponse)
async def regenerate_slots(gateway=Depends(get_gateway), engine=Depends(get_engine)):
    """Rebuild every slot from the active teams. Destroys substitutions."""
    engine.ensure_not_busy()
    created = await gateway.regenerate_slots()
    return {"message": "Slots generated", "slots_created": created}


@router.get("/{slot_id}", response_model=SlotResponse)
async def get_slot(slot_id: str, gateway=Depends(get_gateway)):
    return await gateway.get_slot(slot_id)
