from fastapi import APIRouter, Depends
from typing import List

from ..deps import get_gateway, get_engine
from ...schemas.auction import (
    MessageResponse, BidStatus, AuctionStateResponse, ForceEndResponse, AuctionRecordResponse
)

router = APIRouter()


@router.get("/state", response_model=AuctionStateResponse)
async def auction_state(engine=Depends(get_engine)):
    return engine.snapshot()


@router.get("/bids", response_model=BidStatus)
async def bid_status(engine=Depends(get_engine)):
    """How many pending participants have bid in the open sub-auction."""
    return engine.bid_status()


@router.post("/rounds/{position}", response_model=AuctionStateResponse)
async def open_round(position: str, engine=Depends(get_engine)):
    return await engine.open_round(position)


@router.post("/force-end", response_model=ForceEndResponse)
async def force_end_round(engine=Depends(get_engine)):
    """Resolve the open sub-auction now, even if some bids are missing."""
    wins = await engine.force_end_round()
    if wins is None:
        return {"message": "Results could not be saved, try again", "results": []}
    return {"message": "Sub-auction resolved", "results": [w.to_dict() for w in wins]}


@router.post("/reset/{level}", response_model=MessageResponse)
async def reset(level: str, engine=Depends(get_engine)):
    """Reset levels: round, auctionsOnly, full."""
    return {"message": await engine.reset(level)}


@router.get("/rounds/{round_tag}/results", response_model=List[AuctionRecordResponse])
async def round_results(round_tag: str, gateway=Depends(get_gateway)):
    return await gateway.list_wins_for_round(round_tag.upper())
