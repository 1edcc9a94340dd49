from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime


class MessageResponse(BaseModel):
    message: str


class BidStatus(BaseModel):
    totalPending: int
    bidsReceived: int
    stillWaiting: List[str] = []


class AuctionStateResponse(BaseModel):
    phase: str
    activeRound: Optional[str] = None
    auctionActive: bool
    subAuctionIndex: int
    biddingOpen: bool
    remainingSlots: List[Dict[str, Any]] = []
    pendingParticipantIds: List[str] = []
    bidStatus: BidStatus
    connections: List[Dict[str, Any]] = []


class WinResultResponse(BaseModel):
    participant_id: str
    display_name: str
    slot_id: str
    bid_amount: int
    final_cost: int
    premium: float = 0.0
    shared: bool = False


class ForceEndResponse(BaseModel):
    message: str
    results: List[WinResultResponse] = []


class AuctionRecordResponse(BaseModel):
    id: int
    round: str
    participant_id: str
    participant_name: str
    slot_id: str
    current_player: Optional[str] = None
    color: Optional[str] = None
    bid_amount: int
    final_cost: int
    premium: float = 0.0
    winner: bool = True
    shared: bool = False
    created_at: Optional[datetime] = None
