from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ParticipantCreate(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=128)
    email: Optional[str] = None
    phone: Optional[str] = None
    credits: Optional[int] = Field(None, ge=0)


class ParticipantResponse(BaseModel):
    id: str
    display_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    credits: int
    total_score: int = 0
    season: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RosterEntry(BaseModel):
    slot_id: str
    round: str
    final_cost: int
    position: str
    current_player: Optional[str] = None
    color: str
    total_score: int = 0


class PushSubscription(BaseModel):
    endpoint: str = Field(..., min_length=1)
