from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class StandingEntry(BaseModel):
    rank: int
    id: str
    display_name: str
    credits: int
    players_won: int
    total_score: int
    credits_spent: int


class MatchResultCreate(BaseModel):
    turn: int = Field(..., ge=1)
    team1_number: int
    team2_number: int
    result: Optional[str] = None  # e.g. '1-0', '0-1', '1-1'
    winner_slot_ids: List[str] = []
    entered_by: Optional[str] = None


class MatchResultResponse(MatchResultCreate):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubstitutionCreate(BaseModel):
    slot_id: str
    new_player: str = Field(..., min_length=1)
    from_turn: Optional[int] = None
    reason: Optional[str] = None


class SubstitutionResponse(BaseModel):
    id: int
    slot_id: str
    old_player: str
    new_player: str
    from_turn: Optional[int] = None
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionCreate(BaseModel):
    year: str = Field(..., min_length=1)
    description: Optional[str] = None


class SessionInfo(BaseModel):
    session_year: Optional[str] = None
    session_description: Optional[str] = None
    session_started_at: Optional[str] = None
