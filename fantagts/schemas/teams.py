from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class TeamBase(BaseModel):
    number: int = Field(..., ge=1)
    color: str = Field(..., min_length=1, max_length=32)
    m1: Optional[str] = None
    m2: Optional[str] = None
    m3: Optional[str] = None
    m4: Optional[str] = None
    m5: Optional[str] = None
    m6: Optional[str] = None
    m7: Optional[str] = None
    f1: Optional[str] = None
    f2: Optional[str] = None
    f3: Optional[str] = None


class TeamCreate(TeamBase):
    pass


class TeamResponse(TeamBase):
    id: int
    active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TeamOverviewResponse(TeamResponse):
    slots_generated: int = 0


class SlotResponse(BaseModel):
    id: str
    team_number: int
    color: str
    position: str
    current_player: Optional[str] = None
    total_score: int = 0
    active: bool = True

    class Config:
        from_attributes = True


class RegenerateSlotsResponse(BaseModel):
    message: str
    slots_created: int
