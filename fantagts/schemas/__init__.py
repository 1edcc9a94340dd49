from .teams import TeamBase, TeamCreate, TeamResponse, TeamOverviewResponse, SlotResponse, RegenerateSlotsResponse
from .participants import ParticipantCreate, ParticipantResponse, RosterEntry, PushSubscription
from .auction import (
    MessageResponse, BidStatus, AuctionStateResponse, WinResultResponse,
    ForceEndResponse, AuctionRecordResponse
)
from .league import (
    StandingEntry, MatchResultCreate, MatchResultResponse,
    SubstitutionCreate, SubstitutionResponse, SessionCreate, SessionInfo
)

__all__ = [
    "TeamBase", "TeamCreate", "TeamResponse", "TeamOverviewResponse",
    "SlotResponse", "RegenerateSlotsResponse",
    "ParticipantCreate", "ParticipantResponse", "RosterEntry", "PushSubscription",
    "MessageResponse", "BidStatus", "AuctionStateResponse", "WinResultResponse",
    "ForceEndResponse", "AuctionRecordResponse",
    "StandingEntry", "MatchResultCreate", "MatchResultResponse",
    "SubstitutionCreate", "SubstitutionResponse", "SessionCreate", "SessionInfo",
]
