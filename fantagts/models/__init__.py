from .teams import Team, POSITIONS
from .participants import Participant
from .slots import Slot, Substitution
from .auctions import AuctionRecord
from .league import MatchResult, ConfigEntry

__all__ = [
    "Team",
    "POSITIONS",
    "Participant",
    "Slot",
    "Substitution",
    "AuctionRecord",
    "MatchResult",
    "ConfigEntry",
]
