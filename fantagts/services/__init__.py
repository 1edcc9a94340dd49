from .errors import AuctionError
from .session_state import SessionState, SealedBid, SlotInfo, ParticipantInfo, WinResult
from .resolution import ExclusiveResolution, SharedPremiumResolution, get_resolution_strategy
from .connections import ConnectionRegistry, Connection
from .notifications import NotificationDispatcher
from .gateway import PersistenceGateway
from .auction_engine import AuctionEngine

__all__ = [
    "AuctionError",
    "SessionState",
    "SealedBid",
    "SlotInfo",
    "ParticipantInfo",
    "WinResult",
    "ExclusiveResolution",
    "SharedPremiumResolution",
    "get_resolution_strategy",
    "ConnectionRegistry",
    "Connection",
    "NotificationDispatcher",
    "PersistenceGateway",
    "AuctionEngine",
]
