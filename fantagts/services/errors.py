"""Auction error taxonomy.

Every rejection carries a stable ``code`` for clients and a short
human-readable ``reason``. The HTTP layer maps the family of an error to a
status code, the realtime layer sends it back to the offending connection.
"""


class AuctionError(Exception):
    code = "auction_error"
    default_reason = "Auction error"

    def __init__(self, reason: str = None):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)

    def to_payload(self) -> dict:
        return {"code": self.code, "reason": self.reason}


# Validation: malformed input, rejected synchronously and never logged as a fault

class ValidationError(AuctionError):
    code = "validation_error"
    default_reason = "Invalid request"


class InvalidBid(ValidationError):
    code = "invalid_bid"
    default_reason = "A bid needs a slot and a positive amount"


class InvalidPosition(ValidationError):
    code = "invalid_position"
    default_reason = "Unknown position"


class InvalidResetLevel(ValidationError):
    code = "invalid_reset_level"
    default_reason = "Reset level must be one of: round, auctionsOnly, full"


# State conflicts: the request is well formed but not allowed right now

class StateConflictError(AuctionError):
    code = "state_conflict"
    default_reason = "Operation not allowed in the current state"


class RoundAlreadyActive(StateConflictError):
    code = "round_already_active"
    default_reason = "A round is already active"


class NoActiveRound(StateConflictError):
    code = "no_active_round"
    default_reason = "No round is active"


class RoundMismatch(StateConflictError):
    code = "round_mismatch"
    default_reason = "This round is not the active one"


class BiddingClosed(StateConflictError):
    code = "bidding_closed"
    default_reason = "Bidding is closed while results are processed"


class DuplicateBid(StateConflictError):
    code = "duplicate_bid"
    default_reason = "You already placed a bid from another connection"


class AlreadyWon(StateConflictError):
    code = "already_won"
    default_reason = "You already won a slot in this round"


class SlotUnavailable(StateConflictError):
    code = "slot_unavailable"
    default_reason = "This slot is not available in the current auction"


class InsufficientCredits(StateConflictError):
    code = "insufficient_credits"
    default_reason = "Insufficient credits"


class NoSlotsAvailable(StateConflictError):
    code = "no_slots_available"
    default_reason = "No unclaimed slots for this position"


class NoParticipants(StateConflictError):
    code = "no_participants"
    default_reason = "No participants available for this round"


class SystemIsBusy(StateConflictError):
    code = "system_busy"
    default_reason = "Not allowed while an auction round is active"


class ParticipantLimitReached(StateConflictError):
    code = "participant_limit"
    default_reason = "Maximum number of participants reached"


# Authorization: the caller must (re-)authenticate

class AuthorizationError(AuctionError):
    code = "authorization_error"
    default_reason = "Please sign in again"


class NotRegistered(AuthorizationError):
    code = "not_registered"
    default_reason = "Connection is not registered, please sign in again"


class NotAuthorized(AuthorizationError):
    code = "not_authorized"
    default_reason = "Only verified participants can bid"


class NotFound(AuctionError):
    code = "not_found"
    default_reason = "Not found"


# Infrastructure

class PersistenceError(AuctionError):
    code = "persistence_error"
    default_reason = "Storage failure"


class NotificationError(AuctionError):
    code = "notification_error"
    default_reason = "Notification delivery failed"
