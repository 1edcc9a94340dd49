"""Session state for the live auction.

One instance lives for the whole process. It is only mutated by the
auction engine, which serializes every transition.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional
from datetime import datetime, timezone

PHASE_SETUP = "setup"
PHASE_AUCTIONING = "auctioning"
PHASE_RESULTS = "results"


@dataclass
class SlotInfo:
    """Snapshot of a slot row taken when a round opens."""
    id: str
    position: str
    team_number: int
    color: str
    current_player: Optional[str] = None
    total_score: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ParticipantInfo:
    id: str
    display_name: str


@dataclass
class SealedBid:
    """A bid hidden from other bidders until its sub-auction resolves."""
    participant_id: str
    connection_id: str  # routing address only
    slot_id: str
    amount: int
    round_tag: str
    sub_auction_index: int
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class WinResult:
    participant_id: str
    display_name: str
    slot_id: str
    bid_amount: int
    final_cost: int
    premium: float = 0.0
    shared: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SessionState:
    """Current phase, active round and sealed bids of the auction."""

    phase: str = PHASE_SETUP
    active_round: Optional[str] = None
    auction_active: bool = False
    sub_auction_index: int = 1
    bidding_open: bool = False

    # participant id -> display name, in enrollment order
    pending_participants: Dict[str, str] = field(default_factory=dict)
    # slot id -> slot snapshot
    remaining_slots: Dict[str, SlotInfo] = field(default_factory=dict)
    # participant id -> bid; one counted bid per participant
    sealed_bids: Dict[str, SealedBid] = field(default_factory=dict)

    # Round size at open, used by the shared premium strategy
    round_participant_count: int = 0
    round_slot_count: int = 0

    def start_round(self, position: str, participants: List[ParticipantInfo], slots: List[SlotInfo]):
        self.phase = PHASE_AUCTIONING
        self.active_round = position
        self.auction_active = True
        self.sub_auction_index = 1
        self.bidding_open = False
        self.pending_participants = {p.id: p.display_name for p in participants}
        self.remaining_slots = {s.id: s for s in slots}
        self.sealed_bids = {}
        self.round_participant_count = len(participants)
        self.round_slot_count = len(slots)

    def begin_sub_auction(self):
        self.sealed_bids = {}
        self.bidding_open = True

    def is_round_exhausted(self) -> bool:
        return not self.pending_participants or not self.remaining_slots

    def is_pending(self, participant_id: str) -> bool:
        return participant_id in self.pending_participants

    def record_bid(self, bid: SealedBid):
        self.sealed_bids[bid.participant_id] = bid

    def discard_bids_for_connection(self, connection_id: str) -> Optional[SealedBid]:
        for participant_id, bid in list(self.sealed_bids.items()):
            if bid.connection_id == connection_id:
                return self.sealed_bids.pop(participant_id)
        return None

    def counted_bids(self) -> List[SealedBid]:
        """Bids that take part in resolution: pending bidders, open slots."""
        return [
            bid for bid in self.sealed_bids.values()
            if bid.participant_id in self.pending_participants
            and bid.slot_id in self.remaining_slots
        ]

    def all_pending_have_bid(self) -> bool:
        if not self.pending_participants:
            return False
        return all(pid in self.sealed_bids for pid in self.pending_participants)

    def bid_status(self) -> dict:
        still_waiting = [
            name for pid, name in self.pending_participants.items()
            if pid not in self.sealed_bids
        ]
        return {
            "totalPending": len(self.pending_participants),
            "bidsReceived": len(self.counted_bids()),
            "stillWaiting": still_waiting,
        }

    def apply_wins(self, wins: List[WinResult]):
        """Remove winners and won slots. Both sets only ever shrink."""
        for win in wins:
            self.pending_participants.pop(win.participant_id, None)
            self.remaining_slots.pop(win.slot_id, None)

    def close_round(self):
        self.auction_active = False
        self.bidding_open = False
        self.active_round = None
        self.sub_auction_index = 1
        self.pending_participants = {}
        self.remaining_slots = {}
        self.sealed_bids = {}
        self.round_participant_count = 0
        self.round_slot_count = 0

    def reset(self):
        self.close_round()
        self.phase = PHASE_SETUP

    def snapshot(self) -> dict:
        return {
            "phase": self.phase,
            "activeRound": self.active_round,
            "auctionActive": self.auction_active,
            "subAuctionIndex": self.sub_auction_index,
            "biddingOpen": self.bidding_open,
            "remainingSlots": [s.to_dict() for s in self.remaining_slots.values()],
            "pendingParticipantIds": list(self.pending_participants),
        }
