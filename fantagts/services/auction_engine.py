"""Live multi-round sealed-bid auction engine.

A round covers one position (M1..M7, F1..F3). Each round runs as a sequence
of sub-auctions: every participant still without a slot in the round places
one sealed bid, the highest bid on each slot wins it, winners leave the
round, and unclaimed slots carry over to the next sub-auction. The round ends
when either every participant won a slot or every slot is claimed.

All transitions run under one ``asyncio.Lock``, so a sub-auction is resolved
at most once and no bid can slip in between the completeness check and the
resolution it triggers.
"""

import asyncio
import logging
import random
import re
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..models import POSITIONS
from .errors import (
    AuctionError, InvalidBid, InvalidPosition, InvalidResetLevel,
    RoundAlreadyActive, NoActiveRound, RoundMismatch, BiddingClosed, DuplicateBid,
    AlreadyWon, SlotUnavailable, InsufficientCredits, NoSlotsAvailable, NoParticipants,
    SystemIsBusy, NotRegistered, NotAuthorized, NotFound, PersistenceError,
)
from .connections import Connection, ConnectionRegistry, ROLE_PARTICIPANT, ROLE_OPERATOR
from .notifications import NotificationDispatcher
from .resolution import ExclusiveResolution
from .session_state import SessionState, SealedBid, WinResult, PHASE_RESULTS

logger = logging.getLogger(__name__)

RESET_ROUND = "round"
RESET_AUCTIONS = "auctionsOnly"
RESET_FULL = "full"
RESET_LEVELS = (RESET_ROUND, RESET_AUCTIONS, RESET_FULL)


def base_position(round_tag) -> str:
    """'m1', 'M1-2' and 'M1_sub2' all belong to position 'M1'."""
    return re.split(r"[-_:/\s]", str(round_tag or "").strip().upper())[0]


def parse_amount(amount) -> Optional[int]:
    if isinstance(amount, bool):
        return None
    if isinstance(amount, int):
        return amount
    if isinstance(amount, float) and amount.is_integer():
        return int(amount)
    if isinstance(amount, str) and amount.strip().isdigit():
        return int(amount.strip())
    return None


class AuctionEngine:
    """Orchestrates rounds and sub-auctions over the session state."""

    def __init__(
        self,
        gateway,
        registry: ConnectionRegistry,
        dispatcher: Optional[NotificationDispatcher] = None,
        strategy=None,
        rng: Optional[random.Random] = None,
        sub_auction_pause: float = 3.0,
    ):
        self.gateway = gateway
        self.registry = registry
        self.dispatcher = dispatcher or NotificationDispatcher(enabled=False)
        self.strategy = strategy or ExclusiveResolution()
        self.rng = rng or random.Random()
        self.sub_auction_pause = sub_auction_pause

        self.state = SessionState()
        self._lock = asyncio.Lock()
        self._advance_task: Optional[asyncio.Task] = None
        self._round_participant_ids: List[str] = []

    # ------------------------------------------------------------------
    # Round lifecycle
    # ------------------------------------------------------------------

    async def open_round(self, position: str) -> dict:
        position = str(position or "").strip().upper()
        if position not in POSITIONS:
            raise InvalidPosition(f"Unknown position {position!r}, expected one of {', '.join(POSITIONS)}")

        async with self._lock:
            if self.state.auction_active:
                raise RoundAlreadyActive(f"Round {self.state.active_round} is already active")

            # A replayed tag skips what earlier runs of it already assigned
            previous_wins = await self.gateway.list_wins_for_round(position)
            claimed = {w["slot_id"] for w in previous_wins}
            assigned = {w["participant_id"] for w in previous_wins}

            slots = [
                s for s in await self.gateway.list_slots_by_position(position)
                if s.id not in claimed
            ]
            if not slots:
                raise NoSlotsAvailable(f"No unclaimed slots for {position}")

            participants = [
                p for p in await self.gateway.list_active_participants()
                if p.id not in assigned
            ]
            if not participants:
                raise NoParticipants(f"No participants to enroll in {position}")

            self.state.start_round(position, participants, slots)
            self._round_participant_ids = [p.id for p in participants]
            logger.info(f"Round {position} opened: {len(participants)} participants, {len(slots)} slots")

            payload = {"round": position, "slots": [s.to_dict() for s in slots]}
            await self.registry.broadcast("round_started", payload)
            self._push("round_started", payload, self._round_participant_ids)

            await self._open_sub_auction()
            return self.snapshot()

    async def _open_sub_auction(self):
        if self.state.is_round_exhausted():
            await self._close_round(completed=True)
            return

        self.state.begin_sub_auction()
        logger.info(
            f"Sub-auction {self.state.sub_auction_index} of {self.state.active_round}: "
            f"{len(self.state.pending_participants)} bidders, {len(self.state.remaining_slots)} slots"
        )
        await self.registry.broadcast("sub_auction_started", {
            "round": self.state.active_round,
            "subAuctionIndex": self.state.sub_auction_index,
            "remainingSlots": [s.to_dict() for s in self.state.remaining_slots.values()],
            "pendingParticipantIds": list(self.state.pending_participants),
        }, predicate=self._is_eligible)
        await self._broadcast_bid_status()

    def _is_eligible(self, connection: Connection) -> bool:
        if connection.role != ROLE_PARTICIPANT:
            return True
        return self.state.is_pending(connection.participant_id)

    async def close_round(self):
        async with self._lock:
            await self._close_round(completed=True)

    async def _close_round(self, completed: bool, announce: bool = True):
        if not self.state.auction_active:
            return
        round_tag = self.state.active_round
        self._cancel_advance()
        self.state.close_round()
        self.state.phase = PHASE_RESULTS
        logger.info(f"Round {round_tag} ended (completed={completed})")

        if announce:
            payload = {"round": round_tag, "completed": completed}
            await self.registry.broadcast("round_ended", payload)
            self._push("round_ended", payload, self._round_participant_ids)
        self._round_participant_ids = []

    async def force_end_round(self) -> Optional[List[WinResult]]:
        """Resolve the open sub-auction now, with whatever bids exist."""
        async with self._lock:
            if not self.state.auction_active:
                raise NoActiveRound()
            if not self.state.bidding_open:
                raise BiddingClosed("Results are on screen, the next sub-auction starts shortly")
            logger.info(f"Operator forced resolution of {self.state.active_round}")
            return await self._resolve()

    # ------------------------------------------------------------------
    # Bidding
    # ------------------------------------------------------------------

    async def submit_bid(self, connection_id: str, slot_id, amount, round_tag) -> SealedBid:
        async with self._lock:
            bid = await self._accept_bid(connection_id, slot_id, amount, round_tag)
            self.state.record_bid(bid)
            logger.info(f"Sealed bid from {bid.participant_id} on {bid.slot_id}")

            await self.registry.send(connection_id, "bid_confirmed", {"slot": bid.slot_id, "amount": bid.amount})
            await self._broadcast_bid_status()

            if self.state.all_pending_have_bid():
                await self._resolve()
            return bid

    async def handle_bid(self, connection_id: str, payload: dict) -> Optional[SealedBid]:
        """Realtime entry point: rejections go back to the bidder only."""
        try:
            return await self.submit_bid(
                connection_id,
                payload.get("slot"),
                payload.get("amount"),
                payload.get("round"),
            )
        except AuctionError as e:
            if isinstance(e, PersistenceError):
                logger.error(f"Bid from {connection_id} failed: {e.reason}")
            else:
                logger.debug(f"Bid from {connection_id} rejected: {e.code}")
            await self.registry.send(connection_id, "bid_rejected", e.to_payload())
            return None

    async def _accept_bid(self, connection_id: str, slot_id, amount, round_tag) -> SealedBid:
        state = self.state
        if not state.auction_active:
            raise RoundMismatch("No round is active")
        if base_position(round_tag) != base_position(state.active_round):
            raise RoundMismatch(f"Round {state.active_round} is active, not {round_tag}")
        if not state.bidding_open:
            raise BiddingClosed()

        connection = self.registry.get(connection_id)
        if connection is None or not connection.registered:
            raise NotRegistered()
        if not connection.is_bidder:
            raise NotAuthorized()
        participant_id = connection.participant_id

        if not state.is_pending(participant_id):
            if state.sub_auction_index > 1:
                raise AlreadyWon()
            raise NotAuthorized("You are not enrolled in this round")

        existing = state.sealed_bids.get(participant_id)
        if existing is not None and existing.connection_id != connection_id:
            raise DuplicateBid()

        parsed = parse_amount(amount)
        if not slot_id or parsed is None or parsed <= 0:
            raise InvalidBid()

        if slot_id not in state.remaining_slots:
            raise SlotUnavailable(f"Slot {slot_id} is not up for auction")

        try:
            balance = await self.gateway.get_participant_balance(participant_id)
        except NotFound:
            raise NotAuthorized("Participant not found, please sign in again")
        if balance < self.strategy.max_cost(parsed):
            raise InsufficientCredits(f"Insufficient credits: {balance} available")

        return SealedBid(
            participant_id=participant_id,
            connection_id=connection_id,
            slot_id=slot_id,
            amount=parsed,
            round_tag=state.active_round,
            sub_auction_index=state.sub_auction_index,
        )

    def bid_status(self) -> dict:
        return self.state.bid_status()

    async def _broadcast_bid_status(self):
        await self.registry.broadcast("bid_status_update", self.state.bid_status())

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_sub_auction(self) -> Optional[List[WinResult]]:
        async with self._lock:
            return await self._resolve()

    async def _resolve(self) -> Optional[List[WinResult]]:
        state = self.state
        if not state.auction_active or not state.bidding_open:
            return None

        state.bidding_open = False
        round_tag = state.active_round
        index = state.sub_auction_index

        wins = self.strategy.resolve(
            state.counted_bids(),
            list(state.remaining_slots),
            dict(state.pending_participants),
            self.rng,
        )

        try:
            await self.gateway.record_auction_wins(round_tag, wins)
        except PersistenceError as e:
            # Nothing was applied; keep the bids so a forced close can retry
            logger.error(f"Resolution of {round_tag}/{index} not saved: {e.reason}")
            state.bidding_open = True
            await self.registry.broadcast("resolution_failed", {
                "round": round_tag,
                "subAuctionIndex": index,
                "reason": e.reason,
            }, predicate=lambda c: c.role == ROLE_OPERATOR)
            return None

        state.apply_wins(wins)
        continues = not state.is_round_exhausted()
        for win in wins:
            logger.info(f"{win.display_name} wins {win.slot_id} for {win.final_cost}")

        await self.registry.broadcast("sub_auction_resolved", {
            "round": round_tag,
            "subAuctionIndex": index,
            "results": [w.to_dict() for w in wins],
            "continues": continues,
        })

        # Wins are committed: advance before anything else can fail
        if continues:
            state.sub_auction_index += 1
            if self.sub_auction_pause > 0:
                self._advance_task = asyncio.create_task(
                    self._advance_after_pause(round_tag, state.sub_auction_index)
                )
            else:
                await self._open_sub_auction()
        else:
            await self._close_round(completed=True)

        await self._notify_winners(wins)
        return wins

    async def _notify_winners(self, wins: List[WinResult]):
        """Tell each winner what they won and their new balance. Best effort."""
        for win in wins:
            await self.registry.send_to_participant(win.participant_id, "participant_won_exit", {
                "slotId": win.slot_id,
                "amount": win.final_cost,
            })
            try:
                balance = await self.gateway.get_participant_balance(win.participant_id)
            except (AuctionError, SQLAlchemyError) as e:
                logger.warning(f"Balance of {win.participant_id} not sent: {e}")
                continue
            await self.registry.send_to_participant(win.participant_id, "balances_updated", {
                "balance": balance,
            })

    async def _advance_after_pause(self, round_tag: str, index: int):
        await asyncio.sleep(self.sub_auction_pause)
        async with self._lock:
            state = self.state
            if (
                not state.auction_active
                or state.bidding_open
                or state.active_round != round_tag
                or state.sub_auction_index != index
            ):
                return
            await self._open_sub_auction()

    def _cancel_advance(self):
        task = self._advance_task
        self._advance_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    async def register_connection(
        self,
        connection_id: str,
        display_name: str,
        role: str,
        participant_id: Optional[str] = None,
    ) -> Optional[Connection]:
        try:
            connection = await self.registry.register(connection_id, display_name, role, participant_id)
        except AuctionError as e:
            logger.info(f"Registration of {connection_id} rejected: {e.code}")
            payload = e.to_payload()
            payload["reauthenticate"] = True
            await self.registry.send(connection_id, "registration_rejected", payload)
            return None

        async with self._lock:
            await self.registry.send(connection_id, "registered", {
                "success": True,
                "gameState": self.snapshot(),
            })
            if self.state.bidding_open and self._is_eligible(connection):
                await self.registry.send(connection_id, "sub_auction_started", {
                    "round": self.state.active_round,
                    "subAuctionIndex": self.state.sub_auction_index,
                    "remainingSlots": [s.to_dict() for s in self.state.remaining_slots.values()],
                    "pendingParticipantIds": list(self.state.pending_participants),
                })
        return connection

    async def handle_disconnect(self, connection_id: str):
        async with self._lock:
            discarded = self.state.discard_bids_for_connection(connection_id)
            await self.registry.unregister(connection_id)
            if discarded is not None and self.state.bidding_open:
                await self._broadcast_bid_status()

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def ensure_not_busy(self):
        """Setup operations must not change the round's snapshots."""
        if self.state.auction_active:
            raise SystemIsBusy(f"Round {self.state.active_round} is in progress")

    async def reset(self, level: str) -> str:
        if level not in RESET_LEVELS:
            raise InvalidResetLevel()

        async with self._lock:
            if level == RESET_ROUND:
                round_tag = self.state.active_round
                if round_tag is None:
                    return "No active round"
                await self.gateway.clear_round(round_tag)
                await self._close_round(completed=False)
                return f"Round {round_tag} reset"

            if level == RESET_AUCTIONS:
                await self.gateway.reset_auctions()
                await self._close_round(completed=False, announce=False)
                self.state.reset()
                await self.registry.broadcast("auctions_reset", {
                    "initialCredits": self.gateway.initial_credits,
                })
                for connection in list(self.registry.connections.values()):
                    if connection.is_bidder:
                        await self.registry.send(connection.connection_id, "balances_updated", {
                            "balance": self.gateway.initial_credits,
                        })
                logger.info("All auctions reset")
                return "All auctions reset"

            await self.gateway.reset_all()
            await self._close_round(completed=False, announce=False)
            self.state.reset()
            for connection in self.registry.unverify_participants():
                await self.registry.send(connection.connection_id, "reauthenticate", {
                    "reason": "The game was reset, please sign in again",
                })
            await self.registry.broadcast("system_reset", {})
            logger.info("Full system reset")
            return "System fully reset"

    def snapshot(self) -> dict:
        snapshot = self.state.snapshot()
        snapshot["bidStatus"] = self.state.bid_status()
        snapshot["connections"] = self.registry.public_list()
        return snapshot

    def _push(self, event: str, payload: dict, participant_ids):
        try:
            self.dispatcher.dispatch(event, payload, participant_ids)
        except Exception as e:
            logger.warning(f"Push of {event} could not be scheduled: {e}")

    async def shutdown(self):
        self._cancel_advance()
        await self.dispatcher.aclose()
