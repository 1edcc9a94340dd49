"""Persistence gateway.

The auction engine only talks to storage through this class. The storage
technology is picked by the SQLAlchemy URL (SQLite file, in-memory SQLite or
PostgreSQL); nothing above this layer knows which one is in use.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, update, delete, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models import (
    Team, Participant, Slot, Substitution, AuctionRecord, MatchResult, ConfigEntry, POSITIONS
)
from .errors import NotFound, PersistenceError, InsufficientCredits, ValidationError
from .session_state import SlotInfo, ParticipantInfo, WinResult

logger = logging.getLogger(__name__)

SESSION_KEYS = ("session_year", "session_description", "session_started_at")


def slugify_participant_id(display_name: str) -> str:
    """'Mario Rossi!' -> 'mario_rossi'"""
    slug = re.sub(r"\s+", "_", display_name.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", slug)


def _as_dict(row) -> dict:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


def _slot_info(slot: Slot) -> SlotInfo:
    return SlotInfo(
        id=slot.id,
        position=slot.position,
        team_number=slot.team_number,
        color=slot.color,
        current_player=slot.current_player,
        total_score=slot.total_score,
    )


class PersistenceGateway:
    """Read/write contract used by the engine and the setup flows."""

    def __init__(self, session_factory: async_sessionmaker, initial_credits: int = 2000):
        self._session_factory = session_factory
        self.initial_credits = initial_credits

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def list_teams(self) -> List[dict]:
        async with self._session_factory() as session:
            result = await session.execute(select(Team).order_by(Team.number))
            return [_as_dict(t) for t in result.scalars().all()]

    async def list_active_teams(self) -> List[dict]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Team).where(Team.active.is_(True)).order_by(Team.number)
            )
            return [_as_dict(t) for t in result.scalars().all()]

    async def teams_overview(self) -> List[dict]:
        """Active teams with the number of slots generated for each."""
        async with self._session_factory() as session:
            counts = (
                select(Slot.team_number, func.count(Slot.id).label("slot_count"))
                .group_by(Slot.team_number)
                .subquery()
            )
            result = await session.execute(
                select(Team, func.coalesce(counts.c.slot_count, 0))
                .outerjoin(counts, counts.c.team_number == Team.number)
                .where(Team.active.is_(True))
                .order_by(Team.number)
            )
            overview = []
            for team, slot_count in result.all():
                data = _as_dict(team)
                data["slots_generated"] = slot_count
                overview.append(data)
            return overview

    async def upsert_team(self, number: int, color: str, players: Dict[str, Optional[str]]) -> dict:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(select(Team).where(Team.number == number))
                team = result.scalar_one_or_none()
                if team is None:
                    team = Team(number=number)
                    session.add(team)
                team.color = color
                team.active = True
                for position in POSITIONS:
                    setattr(team, position.lower(), players.get(position.lower()))
                await session.flush()
                await session.refresh(team)
                return _as_dict(team)

    async def delete_team(self, number: int):
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Team).where(Team.number == number).values(active=False)
                )
                if result.rowcount == 0:
                    raise NotFound(f"Team {number} not found")

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    async def list_participants(self) -> List[dict]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Participant)
                .where(Participant.active.is_(True))
                .order_by(Participant.display_name)
            )
            return [_as_dict(p) for p in result.scalars().all()]

    async def list_active_participants(self) -> List[ParticipantInfo]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Participant.id, Participant.display_name)
                    .where(Participant.active.is_(True))
                    .order_by(Participant.display_name)
                )
                return [ParticipantInfo(id=pid, display_name=name) for pid, name in result.all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read participants: {e}") from e

    async def participant_is_active(self, participant_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Participant.id).where(
                    Participant.id == participant_id, Participant.active.is_(True)
                )
            )
            return result.scalar_one_or_none() is not None

    async def count_active_participants(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(Participant.id)).where(Participant.active.is_(True))
            )
            return result.scalar_one()

    async def create_participant(
        self,
        display_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        credits: Optional[int] = None,
    ) -> dict:
        participant_id = slugify_participant_id(display_name)
        if not participant_id:
            raise ValidationError("Participant name must contain letters or digits")
        season = await self.get_config("session_year")

        async with self._session_factory() as session:
            async with session.begin():
                participant = await session.get(Participant, participant_id)
                if participant is None:
                    participant = Participant(id=participant_id)
                    session.add(participant)
                participant.display_name = display_name
                participant.email = email
                participant.phone = phone
                participant.credits = self.initial_credits if credits is None else credits
                participant.total_score = 0
                participant.season = season
                participant.active = True
                await session.flush()
                await session.refresh(participant)
                return _as_dict(participant)

    async def delete_participant(self, participant_id: str):
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Participant)
                    .where(Participant.id == participant_id)
                    .values(active=False)
                )
                if result.rowcount == 0:
                    raise NotFound(f"Participant {participant_id} not found")

    async def verify_participant(self, participant_id: str) -> Optional[ParticipantInfo]:
        """Return the participant if it exists, is active and belongs to the current session."""
        if not participant_id:
            return None
        try:
            season = await self.get_config("session_year")
            async with self._session_factory() as session:
                participant = await session.get(Participant, participant_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not verify {participant_id}: {e}") from e
        if participant is None or not participant.active or participant.season != season:
            return None
        return ParticipantInfo(id=participant.id, display_name=participant.display_name)

    async def get_participant_balance(self, participant_id: str) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Participant.credits).where(Participant.id == participant_id)
                )
                credits = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read balance of {participant_id}: {e}") from e
        if credits is None:
            raise NotFound(f"Participant {participant_id} not found")
        return credits

    async def debit_participant(self, participant_id: str, amount: int):
        async with self._session_factory() as session:
            async with session.begin():
                await self._debit(session, participant_id, amount)

    async def _debit(self, session, participant_id: str, amount: int):
        result = await session.execute(
            update(Participant)
            .where(and_(Participant.id == participant_id, Participant.credits >= amount))
            .values(credits=Participant.credits - amount)
        )
        if result.rowcount == 1:
            return
        exists = await session.get(Participant, participant_id)
        if exists is None:
            raise NotFound(f"Participant {participant_id} not found")
        raise InsufficientCredits(f"{participant_id} cannot pay {amount}")

    async def participant_roster(self, participant_id: str) -> List[dict]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    AuctionRecord.slot_id,
                    AuctionRecord.round,
                    AuctionRecord.final_cost,
                    Slot.position,
                    Slot.current_player,
                    Slot.color,
                    Slot.total_score,
                )
                .join(Slot, Slot.id == AuctionRecord.slot_id)
                .where(
                    AuctionRecord.participant_id == participant_id,
                    AuctionRecord.winner.is_(True),
                )
                .order_by(Slot.position)
            )
            return [dict(row._mapping) for row in result.all()]

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    async def list_slots_by_position(self, position: str) -> List[SlotInfo]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Slot)
                    .where(Slot.position == position, Slot.active.is_(True))
                    .order_by(Slot.team_number)
                )
                return [_slot_info(s) for s in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read {position} slots: {e}") from e

    async def list_slots(self, position: Optional[str] = None) -> List[dict]:
        async with self._session_factory() as session:
            query = select(Slot).order_by(Slot.position, Slot.team_number)
            if position:
                query = query.where(Slot.position == position)
            result = await session.execute(query)
            return [_as_dict(s) for s in result.scalars().all()]

    async def get_slot(self, slot_id: str) -> dict:
        async with self._session_factory() as session:
            slot = await session.get(Slot, slot_id)
            if slot is None:
                raise NotFound(f"Slot {slot_id} not found")
            return _as_dict(slot)

    async def regenerate_slots(self) -> int:
        """Destructively rebuild one slot per active team and position."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(select(Team).where(Team.active.is_(True)))
                    teams = result.scalars().all()

                    await session.execute(delete(Substitution))
                    await session.execute(delete(Slot))

                    created = 0
                    for team in teams:
                        for position in POSITIONS:
                            session.add(Slot(
                                id=f"{position}_{team.color.upper()}",
                                team_number=team.number,
                                color=team.color,
                                position=position,
                                current_player=team.player_for(position),
                                total_score=0,
                                active=True,
                            ))
                            created += 1
        except SQLAlchemyError as e:
            raise PersistenceError(f"Slot regeneration failed: {e}") from e

        logger.info(f"Regenerated {created} slots for {len(teams)} teams")
        return created

    # ------------------------------------------------------------------
    # Auction records
    # ------------------------------------------------------------------

    async def record_auction_wins(self, round_tag: str, wins: List[WinResult]):
        """Persist wins and their debits in one transaction.

        Either every record and every debit is applied, or none is.
        """
        if not wins:
            return
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    for win in wins:
                        session.add(AuctionRecord(
                            round=round_tag,
                            participant_id=win.participant_id,
                            slot_id=win.slot_id,
                            bid_amount=win.bid_amount,
                            final_cost=win.final_cost,
                            premium=win.premium,
                            winner=True,
                            shared=win.shared,
                        ))
                        await self._debit(session, win.participant_id, win.final_cost)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save results for {round_tag}: {e}") from e
        except (NotFound, InsufficientCredits) as e:
            raise PersistenceError(f"Could not save results for {round_tag}: {e.reason}") from e

    async def record_auction_win(
        self,
        round_tag: str,
        participant_id: str,
        slot_id: str,
        bid_amount: int,
        final_cost: int,
        premium: float = 0.0,
        shared: bool = False,
    ):
        await self.record_auction_wins(round_tag, [WinResult(
            participant_id=participant_id,
            display_name="",
            slot_id=slot_id,
            bid_amount=bid_amount,
            final_cost=final_cost,
            premium=premium,
            shared=shared,
        )])

    async def list_wins_for_round(self, round_tag: str) -> List[dict]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(
                        AuctionRecord,
                        Participant.display_name,
                        Slot.current_player,
                        Slot.color,
                    )
                    .join(Participant, Participant.id == AuctionRecord.participant_id)
                    .outerjoin(Slot, Slot.id == AuctionRecord.slot_id)
                    .where(AuctionRecord.round == round_tag, AuctionRecord.winner.is_(True))
                    .order_by(AuctionRecord.final_cost.desc(), AuctionRecord.id)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read results of {round_tag}: {e}") from e

        wins = []
        for record, display_name, player, color in rows:
            data = _as_dict(record)
            data.update(participant_name=display_name, current_player=player, color=color)
            wins.append(data)
        return wins

    async def clear_round(self, round_tag: str) -> int:
        """Delete a round's wins and refund what they cost."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(AuctionRecord).where(AuctionRecord.round == round_tag)
                    )
                    records = result.scalars().all()
                    for record in records:
                        if record.winner:
                            await session.execute(
                                update(Participant)
                                .where(Participant.id == record.participant_id)
                                .values(credits=Participant.credits + record.final_cost)
                            )
                        await session.delete(record)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not clear round {round_tag}: {e}") from e

        logger.info(f"Cleared {len(records)} auction records for round {round_tag}")
        return len(records)

    # ------------------------------------------------------------------
    # League
    # ------------------------------------------------------------------

    async def compute_standings(self) -> List[dict]:
        """Score desc, then credits spent asc."""
        async with self._session_factory() as session:
            score = func.coalesce(func.sum(Slot.total_score), 0).label("total_score")
            spent = func.coalesce(func.sum(AuctionRecord.final_cost), 0).label("credits_spent")
            result = await session.execute(
                select(
                    Participant.id,
                    Participant.display_name,
                    Participant.credits,
                    func.count(AuctionRecord.id).label("players_won"),
                    score,
                    spent,
                )
                .outerjoin(
                    AuctionRecord,
                    and_(
                        AuctionRecord.participant_id == Participant.id,
                        AuctionRecord.winner.is_(True),
                    ),
                )
                .outerjoin(Slot, Slot.id == AuctionRecord.slot_id)
                .where(Participant.active.is_(True))
                .group_by(Participant.id, Participant.display_name, Participant.credits)
                .order_by(score.desc(), spent.asc(), Participant.id)
            )
            standings = []
            for rank, row in enumerate(result.all(), start=1):
                entry = dict(row._mapping)
                entry["rank"] = rank
                standings.append(entry)
            return standings

    async def add_substitution(
        self,
        slot_id: str,
        new_player: str,
        from_turn: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> dict:
        async with self._session_factory() as session:
            async with session.begin():
                slot = await session.get(Slot, slot_id)
                if slot is None:
                    raise NotFound(f"Slot {slot_id} not found")
                substitution = Substitution(
                    slot_id=slot_id,
                    old_player=slot.current_player or "",
                    new_player=new_player,
                    from_turn=from_turn,
                    reason=reason,
                )
                session.add(substitution)
                slot.current_player = new_player
                await session.flush()
                await session.refresh(substitution)
                return _as_dict(substitution)

    async def list_substitutions(self, slot_id: Optional[str] = None) -> List[dict]:
        async with self._session_factory() as session:
            query = select(Substitution).order_by(Substitution.id.desc())
            if slot_id:
                query = query.where(Substitution.slot_id == slot_id)
            result = await session.execute(query)
            return [_as_dict(s) for s in result.scalars().all()]

    async def add_match_result(
        self,
        turn: int,
        team1_number: int,
        team2_number: int,
        result: Optional[str],
        winner_slot_ids: List[str],
        entered_by: Optional[str] = None,
    ) -> dict:
        """Store a club match and give one point to each winning slot."""
        async with self._session_factory() as session:
            async with session.begin():
                match = MatchResult(
                    turn=turn,
                    team1_number=team1_number,
                    team2_number=team2_number,
                    result=result,
                    winner_slot_ids=list(winner_slot_ids),
                    entered_by=entered_by,
                )
                session.add(match)
                if winner_slot_ids:
                    await session.execute(
                        update(Slot)
                        .where(Slot.id.in_(winner_slot_ids))
                        .values(total_score=Slot.total_score + 1)
                    )
                await session.flush()
                await session.refresh(match)
                return _as_dict(match)

    async def list_match_results(self, turn: Optional[int] = None) -> List[dict]:
        async with self._session_factory() as session:
            query = select(MatchResult).order_by(MatchResult.turn.desc(), MatchResult.id.desc())
            if turn is not None:
                query = query.where(MatchResult.turn == turn)
            result = await session.execute(query)
            return [_as_dict(m) for m in result.scalars().all()]

    # ------------------------------------------------------------------
    # Configuration and game session
    # ------------------------------------------------------------------

    async def get_config(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            entry = await session.get(ConfigEntry, key)
            return entry.value if entry else None

    async def list_config(self) -> List[dict]:
        async with self._session_factory() as session:
            result = await session.execute(select(ConfigEntry).order_by(ConfigEntry.key))
            return [_as_dict(c) for c in result.scalars().all()]

    async def set_config(self, key: str, value: str, description: Optional[str] = None):
        async with self._session_factory() as session:
            async with session.begin():
                await self._set_config(session, key, value, description)

    async def _set_config(self, session, key: str, value: str, description: Optional[str] = None):
        entry = await session.get(ConfigEntry, key)
        if entry is None:
            entry = ConfigEntry(key=key)
            session.add(entry)
        entry.value = value
        if description is not None:
            entry.description = description

    async def session_info(self) -> Dict[str, Optional[str]]:
        return {key: await self.get_config(key) for key in SESSION_KEYS}

    async def new_session(self, year: str, description: Optional[str] = None) -> Dict[str, str]:
        """Wipe all game data and start a new yearly session."""
        info = {
            "session_year": str(year),
            "session_description": description or f"FantaGTS {year}",
            "session_started_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._delete_game_data(session)
                    for key, value in info.items():
                        await self._set_config(session, key, value)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not start session {year}: {e}") from e

        logger.info(f"Started game session {year}")
        return info

    # ------------------------------------------------------------------
    # Resets
    # ------------------------------------------------------------------

    async def reset_auctions(self):
        """Drop every auction record, restore credits, zero all scores."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(delete(AuctionRecord))
                    await session.execute(
                        update(Participant).values(credits=self.initial_credits, total_score=0)
                    )
                    await session.execute(update(Slot).values(total_score=0))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Auction reset failed: {e}") from e

    async def reset_all(self):
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._delete_game_data(session)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Full reset failed: {e}") from e

    async def _delete_game_data(self, session):
        # Children first
        for model in (AuctionRecord, MatchResult, Substitution, Slot, Participant, Team):
            await session.execute(delete(model))

    async def export(self) -> dict:
        return {
            "teams": await self.list_teams(),
            "participants": await self.list_participants(),
            "auction_records": await self._list_auction_records(),
            "substitutions": await self.list_substitutions(),
            "match_results": await self.list_match_results(),
            "configuration": await self.list_config(),
            "standings": await self.compute_standings(),
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }

    async def _list_auction_records(self) -> List[dict]:
        async with self._session_factory() as session:
            result = await session.execute(select(AuctionRecord).order_by(AuctionRecord.id))
            return [_as_dict(r) for r in result.scalars().all()]
