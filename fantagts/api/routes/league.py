from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ..deps import get_gateway, get_engine
from ...schemas.league import (
    StandingEntry, MatchResultCreate, MatchResultResponse,
    SubstitutionCreate, SubstitutionResponse, SessionCreate, SessionInfo
)

router = APIRouter()


@router.get("/standings", response_model=List[StandingEntry])
async def standings(gateway=Depends(get_gateway)):
    """Ranked by total score, then by fewer credits spent."""
    return await gateway.compute_standings()


@router.get("/matches", response_model=List[MatchResultResponse])
async def list_matches(turn: Optional[int] = Query(None), gateway=Depends(get_gateway)):
    return await gateway.list_match_results(turn)


@router.post("/matches", response_model=MatchResultResponse)
async def add_match(match: MatchResultCreate, gateway=Depends(get_gateway)):
    """Record a club match; every winning slot scores one point."""
    return await gateway.add_match_result(**match.model_dump())


@router.get("/substitutions", response_model=List[SubstitutionResponse])
async def list_substitutions(slot_id: Optional[str] = Query(None), gateway=Depends(get_gateway)):
    return await gateway.list_substitutions(slot_id)


@router.post("/substitutions", response_model=SubstitutionResponse)
async def add_substitution(substitution: SubstitutionCreate, gateway=Depends(get_gateway)):
    return await gateway.add_substitution(**substitution.model_dump())


@router.get("/session", response_model=SessionInfo)
async def session_info(gateway=Depends(get_gateway)):
    return await gateway.session_info()


@router.post("/session", response_model=SessionInfo)
async def new_session(session: SessionCreate, gateway=Depends(get_gateway), engine=Depends(get_engine)):
    """Start a new yearly session. Wipes every team, participant and result."""
    engine.ensure_not_busy()
    info = await gateway.new_session(session.year, session.description)
    await engine.reset("full")
    return info


@router.get("/export")
async def export(gateway=Depends(get_gateway)):
    return await gateway.export()
