from fastapi import APIRouter, Depends
from typing import List

from ..deps import get_gateway, get_engine
from ...schemas.teams import TeamCreate, TeamResponse, TeamOverviewResponse
from ...schemas.auction import MessageResponse

router = APIRouter()


@router.get("/", response_model=List[TeamResponse])
async def list_teams(gateway=Depends(get_gateway)):
    """List all club teams, active or not."""
    return await gateway.list_teams()


@router.get("/overview", response_model=List[TeamOverviewResponse])
async def teams_overview(gateway=Depends(get_gateway)):
    """Active teams with how many slots were generated for each."""
    return await gateway.teams_overview()


@router.post("/", response_model=TeamResponse)
async def save_team(team: TeamCreate, gateway=Depends(get_gateway), engine=Depends(get_engine)):
    """Create or replace a team by number."""
    engine.ensure_not_busy()
    data = team.model_dump()
    number = data.pop("number")
    color = data.pop("color")
    return await gateway.upsert_team(number, color, data)


@router.delete("/{number}", response_model=MessageResponse)
async def delete_team(number: int, gateway=Depends(get_gateway), engine=Depends(get_engine)):
    engine.ensure_not_busy()
    await gateway.delete_team(number)
    return {"message": f"Team {number} deactivated"}
