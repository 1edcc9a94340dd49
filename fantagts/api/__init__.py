from fastapi import APIRouter
from .routes import teams, participants, slots, auction, league

api_router = APIRouter()

api_router.include_router(teams.router, prefix="/teams", tags=["teams"])
api_router.include_router(participants.router, prefix="/participants", tags=["participants"])
api_router.include_router(slots.router, prefix="/slots", tags=["slots"])
api_router.include_router(auction.router, prefix="/auction", tags=["auction"])
api_router.include_router(league.router, prefix="/league", tags=["league"])
