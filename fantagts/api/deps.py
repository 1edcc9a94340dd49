from fastapi import Request

from ..services.auction_engine import AuctionEngine
from ..services.gateway import PersistenceGateway
from ..services.notifications import NotificationDispatcher


def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.gateway


def get_engine(request: Request) -> AuctionEngine:
    return request.app.state.engine


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.engine.dispatcher
