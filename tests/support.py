"""Shared helpers for the auction tests."""

import random
import sys
import os
from contextlib import asynccontextmanager

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from fantagts.database import create_session_factory, init_db
from fantagts.models import POSITIONS
from fantagts.services.auction_engine import AuctionEngine
from fantagts.services.connections import ConnectionRegistry
from fantagts.services.gateway import PersistenceGateway

TEAM_COLORS = ["Red", "Blue", "Green"]
PARTICIPANT_NAMES = ["Anna", "Bruno", "Carla"]


class FakeTransport:
    """Stands in for a WebSocket: records what the server sends."""

    def __init__(self):
        self.sent = []
        self.closed_with = None

    async def send_json(self, message):
        self.sent.append(message)

    async def close(self, code=1000):
        self.closed_with = code

    def events(self, name=None):
        return [m["data"] for m in self.sent if name is None or m["event"] == name]

    def names(self):
        return [m["event"] for m in self.sent]

    def last(self, name):
        matching = self.events(name)
        return matching[-1] if matching else None


@asynccontextmanager
async def open_gateway(db_path, initial_credits=2000):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    await init_db(engine)
    try:
        yield PersistenceGateway(create_session_factory(engine), initial_credits)
    finally:
        await engine.dispose()


async def seed(gateway, colors=TEAM_COLORS, names=PARTICIPANT_NAMES):
    for number, color in enumerate(colors, start=1):
        players = {p.lower(): f"{color} {p}" for p in POSITIONS}
        await gateway.upsert_team(number, color, players)
    await gateway.regenerate_slots()
    for name in names:
        await gateway.create_participant(name)


def make_engine(gateway, seed=None, strategy=None, pause=0):
    return AuctionEngine(
        gateway=gateway,
        registry=ConnectionRegistry(gateway),
        strategy=strategy,
        rng=random.Random(seed),
        sub_auction_pause=pause,
    )


async def connect(engine, connection_id, role="participant", participant_id=None, name=None):
    transport = FakeTransport()
    engine.registry.attach(connection_id, transport)
    await engine.register_connection(connection_id, name or connection_id, role, participant_id)
    return transport


def unavailable_database():
    """Session factory stand-in for a database that cannot be reached."""
    raise OperationalError("SELECT 1", {}, Exception("database is locked"))
