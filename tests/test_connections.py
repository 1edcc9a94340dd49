"""Tests for connections.py"""

import asyncio

import pytest

from support import FakeTransport, open_gateway, seed

from fantagts.services.connections import ConnectionRegistry, CLOSE_REPLACED
from fantagts.services.errors import NotAuthorized, ValidationError


class BrokenTransport(FakeTransport):
    async def send_json(self, message):
        raise ConnectionResetError("peer gone")


async def _registry(gateway):
    await seed(gateway)
    return ConnectionRegistry(gateway)


class TestRegistration:
    """Tests for registering realtime connections."""

    def test_participant_is_verified(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                transport = FakeTransport()
                registry.attach("c1", transport)
                connection = await registry.register("c1", None, "participant", "anna")
                return connection, transport

        connection, transport = asyncio.run(scenario())
        assert connection.verified is True
        assert connection.is_bidder is True
        assert connection.display_name == "Anna"
        assert transport.last("connections_update")["connections"][0]["participantId"] == "anna"

    def test_unknown_participant_rejected(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                registry.attach("c1", FakeTransport())
                with pytest.raises(NotAuthorized):
                    await registry.register("c1", "Zed", "participant", "zed")
                with pytest.raises(NotAuthorized):
                    await registry.register("c1", "Nobody", "participant", None)
                return registry

        registry = asyncio.run(scenario())
        assert registry.public_list() == []
        assert registry.get("c1").registered is False

    def test_removed_participant_rejected(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                await gateway.delete_participant("anna")
                registry.attach("c1", FakeTransport())
                with pytest.raises(NotAuthorized):
                    await registry.register("c1", "Anna", "participant", "anna")

        asyncio.run(scenario())

    def test_participant_from_previous_season_rejected(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                await gateway.set_config("session_year", "2027")
                registry.attach("c1", FakeTransport())
                with pytest.raises(NotAuthorized):
                    await registry.register("c1", "Anna", "participant", "anna")

        asyncio.run(scenario())

    def test_unknown_role(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                registry.attach("c1", FakeTransport())
                with pytest.raises(ValidationError):
                    await registry.register("c1", "Anna", "referee")

        asyncio.run(scenario())

    def test_observer_cannot_bid(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                registry.attach("c1", FakeTransport())
                return await registry.register("c1", "Screen", "observer", "anna")

        connection = asyncio.run(scenario())
        assert connection.registered is True
        assert connection.participant_id is None
        assert connection.is_bidder is False


class TestSingleConnectionPerParticipant:

    def test_newer_connection_replaces_older(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                laptop, phone = FakeTransport(), FakeTransport()
                registry.attach("laptop", laptop)
                registry.attach("phone", phone)
                await registry.register("laptop", "Anna", "participant", "anna")
                await registry.register("phone", "Anna", "participant", "anna")
                return registry, laptop, phone

        registry, laptop, phone = asyncio.run(scenario())
        assert laptop.last("session_replaced") is not None
        assert laptop.closed_with == CLOSE_REPLACED
        assert registry.get("laptop") is None
        assert [c.connection_id for c in registry.participant_connections("anna")] == ["phone"]
        assert len(registry.public_list()) == 1


class TestDelivery:

    def test_broadcast_skips_unregistered_and_survives_failures(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                pending, broken, watcher = FakeTransport(), BrokenTransport(), FakeTransport()
                registry.attach("pending", pending)
                registry.attach("broken", broken)
                registry.attach("watcher", watcher)
                await registry.register("broken", "Wall", "observer")
                await registry.register("watcher", "Desk", "operator")
                await registry.broadcast("round_started", {"round": "M1"})
                delivered = await registry.send("broken", "ping", {})
                return pending, watcher, delivered

        pending, watcher, delivered = asyncio.run(scenario())
        assert pending.sent == []
        assert watcher.last("round_started") == {"round": "M1"}
        assert delivered is False

    def test_unregister_announces(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                desk, anna = FakeTransport(), FakeTransport()
                registry.attach("desk", desk)
                registry.attach("anna", anna)
                await registry.register("desk", "Desk", "operator")
                await registry.register("anna", None, "participant", "anna")
                await registry.unregister("anna")
                await registry.unregister("anna")
                return desk

        desk = asyncio.run(scenario())
        assert desk.last("connections_update")["connections"] == [
            {"displayName": "Desk", "role": "operator", "participantId": None, "verified": False},
        ]

    def test_unverify_participants(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                registry = await _registry(gateway)
                registry.attach("desk", FakeTransport())
                registry.attach("anna", FakeTransport())
                await registry.register("desk", "Desk", "operator")
                await registry.register("anna", None, "participant", "anna")
                return registry, registry.unverify_participants()

        registry, dropped = asyncio.run(scenario())
        assert [c.connection_id for c in dropped] == ["anna"]
        assert registry.get("anna").is_bidder is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
