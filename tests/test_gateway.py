"""Tests for gateway.py"""

import asyncio

import pytest

from support import open_gateway, seed, unavailable_database

from fantagts.models import POSITIONS
from fantagts.services.errors import InsufficientCredits, NotFound, PersistenceError, ValidationError
from fantagts.services.gateway import slugify_participant_id
from fantagts.services.session_state import WinResult


def _win(participant_id, slot_id, cost):
    return WinResult(participant_id, participant_id.title(), slot_id, cost, cost)


class TestParticipants:
    """Tests for participant records and credits."""

    def test_slugify(self):
        assert slugify_participant_id("Mario Rossi") == "mario_rossi"
        assert slugify_participant_id("  Anna  Maria! ") == "anna_maria"
        assert slugify_participant_id("?!") == ""

    def test_create_uses_initial_credits(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite", initial_credits=1500) as gateway:
                created = await gateway.create_participant("Mario Rossi", email="mario@example.org")
                custom = await gateway.create_participant("Luca", credits=900)
                with pytest.raises(ValidationError):
                    await gateway.create_participant("!!")
                return created, custom, await gateway.count_active_participants()

        created, custom, count = asyncio.run(scenario())
        assert created["id"] == "mario_rossi"
        assert created["credits"] == 1500
        assert created["active"] is True
        assert created["created_at"] is not None
        assert custom["credits"] == 900
        assert count == 2

    def test_soft_delete(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                await gateway.delete_participant("bruno")
                with pytest.raises(NotFound):
                    await gateway.delete_participant("zed")
                return (
                    [p["id"] for p in await gateway.list_participants()],
                    [p.id for p in await gateway.list_active_participants()],
                    await gateway.verify_participant("bruno"),
                )

        listed, active, verified = asyncio.run(scenario())
        assert listed == ["anna", "carla"]
        assert active == ["anna", "carla"]
        assert verified is None

    def test_debit(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                await gateway.debit_participant("anna", 500)
                with pytest.raises(InsufficientCredits):
                    await gateway.debit_participant("anna", 1501)
                with pytest.raises(NotFound):
                    await gateway.debit_participant("zed", 1)
                with pytest.raises(NotFound):
                    await gateway.get_participant_balance("zed")
                return await gateway.get_participant_balance("anna")

        assert asyncio.run(scenario()) == 1500


class TestStorageFailures:
    """Reads used during a round report storage failures as PersistenceError."""

    def test_reads_wrap_database_errors(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                gateway._session_factory = unavailable_database
                reads = [
                    gateway.get_participant_balance("anna"),
                    gateway.verify_participant("anna"),
                    gateway.list_slots_by_position("M1"),
                    gateway.list_active_participants(),
                    gateway.list_wins_for_round("M1"),
                ]
                failures = []
                for read in reads:
                    with pytest.raises(PersistenceError) as excinfo:
                        await read
                    failures.append(excinfo.value.code)
                return failures

        assert asyncio.run(scenario()) == ["persistence_error"] * 5

    def test_participant_is_active(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                await gateway.delete_participant("carla")
                return [await gateway.participant_is_active(p) for p in ("anna", "carla", "zed")]

        assert asyncio.run(scenario()) == [True, False, False]


class TestTeamsAndSlots:
    """Tests for team setup and slot generation."""

    def test_regenerate_slots(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway, names=[])
                await gateway.upsert_team(4, "Yellow", {"m1": "Someone"})
                await gateway.delete_team(4)
                created = await gateway.regenerate_slots()
                return (
                    created,
                    await gateway.list_slots("F1"),
                    await gateway.get_slot("M7_BLUE"),
                    await gateway.teams_overview(),
                )

        created, f1, m7_blue, overview = asyncio.run(scenario())
        assert created == 3 * len(POSITIONS)
        assert [s["id"] for s in f1] == ["F1_RED", "F1_BLUE", "F1_GREEN"]
        assert m7_blue["current_player"] == "Blue M7"
        assert m7_blue["team_number"] == 2
        assert [(t["number"], t["slots_generated"]) for t in overview] == [(1, 10), (2, 10), (3, 10)]

    def test_upsert_replaces_team(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await gateway.upsert_team(1, "Red", {"m1": "Rossi"})
                updated = await gateway.upsert_team(1, "Orange", {"f1": "Bianchi"})
                return updated, await gateway.list_teams()

        updated, teams = asyncio.run(scenario())
        assert len(teams) == 1
        assert updated["color"] == "Orange"
        assert updated["m1"] is None
        assert updated["f1"] == "Bianchi"

    def test_missing_records(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                with pytest.raises(NotFound):
                    await gateway.delete_team(9)
                with pytest.raises(NotFound):
                    await gateway.get_slot("M1_NOPE")
                with pytest.raises(NotFound):
                    await gateway.add_substitution("M1_NOPE", "Someone")

        asyncio.run(scenario())


class TestAuctionRecords:
    """Tests for atomic result persistence."""

    def test_wins_and_debits_are_atomic(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                with pytest.raises(PersistenceError):
                    await gateway.record_auction_wins("M1", [
                        _win("anna", "M1_RED", 100),
                        _win("bruno", "M1_BLUE", 5000),
                    ])
                return (
                    await gateway.list_wins_for_round("M1"),
                    await gateway.get_participant_balance("anna"),
                )

        wins, balance = asyncio.run(scenario())
        assert wins == []
        assert balance == 2000

    def test_record_and_clear_round(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                await gateway.record_auction_wins("M1", [
                    _win("anna", "M1_RED", 100),
                    _win("bruno", "M1_BLUE", 300),
                ])
                await gateway.record_auction_win("M2", "anna", "M2_RED", 40, 40)
                wins = await gateway.list_wins_for_round("M1")
                roster = await gateway.participant_roster("anna")
                cleared = await gateway.clear_round("M1")
                balances = [await gateway.get_participant_balance(p) for p in ("anna", "bruno")]
                return wins, roster, cleared, balances, await gateway.list_wins_for_round("M2")

        wins, roster, cleared, balances, m2 = asyncio.run(scenario())
        assert [(w["participant_id"], w["participant_name"], w["final_cost"]) for w in wins] == [
            ("bruno", "Bruno", 300),
            ("anna", "Anna", 100),
        ]
        assert wins[0]["current_player"] == "Blue M1"
        assert [r["slot_id"] for r in roster] == ["M1_RED", "M2_RED"]
        assert cleared == 2
        assert balances == [1960, 2000]
        assert len(m2) == 1


class TestLeague:
    """Tests for match results, substitutions and standings."""

    def test_standings_order(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                await gateway.record_auction_wins("M1", [
                    _win("anna", "M1_RED", 300),
                    _win("bruno", "M1_BLUE", 100),
                    _win("carla", "M1_GREEN", 50),
                ])
                await gateway.add_match_result(1, 1, 2, "2-1", ["M1_RED", "M1_BLUE"], entered_by="desk")
                await gateway.add_match_result(2, 1, 3, "0-2", ["M1_RED"])
                return await gateway.compute_standings(), await gateway.list_match_results()

        standings, matches = asyncio.run(scenario())
        assert [(s["id"], s["total_score"], s["credits_spent"], s["rank"]) for s in standings] == [
            ("anna", 2, 300, 1),
            ("bruno", 1, 100, 2),
            ("carla", 0, 50, 3),
        ]
        assert standings[0]["players_won"] == 1
        assert [m["turn"] for m in matches] == [2, 1]
        assert matches[1]["winner_slot_ids"] == ["M1_RED", "M1_BLUE"]

    def test_equal_score_cheaper_roster_first(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                await gateway.record_auction_wins("M1", [
                    _win("anna", "M1_RED", 300),
                    _win("bruno", "M1_BLUE", 100),
                ])
                return await gateway.compute_standings()

        standings = asyncio.run(scenario())
        assert [s["id"] for s in standings] == ["carla", "bruno", "anna"]

    def test_substitution(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway, names=[])
                sub = await gateway.add_substitution("M3_GREEN", "Verdi", from_turn=4, reason="injury")
                return sub, await gateway.get_slot("M3_GREEN"), await gateway.list_substitutions("M3_GREEN")

        sub, slot, history = asyncio.run(scenario())
        assert sub["old_player"] == "Green M3"
        assert sub["new_player"] == "Verdi"
        assert slot["current_player"] == "Verdi"
        assert [h["id"] for h in history] == [sub["id"]]


class TestSessionAndResets:
    """Tests for yearly sessions, resets and export."""

    def test_new_session_wipes_and_stamps(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                info = await gateway.new_session("2027")
                wiped = (len(await gateway.list_teams()), len(await gateway.list_participants()))
                created = await gateway.create_participant("Dario")
                return info, wiped, created, await gateway.session_info()

        info, wiped, created, session = asyncio.run(scenario())
        assert wiped == (0, 0)
        assert info["session_description"] == "FantaGTS 2027"
        assert created["season"] == "2027"
        assert session["session_year"] == "2027"

    def test_reset_auctions_keeps_setup(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                await gateway.record_auction_wins("M1", [_win("anna", "M1_RED", 300)])
                await gateway.add_match_result(1, 1, 2, "1-0", ["M1_RED"])
                await gateway.reset_auctions()
                return (
                    await gateway.get_participant_balance("anna"),
                    await gateway.get_slot("M1_RED"),
                    len(await gateway.list_teams()),
                    await gateway.list_wins_for_round("M1"),
                )

        balance, slot, teams, wins = asyncio.run(scenario())
        assert balance == 2000
        assert slot["total_score"] == 0
        assert teams == 3
        assert wins == []

    def test_export(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                await gateway.set_config("session_year", "2026", "Current season")
                await gateway.record_auction_wins("M1", [_win("anna", "M1_RED", 300)])
                return await gateway.export()

        data = asyncio.run(scenario())
        assert set(data) == {
            "teams", "participants", "auction_records", "substitutions",
            "match_results", "configuration", "standings", "exported_at",
        }
        assert len(data["teams"]) == 3
        assert data["auction_records"][0]["slot_id"] == "M1_RED"
        assert data["configuration"][0]["description"] == "Current season"

    def test_reset_all(self, tmp_path):
        async def scenario():
            async with open_gateway(tmp_path / "db.sqlite") as gateway:
                await seed(gateway)
                await gateway.set_config("session_year", "2026")
                await gateway.reset_all()
                return (
                    len(await gateway.list_teams()),
                    len(await gateway.list_slots()),
                    await gateway.get_config("session_year"),
                )

        assert asyncio.run(scenario()) == (0, 0, "2026")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
