"""
Tests for weekly attendance recording.
"""
import asyncio
import pytest
import pytest_asyncio
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from backend.database.db import Base
from backend.database.models import Attendance
from backend.services import attendance_service, data_service


@pytest_asyncio.fixture
async def season(db_session):
    await data_service.ensure_app_settings(db_session)
    season = await data_service.create_season(db_session, "Season 1")
    await data_service.set_current_season(db_session, season["id"])
    return season


@pytest_asyncio.fixture
async def team(db_session, season):
    division = await data_service.create_division(db_session, season["id"], "Beginner")
    return await data_service.create_team(
        db_session,
        season["id"],
        "Sand Storm",
        division_id=division["id"],
        player1_name="Alex",
        player2_name="Jordan",
    )


async def _row_count(db_session):
    return await db_session.scalar(select(func.count()).select_from(Attendance))


@pytest.mark.parametrize("value", [1, "3", 2.0, " 7 "])
def test_parse_week_accepts_positive_whole_numbers(value):
    assert attendance_service.parse_week(value) == int(float(str(value).strip()))


@pytest.mark.parametrize("value", [None, "", "abc", 0, -1, 1.5, float("inf"), float("nan"), True])
def test_parse_week_rejects_invalid(value):
    with pytest.raises(ValueError, match="Week required"):
        attendance_service.parse_week(value)


def test_build_player_list_sorted_and_skips_empty_slots():
    teams = [
        {"id": "t1", "division_id": "d1", "team_name": "Sand Storm",
         "player1_name": "zoe", "player2_name": "  "},
        {"id": "t2", "division_id": None, "team_name": "Net Gains",
         "player1_name": "Alex", "player2_name": "bea"},
    ]
    players = attendance_service.build_player_list(teams)

    assert [p["player_name"] for p in players] == ["Alex", "bea", "zoe"]
    assert players[0] == {
        "team_id": "t2",
        "division_id": None,
        "team_name": "Net Gains",
        "player": 1,
        "player_name": "Alex",
    }


def test_filter_players_matches_player_or_team():
    players = [
        {"player_name": "Alex", "team_name": "Sand Storm"},
        {"player_name": "Jordan", "team_name": "Net Gains"},
    ]
    assert attendance_service.filter_players(players, "") == players
    assert attendance_service.filter_players(players, "STORM") == [players[0]]
    assert attendance_service.filter_players(players, "jor") == [players[1]]


@pytest.mark.asyncio
async def test_first_submission_marks_teammate_in(db_session, season, team):
    record = await attendance_service.record_attendance(
        db_session, season["id"], 1, team["id"], 1, "OUT"
    )
    assert record["player1_in"] is False
    assert record["player2_in"] is True
    assert record["division_id"] == team["division_id"]


@pytest.mark.asyncio
async def test_player_one_does_not_change_player_two(db_session, season, team):
    await attendance_service.record_attendance(db_session, season["id"], 2, team["id"], 2, "OUT")

    for status in ["IN", "OUT", "IN"]:
        record = await attendance_service.record_attendance(
            db_session, season["id"], 2, team["id"], 1, status
        )
        assert record["player2_in"] is False
        assert record["player1_in"] is (status == "IN")


@pytest.mark.asyncio
async def test_player_two_does_not_change_player_one(db_session, season, team):
    await attendance_service.record_attendance(db_session, season["id"], 2, team["id"], 1, "OUT")
    record = await attendance_service.record_attendance(
        db_session, season["id"], 2, team["id"], 2, "IN"
    )
    assert record["player1_in"] is False
    assert record["player2_in"] is True


@pytest.mark.asyncio
async def test_one_row_per_season_week_team(db_session, season, team):
    for player, status in [(1, "IN"), (2, "OUT"), (1, "OUT"), (2, "IN"), (1, "IN")]:
        await attendance_service.record_attendance(
            db_session, season["id"], 4, team["id"], player, status
        )
    assert await _row_count(db_session) == 1

    await attendance_service.record_attendance(db_session, season["id"], 5, team["id"], 1, "IN")
    assert await _row_count(db_session) == 2


@pytest.mark.asyncio
async def test_null_teammate_flag_is_treated_as_in(db_session, season, team):
    db_session.add(Attendance(season_id=season["id"], week=3, team_id=team["id"]))
    await db_session.commit()

    record = await attendance_service.record_attendance(
        db_session, season["id"], 3, team["id"], 1, "OUT"
    )
    assert record["player2_in"] is True
    assert await _row_count(db_session) == 1


@pytest.mark.asyncio
async def test_invalid_inputs_write_nothing(db_session, season, team):
    with pytest.raises(ValueError):
        await attendance_service.record_attendance(db_session, season["id"], 0, team["id"], 1, "IN")
    with pytest.raises(ValueError):
        await attendance_service.record_attendance(db_session, season["id"], 1, team["id"], 3, "IN")
    with pytest.raises(ValueError):
        await attendance_service.record_attendance(
            db_session, season["id"], 1, team["id"], 1, "MAYBE"
        )
    assert await _row_count(db_session) == 0


@pytest.mark.asyncio
async def test_team_from_other_season_rejected(db_session, season, team):
    other = await data_service.create_season(db_session, "Season 2")
    with pytest.raises(LookupError):
        await attendance_service.record_attendance(db_session, other["id"], 1, team["id"], 1, "IN")


@pytest.mark.asyncio
async def test_week_attendance_status_map(db_session, season, team):
    await attendance_service.record_attendance(db_session, season["id"], 1, team["id"], 1, "OUT")

    week = await attendance_service.get_week_attendance(db_session, season["id"], 1)
    assert week["week"] == 1
    assert len(week["records"]) == 1
    assert week["statuses"] == {f"{team['id']}-1": "OUT", f"{team['id']}-2": "IN"}

    empty = await attendance_service.get_week_attendance(db_session, season["id"], 2)
    assert empty["records"] == []
    assert empty["statuses"] == {}


@pytest.mark.asyncio
async def test_list_season_players_with_query(db_session, season, team):
    players = await attendance_service.list_season_players(db_session, season["id"])
    assert [p["player_name"] for p in players] == ["Alex", "Jordan"]

    filtered = await attendance_service.list_season_players(db_session, season["id"], "jordan")
    assert [(p["player_name"], p["player"]) for p in filtered] == [("Jordan", 2)]


@pytest.mark.asyncio
async def test_row_created_after_read_keeps_other_players_flag(db_session, season, team, monkeypatch):
    # Another device inserts the row after this request has already read "no row"
    db_session.add(Attendance(
        season_id=season["id"], week=6, team_id=team["id"], player1_in=True, player2_in=False
    ))
    await db_session.commit()

    real_get_row = attendance_service._get_row
    reads = []

    async def stale_first_read(*args):
        reads.append(args)
        if len(reads) == 1:
            return None
        return await real_get_row(*args)

    monkeypatch.setattr(attendance_service, "_get_row", stale_first_read)

    record = await attendance_service.record_attendance(
        db_session, season["id"], 6, team["id"], 1, "OUT"
    )
    assert record["player1_in"] is False
    assert record["player2_in"] is False
    assert await _row_count(db_session) == 1


@pytest.mark.asyncio
async def test_concurrent_first_submissions_both_land(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'attendance.db'}", poolclass=NullPool)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_maker() as setup:
        season = await data_service.create_season(setup, "Season 1")
        team = await data_service.create_team(
            setup, season["id"], "Sand Storm", player1_name="Alex", player2_name="Jordan"
        )

    async def mark(player, status):
        async with session_maker() as session:
            return await attendance_service.record_attendance(
                session, season["id"], 1, team["id"], player, status
            )

    results = await asyncio.gather(mark(1, "OUT"), mark(2, "OUT"))

    async with session_maker() as check:
        final = await attendance_service.get_attendance_row(check, season["id"], 1, team["id"])
        count = await check.scalar(select(func.count()).select_from(Attendance))
    await engine.dispose()

    assert len(results) == 2
    assert count == 1
    assert final["player1_in"] is False
    assert final["player2_in"] is False
