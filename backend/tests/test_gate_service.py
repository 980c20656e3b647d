"""
Tests for the season gate, league unlock and admin unlock.
"""
import pytest
import pytest_asyncio
from backend.database.models import User
from backend.services import data_service, gate_service


@pytest_asyncio.fixture
async def user(db_session):
    user = User(is_anonymous=True)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def season(db_session):
    await data_service.ensure_app_settings(db_session, league_code="beach")
    season = await data_service.create_season(db_session, "Season 1")
    await data_service.set_current_season(db_session, season["id"])
    return season


@pytest.mark.parametrize(
    "current,accepted,locked",
    [
        ("s1", "s1", False),
        ("s1", "s0", True),
        ("s1", None, True),
        ("s1", "  ", True),
        (None, "s1", True),
        (None, None, True),
    ],
)
def test_evaluate_gate(current, accepted, locked):
    decision = gate_service.evaluate_gate(current, accepted)
    assert decision["locked"] is locked
    assert decision["clear_accepted"] is locked
    assert decision["current_season_id"] == current


@pytest.mark.asyncio
async def test_gate_unlocked_for_current_season(db_session, season):
    decision = await gate_service.check_season_gate(db_session, season["id"])
    assert decision == {
        "locked": False,
        "current_season_id": season["id"],
        "clear_accepted": False,
    }


@pytest.mark.asyncio
async def test_gate_locks_after_season_change(db_session, season):
    new_season = await data_service.create_season(db_session, "Season 2")
    await data_service.set_current_season(db_session, new_season["id"])

    decision = await gate_service.check_season_gate(db_session, season["id"])
    assert decision["locked"] is True
    assert decision["clear_accepted"] is True


@pytest.mark.asyncio
async def test_gate_fails_closed_on_error(db_session, monkeypatch):
    async def broken(session):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(data_service, "get_current_season_id", broken)
    decision = await gate_service.check_season_gate(db_session, "s1")
    assert decision["locked"] is True
    assert decision["current_season_id"] is None


@pytest.mark.asyncio
async def test_gate_locked_without_settings_row(db_session):
    decision = await gate_service.check_season_gate(db_session, "s1")
    assert decision["locked"] is True


@pytest.mark.asyncio
async def test_unlock_league_success_creates_profile(db_session, season, user):
    result = await gate_service.unlock_league(db_session, user.id, "  beach ")
    assert result == {"accepted_season_id": season["id"]}

    profile = await data_service.get_user_season_profile(db_session, user.id, season["id"])
    assert profile is not None


@pytest.mark.asyncio
async def test_unlock_league_empty_code(db_session, season, user):
    with pytest.raises(ValueError):
        await gate_service.unlock_league(db_session, user.id, "   ")


@pytest.mark.asyncio
async def test_unlock_league_wrong_code(db_session, season, user):
    with pytest.raises(gate_service.InvalidCodeError):
        await gate_service.unlock_league(db_session, user.id, "sand")
    assert await data_service.get_user_season_profile(db_session, user.id, season["id"]) is None


@pytest.mark.asyncio
async def test_unlock_league_not_ready(db_session, user):
    await data_service.ensure_app_settings(db_session, league_code="beach")
    with pytest.raises(gate_service.LeagueNotReadyError):
        await gate_service.unlock_league(db_session, user.id, "beach")


@pytest.mark.asyncio
async def test_admin_unlock_and_lock(db_session, user, monkeypatch):
    monkeypatch.delenv("ADMIN_UNLOCK_CODE", raising=False)
    assert await gate_service.is_admin_unlocked(db_session, user.id) is False

    session_info = await gate_service.unlock_admin(db_session, user.id, "2468")
    assert session_info["is_admin_unlocked"] is True
    assert session_info["unlocked_at"] is not None
    assert await gate_service.is_admin_unlocked(db_session, user.id) is True

    # Unlocking again refreshes the same row
    await gate_service.unlock_admin(db_session, user.id, "2468")
    assert await gate_service.is_admin_unlocked(db_session, user.id) is True

    await gate_service.lock_admin(db_session, user.id)
    assert await gate_service.is_admin_unlocked(db_session, user.id) is False


@pytest.mark.asyncio
async def test_admin_unlock_wrong_code(db_session, user, monkeypatch):
    monkeypatch.delenv("ADMIN_UNLOCK_CODE", raising=False)
    with pytest.raises(gate_service.InvalidCodeError, match="Incorrect code"):
        await gate_service.unlock_admin(db_session, user.id, "1234")
    assert await gate_service.is_admin_unlocked(db_session, user.id) is False


@pytest.mark.asyncio
async def test_admin_code_from_environment(db_session, user, monkeypatch):
    monkeypatch.setenv("ADMIN_UNLOCK_CODE", "9999")
    assert gate_service.is_default_admin_code() is False
    with pytest.raises(gate_service.InvalidCodeError):
        await gate_service.unlock_admin(db_session, user.id, "2468")
    result = await gate_service.unlock_admin(db_session, user.id, "9999")
    assert result["is_admin_unlocked"] is True
