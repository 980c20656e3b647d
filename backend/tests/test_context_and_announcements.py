"""
Tests for current-context resolution and the announcement board.
"""
import pytest
import pytest_asyncio
from backend.database.models import User
from backend.services import announcement_service, context_service, data_service


@pytest_asyncio.fixture
async def season(db_session):
    await data_service.ensure_app_settings(db_session)
    season = await data_service.create_season(db_session, "Season 1")
    await data_service.set_current_season(db_session, season["id"])
    return season


@pytest_asyncio.fixture
async def team(db_session, season):
    return await data_service.create_team(
        db_session, season["id"], "Sand Storm", player1_name="Alex", player2_name="Jordan"
    )


@pytest_asyncio.fixture
async def user(db_session):
    user = User(is_anonymous=True)
    db_session.add(user)
    await db_session.commit()
    return user


async def _claim(db_session, user, season, team, player_name=None):
    await data_service.ensure_user_season_profile(db_session, user.id, season["id"])
    await data_service.update_user_season_profile(
        db_session, user.id, season["id"], team_id=team["id"], player_name=player_name
    )


# ============================================================================
# Context resolution
# ============================================================================

@pytest.mark.asyncio
async def test_resolve_season_not_set(db_session, user):
    await data_service.ensure_app_settings(db_session)
    with pytest.raises(context_service.SeasonNotSetError, match="Season is not set yet."):
        await context_service.resolve_current_context(db_session, user.id)


@pytest.mark.asyncio
async def test_resolve_without_profile(db_session, season, user):
    context = await context_service.resolve_current_context(db_session, user.id)
    assert context["season_id"] == season["id"]
    assert context["season_name"] == "Season 1"
    assert context["profile"] is None
    assert context["team"] is None

    with pytest.raises(context_service.TeamNotAssignedError):
        await context_service.resolve_current_context(db_session, user.id, require_team=True)


@pytest.mark.asyncio
async def test_resolve_with_team(db_session, season, team, user):
    await _claim(db_session, user, season, team)
    context = await context_service.resolve_current_context(
        db_session, user.id, require_team=True
    )
    assert context["team"]["id"] == team["id"]
    assert context_service.team_player_names(context["team"]) == ["Alex", "Jordan"]


def test_team_player_names_skips_blank_slots():
    assert context_service.team_player_names(None) == []
    assert context_service.team_player_names({"player1_name": " ", "player2_name": "Bo"}) == ["Bo"]


# ============================================================================
# Announcements
# ============================================================================

def test_can_delete_rules():
    own = {"author_id": "u1", "is_admin": False}
    admin_post = {"author_id": None, "is_admin": True}

    assert announcement_service.can_delete(own, "u1", False) is True
    assert announcement_service.can_delete(own, "u2", False) is False
    assert announcement_service.can_delete(own, None, False) is False
    assert announcement_service.can_delete(admin_post, "u1", False) is False
    assert announcement_service.can_delete(admin_post, "u1", True) is True
    assert announcement_service.can_delete(own, "u2", True) is True


@pytest.mark.asyncio
async def test_author_names(db_session, season, team, user):
    assert await announcement_service.resolve_author_name(
        db_session, season["id"], user.id, True
    ) == "ADMIN"
    assert await announcement_service.resolve_author_name(
        db_session, season["id"], user.id, False
    ) == "Community"

    await _claim(db_session, user, season, team, player_name="Alex")
    assert await announcement_service.resolve_author_name(
        db_session, season["id"], user.id, False
    ) == "Alex (Sand Storm)"


@pytest.mark.asyncio
async def test_admin_post_has_no_author_id(db_session, season, user):
    post = await announcement_service.create_announcement(
        db_session, season["id"], user.id, True, "  Nets go up at 6  "
    )
    assert post["author_id"] is None
    assert post["author_name"] == "ADMIN"
    assert post["is_admin"] is True
    assert post["body"] == "Nets go up at 6"


@pytest.mark.asyncio
async def test_blank_post_rejected(db_session, season, user):
    with pytest.raises(ValueError):
        await announcement_service.create_announcement(db_session, season["id"], user.id, False, " ")


@pytest.mark.asyncio
async def test_list_newest_first_with_replies(db_session, season, user):
    first = await announcement_service.create_announcement(
        db_session, season["id"], user.id, False, "first"
    )
    second = await announcement_service.create_announcement(
        db_session, season["id"], user.id, False, "second"
    )
    await announcement_service.create_reply(db_session, first["id"], user.id, False, "reply a")
    await announcement_service.create_reply(db_session, first["id"], user.id, True, "reply b")

    posts = await announcement_service.list_announcements(db_session, season["id"])
    assert [p["id"] for p in posts] == [second["id"], first["id"]]
    assert posts[0]["replies"] == []
    assert [r["body"] for r in posts[1]["replies"]] == ["reply a", "reply b"]
    assert posts[1]["replies"][1]["author_name"] == "ADMIN"


@pytest.mark.asyncio
async def test_reply_to_missing_announcement(db_session, season, user):
    assert await announcement_service.create_reply(
        db_session, "missing", user.id, False, "hello"
    ) is None


@pytest.mark.asyncio
async def test_delete_permissions(db_session, season, user):
    other = User(is_anonymous=True)
    db_session.add(other)
    await db_session.commit()

    post = await announcement_service.create_announcement(
        db_session, season["id"], user.id, False, "mine"
    )
    with pytest.raises(announcement_service.DeleteNotAllowedError):
        await announcement_service.delete_announcement(db_session, post["id"], other.id, False)

    assert await announcement_service.delete_announcement(
        db_session, post["id"], user.id, False
    ) is True
    assert await announcement_service.delete_announcement(
        db_session, post["id"], user.id, False
    ) is False


@pytest.mark.asyncio
async def test_user_cannot_delete_admin_reply(db_session, season, user):
    post = await announcement_service.create_announcement(
        db_session, season["id"], user.id, False, "question"
    )
    reply = await announcement_service.create_reply(db_session, post["id"], user.id, True, "answer")

    with pytest.raises(announcement_service.DeleteNotAllowedError):
        await announcement_service.delete_reply(db_session, reply["id"], user.id, False)
    assert await announcement_service.delete_reply(db_session, reply["id"], user.id, True) is True
