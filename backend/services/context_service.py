"""
Current-context resolution.

Every onboarding step needs the same chain: current season, then the user's
profile for that season, then the team on that profile. This module resolves
the chain once so callers do not repeat the lookups.
"""

from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from backend.services import data_service
import logging

logger = logging.getLogger(__name__)


class ContextError(Exception):
    """Base class for missing-context errors."""


class SeasonNotSetError(ContextError):
    """No current season is configured."""

    def __init__(self):
        super().__init__("Season is not set yet.")


class TeamNotAssignedError(ContextError):
    """The user has not picked a team for the current season."""

    def __init__(self):
        super().__init__("No team selected for this season.")


async def resolve_current_season(session: AsyncSession) -> Dict:
    """
    Resolve the current season.

    Raises:
        SeasonNotSetError: If settings are missing or point at no season
    """
    settings = await data_service.get_app_settings(session)
    season_id = settings.get("current_season_id") if settings else None
    if not season_id:
        raise SeasonNotSetError()
    return {"season_id": season_id, "season_name": settings.get("current_season_name")}


async def resolve_current_context(
    session: AsyncSession, user_id: str, require_team: bool = False
) -> Dict:
    """
    Resolve season, profile and team for a user in one pass.

    Args:
        session: Database session
        user_id: Authenticated user id
        require_team: Raise instead of returning team=None when unassigned

    Returns:
        Dict with season_id, season_name, profile (or None) and team (or None)

    Raises:
        SeasonNotSetError: If no current season is configured
        TeamNotAssignedError: If require_team and the user has no team
    """
    context = await resolve_current_season(session)
    season_id = context["season_id"]

    profile = await data_service.get_user_season_profile(session, user_id, season_id)
    team: Optional[Dict] = None
    if profile and profile.get("team_id"):
        team = await data_service.get_team(session, profile["team_id"])
        # A team from another season is treated as unassigned
        if team and team["season_id"] != season_id:
            team = None

    if require_team and team is None:
        raise TeamNotAssignedError()

    context.update({"profile": profile, "team": team})
    return context


def team_player_names(team: Optional[Dict]) -> List[str]:
    """Named player slots of a team, in slot order."""
    if not team:
        return []
    names = []
    for key in ("player1_name", "player2_name"):
        name = (team.get(key) or "").strip()
        if name:
            names.append(name)
    return names
