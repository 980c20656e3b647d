"""Player-selection onboarding route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service, context_service
from backend.api.auth_dependencies import require_user
from backend.models.schemas import (
    TeamResponse,
    SelectTeamRequest,
    SelectPlayerRequest,
    OnboardingPlayersResponse,
    ProfileResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()

CHOOSE_TEAM_REDIRECT = "choose-team"


@router.get("/api/onboarding/teams", response_model=list[TeamResponse])
async def list_teams_to_join(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Active teams in the current season, for the choose-team screen."""
    try:
        context = await context_service.resolve_current_season(session)
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return await data_service.list_teams(session, context["season_id"], active_only=True)


@router.put("/api/onboarding/team", response_model=ProfileResponse)
async def choose_team(
    payload: SelectTeamRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Attach the user to a team for the current season and clear any old player pick."""
    try:
        context = await context_service.resolve_current_season(session)
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))

    season_id = context["season_id"]
    team = await data_service.get_team(session, payload.team_id)
    if not team or team["season_id"] != season_id or not team["is_active"]:
        raise HTTPException(status_code=404, detail="Team not found")

    await data_service.ensure_user_season_profile(session, user["id"], season_id)
    return await data_service.update_user_season_profile(
        session, user["id"], season_id, team_id=team["id"], player_name=None
    )


@router.get("/api/onboarding/players", response_model=OnboardingPlayersResponse)
async def list_team_players(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Names the user can claim on their team.

    Returns {"redirect": "choose-team"} when no team is selected yet, so the
    client goes back a step instead of showing an error.
    """
    try:
        context = await context_service.resolve_current_context(
            session, user["id"], require_team=True
        )
    except context_service.TeamNotAssignedError:
        return {"players": [], "team_id": None, "redirect": CHOOSE_TEAM_REDIRECT}
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))

    names = context_service.team_player_names(context["team"])
    if not names:
        raise HTTPException(
            status_code=409, detail="Players have not been added to this team yet."
        )
    return {
        "players": [{"name": name} for name in names],
        "team_id": context["team"]["id"],
        "redirect": None,
    }


@router.put("/api/onboarding/player", response_model=ProfileResponse)
async def choose_player(
    payload: SelectPlayerRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Claim one of the team's player names for the current season."""
    try:
        context = await context_service.resolve_current_context(
            session, user["id"], require_team=True
        )
    except context_service.ContextError as e:
        raise HTTPException(status_code=409, detail=str(e))

    names = context_service.team_player_names(context["team"])
    if payload.player_name not in names:
        raise HTTPException(status_code=400, detail="That name is not on your team.")

    profile = await data_service.update_user_season_profile(
        session, user["id"], context["season_id"], player_name=payload.player_name
    )
    logger.info(f"User {user['id']} claimed {payload.player_name}")
    return profile
