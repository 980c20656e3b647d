"""Score entry, results and standings route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import context_service, scoring_service, standings_service
from backend.api.auth_dependencies import (
    require_user,
    require_admin_unlocked,
    get_user_with_admin_flag,
)
from backend.models.schemas import (
    WeekScoringResponse,
    MatchScoreResponse,
    SaveScoreRequest,
    LockRequest,
    WeekLockResponse,
    ResultResponse,
    DivisionStandings,
)
from backend.utils.constants import ADMIN_AUTHOR_NAME, PLAYER_SCORER_NAME

logger = logging.getLogger(__name__)
router = APIRouter()


async def _player_context(session: AsyncSession, user_id: str, require_team: bool) -> dict:
    try:
        return await context_service.resolve_current_context(
            session, user_id, require_team=require_team
        )
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except context_service.TeamNotAssignedError:
        raise HTTPException(status_code=409, detail="Your team is not set for this season.")


@router.get("/api/scoring/weeks/{week}", response_model=WeekScoringResponse)
async def get_week_scoring(
    week: int,
    user: dict = Depends(get_user_with_admin_flag),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Matches to score for one week.

    Admins see every match; players see only their own team's matches.
    """
    is_admin = user["is_admin_unlocked"]
    context = await _player_context(session, user["id"], require_team=not is_admin)
    team = context["team"]
    try:
        return await scoring_service.get_week_scoring(
            session,
            context["season_id"],
            week,
            is_admin=is_admin,
            team_id=team["id"] if team else None,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/api/scoring/matches/{match_id}", response_model=MatchScoreResponse)
async def save_match_score(
    match_id: str,
    payload: SaveScoreRequest,
    user: dict = Depends(get_user_with_admin_flag),
    session: AsyncSession = Depends(get_db_session),
):
    """Save the game scores for a match. A fully scored match locks for players."""
    is_admin = user["is_admin_unlocked"]
    context = await _player_context(session, user["id"], require_team=not is_admin)
    team = context["team"]
    profile = context["profile"] or {}

    if is_admin:
        verified_by = ADMIN_AUTHOR_NAME
    else:
        verified_by = (profile.get("player_name") or "").strip() or PLAYER_SCORER_NAME

    try:
        return await scoring_service.save_match_score(
            session,
            match_id,
            payload.team_a,
            payload.team_b,
            verified_by=verified_by,
            user_id=user["id"],
            is_admin=is_admin,
            team_id=team["id"] if team else None,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except scoring_service.ScoreLockedError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.put("/api/scoring/matches/{match_id}/lock", response_model=MatchScoreResponse)
async def set_match_lock(
    match_id: str,
    payload: LockRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Lock or unlock one match's scores."""
    try:
        return await scoring_service.set_match_lock(
            session, match_id, payload.locked, locked_by=ADMIN_AUTHOR_NAME, user_id=user["id"]
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/api/scoring/weeks/{week}/lock", response_model=WeekLockResponse)
async def set_week_lock(
    week: int,
    payload: LockRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Close or reopen score entry for a whole week."""
    context = await _player_context(session, user["id"], require_team=False)
    try:
        return await scoring_service.set_week_lock(
            session, context["season_id"], week, payload.locked, locked_by=ADMIN_AUTHOR_NAME
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/api/results", response_model=list[ResultResponse])
async def list_results(
    week: Optional[int] = None,
    division_id: Optional[str] = None,
    mine: bool = False,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Scheduled matches with their scores.

    Query params:
        week: Only this week
        division_id: Only this division
        mine: Only the caller's team's matches
    """
    context = await _player_context(session, user["id"], require_team=mine)
    team = context["team"]
    return await scoring_service.list_results(
        session,
        context["season_id"],
        week=week,
        division_id=division_id,
        team_id=team["id"] if mine else None,
    )


@router.get("/api/standings", response_model=list[DivisionStandings])
async def get_standings(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Win/loss standings for the current season, one table per division."""
    context = await _player_context(session, user["id"], require_team=False)
    return await standings_service.get_standings(session, context["season_id"])
