"""Schedule builder route handlers: weeks and matches."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import context_service, schedule_service
from backend.api.auth_dependencies import require_user, require_admin_unlocked
from backend.models.schemas import (
    ScheduleWeekResponse,
    SaveWeekRequest,
    MatchResponse,
    CreateMatchRequest,
    UpdateMatchRequest,
    MatchupHistoryResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _season_id(session: AsyncSession) -> str:
    try:
        context = await context_service.resolve_current_season(session)
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return context["season_id"]


@router.get("/api/schedule/weeks", response_model=list[ScheduleWeekResponse])
async def list_weeks(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List the current season's weeks."""
    season_id = await _season_id(session)
    return await schedule_service.list_weeks(session, season_id)


@router.put("/api/schedule/weeks/{week}", response_model=ScheduleWeekResponse)
async def save_week(
    week: int,
    payload: SaveWeekRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Add a week to the schedule or change its date."""
    season_id = await _season_id(session)
    try:
        return await schedule_service.save_week(session, season_id, week, payload.week_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/api/schedule/weeks/{week}")
async def delete_week(
    week: int,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a week with its matches, scores and attendance."""
    season_id = await _season_id(session)
    try:
        deleted = await schedule_service.delete_week(session, season_id, week)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Week not found")
    return {"success": True}


@router.delete("/api/schedule/weeks/{week}/matches")
async def clear_week_matches(
    week: int,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete every match scheduled in a week."""
    season_id = await _season_id(session)
    try:
        deleted = await schedule_service.clear_week_matches(session, season_id, week)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "deleted": deleted}


@router.get("/api/schedule/matches", response_model=list[MatchResponse])
async def list_matches(
    week: Optional[int] = None,
    division_id: Optional[str] = None,
    team_id: Optional[str] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    List scheduled matches in week, time and court order.

    Query params:
        week: Only this week
        division_id: Only this division
        team_id: Only matches this team plays in
    """
    season_id = await _season_id(session)
    return await schedule_service.list_matches(
        session, season_id, week=week, division_id=division_id, team_id=team_id
    )


@router.get("/api/schedule/matchup", response_model=MatchupHistoryResponse)
async def get_matchup_history(
    team_a_id: str = Query(...),
    team_b_id: str = Query(...),
    exclude_match_id: Optional[str] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """How often two teams have already been scheduled against each other."""
    season_id = await _season_id(session)
    return await schedule_service.get_matchup_history(
        session, season_id, team_a_id, team_b_id, exclude_match_id=exclude_match_id
    )


@router.post("/api/schedule/matches", response_model=MatchResponse)
async def create_match(
    payload: CreateMatchRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Schedule a match in the current season."""
    season_id = await _season_id(session)
    try:
        return await schedule_service.create_match(session, season_id, **payload.model_dump())
    except schedule_service.ScheduleConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/api/schedule/matches/{match_id}", response_model=MatchResponse)
async def update_match(
    match_id: str,
    payload: UpdateMatchRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Move a match to another slot or change its teams."""
    try:
        match = await schedule_service.update_match(
            session, match_id, **payload.model_dump(exclude_unset=True)
        )
    except schedule_service.ScheduleConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


@router.delete("/api/schedule/matches/{match_id}")
async def delete_match(
    match_id: str,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a match and its scores."""
    if not await schedule_service.delete_match(session, match_id):
        raise HTTPException(status_code=404, detail="Match not found")
    return {"success": True}
