"""Weekly attendance route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import attendance_service, context_service
from backend.api.auth_dependencies import require_user
from backend.models.schemas import (
    AttendancePlayer,
    AttendanceRecord,
    WeekAttendanceResponse,
    RecordAttendanceRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _season_id(session: AsyncSession) -> str:
    try:
        context = await context_service.resolve_current_season(session)
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return context["season_id"]


@router.get("/api/attendance/players", response_model=list[AttendancePlayer])
async def list_players(
    q: Optional[str] = None,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    List every player in the current season, one entry per named team slot.

    Query params:
        q: Case-insensitive filter on player or team name
    """
    season_id = await _season_id(session)
    return await attendance_service.list_season_players(session, season_id, query=q)


@router.get("/api/attendance", response_model=WeekAttendanceResponse)
async def get_week(
    week: str = Query(...),
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get attendance for one week of the current season."""
    try:
        week_number = attendance_service.parse_week(week)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    season_id = await _season_id(session)
    return await attendance_service.get_week_attendance(session, season_id, week_number)


@router.post("/api/attendance", response_model=AttendanceRecord)
async def record_attendance(
    payload: RecordAttendanceRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Mark one player IN or OUT for a week.

    The teammate's flag on the same row is preserved.
    """
    season_id = await _season_id(session)
    try:
        return await attendance_service.record_attendance(
            session,
            season_id,
            payload.week,
            payload.team_id,
            payload.player,
            payload.status,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error recording attendance: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error recording attendance: {str(e)}")
