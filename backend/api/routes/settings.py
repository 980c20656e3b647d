"""App settings route handlers (current season, playoff mode, league code)."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service
from backend.api.auth_dependencies import require_user, require_admin_unlocked
from backend.models.schemas import (
    AppSettingsResponse,
    PlayoffModeRequest,
    CurrentSeasonRequest,
    LeagueCodeRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/settings", response_model=AppSettingsResponse)
async def get_settings(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get the app settings singleton."""
    settings = await data_service.get_app_settings(session)
    if not settings:
        raise HTTPException(status_code=404, detail="App settings have not been initialized")
    return settings


@router.put("/api/settings/playoff-mode", response_model=AppSettingsResponse)
async def set_playoff_mode(
    payload: PlayoffModeRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Turn playoff mode on or off.

    Only the flag changes; turning it off leaves all playoff data in place.
    """
    try:
        settings = await data_service.set_playoff_mode(session, payload.playoff_mode)
        logger.info(f"Playoff mode set to {payload.playoff_mode} by {user['id']}")
        return settings
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating playoff mode: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating playoff mode: {str(e)}")


@router.put("/api/settings/current-season", response_model=AppSettingsResponse)
async def set_current_season(
    payload: CurrentSeasonRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Switch the league to another season. Every device will be re-locked."""
    try:
        return await data_service.set_current_season(session, payload.season_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/api/settings/league-code")
async def set_league_code(
    payload: LeagueCodeRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Replace the league access code players enter on the lock screen."""
    try:
        await data_service.set_league_code(session, payload.league_code.strip())
        return {"success": True}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
