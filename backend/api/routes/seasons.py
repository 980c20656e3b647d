"""Season selector route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service
from backend.api.auth_dependencies import require_user, require_admin_unlocked
from backend.models.schemas import SeasonResponse, CreateSeasonRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/seasons", response_model=list[SeasonResponse])
async def list_seasons(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List all seasons ordered by name."""
    try:
        return await data_service.list_seasons(session)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing seasons: {str(e)}")


@router.get("/api/seasons/{season_id}", response_model=SeasonResponse)
async def get_season(
    season_id: str,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a season."""
    season = await data_service.get_season(session, season_id)
    if not season:
        raise HTTPException(status_code=404, detail="Season not found")
    return season


@router.post("/api/seasons", response_model=SeasonResponse)
async def start_new_season(
    payload: CreateSeasonRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Start a new season from its number and make it the current season.

    Body: {season_number: int}; creates "Season <number>".
    """
    name = data_service.season_name_from_number(payload.season_number)
    if not name:
        raise HTTPException(status_code=400, detail="Enter a valid season number (ex: 4).")
    try:
        season = await data_service.create_season(session, name)
        await data_service.set_current_season(session, season["id"])
        logger.info(f"Started {season['name']} ({season['id']})")
        return season
    except data_service.DuplicateNameError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/api/seasons/{season_id}")
async def delete_season(
    season_id: str,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a season. The current season cannot be deleted."""
    try:
        deleted = await data_service.delete_season(session, season_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Season not found")
    return {"success": True}
