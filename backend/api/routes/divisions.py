"""Division setup route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service, context_service
from backend.api.auth_dependencies import require_user, require_admin_unlocked
from backend.models.schemas import DivisionResponse, CreateDivisionRequest

logger = logging.getLogger(__name__)
router = APIRouter()


async def _current_season_id(session: AsyncSession) -> str:
    try:
        context = await context_service.resolve_current_season(session)
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return context["season_id"]


@router.get("/api/divisions", response_model=list[DivisionResponse])
async def list_divisions(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List the current season's divisions."""
    season_id = await _current_season_id(session)
    return await data_service.list_divisions(session, season_id)


@router.post("/api/divisions", response_model=DivisionResponse)
async def create_division(
    payload: CreateDivisionRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Add a division to the current season."""
    season_id = await _current_season_id(session)
    try:
        return await data_service.create_division(session, season_id, payload.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/api/divisions/{division_id}")
async def delete_division(
    division_id: str,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a division; its teams are kept without a division."""
    if not await data_service.delete_division(session, division_id):
        raise HTTPException(status_code=404, detail="Division not found")
    return {"success": True}
