"""Past winners (hall of fame) route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service
from backend.api.auth_dependencies import require_user, require_admin_unlocked
from backend.models.schemas import (
    PastWinnerResponse,
    PastWinnerSeason,
    CreatePastWinnerRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/past-winners", response_model=list[PastWinnerSeason])
async def list_past_winners(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Past winners grouped by season, most recent season first."""
    winners = await data_service.list_past_winners(session)
    return data_service.group_past_winners(winners)


@router.post("/api/past-winners", response_model=PastWinnerResponse)
async def create_past_winner(
    payload: CreatePastWinnerRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Add a past winner. photo_path points at an already uploaded image."""
    try:
        return await data_service.create_past_winner(
            session,
            payload.season_label,
            payload.division_label,
            payload.winners_label,
            photo_path=payload.photo_path,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/api/past-winners/{winner_id}")
async def delete_past_winner(
    winner_id: str,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a past winner entry."""
    if not await data_service.delete_past_winner(session, winner_id):
        raise HTTPException(status_code=404, detail="Past winner not found")
    return {"success": True}
