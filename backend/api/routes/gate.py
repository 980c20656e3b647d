"""Season gate, league unlock and admin unlock route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.routes import limiter
from backend.database.db import get_db_session
from backend.services import gate_service
from backend.api.auth_dependencies import require_user, get_user_with_admin_flag
from backend.models.schemas import (
    CodeRequest,
    GateResponse,
    LeagueUnlockResponse,
    AdminSessionResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/gate", response_model=GateResponse)
async def check_gate(
    accepted_season_id: Optional[str] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Decide whether the device must show the league lock screen.

    Public: the device sends the season id it last unlocked. Any failure
    reading the current season reports locked.
    """
    return await gate_service.check_season_gate(session, accepted_season_id)


@router.post("/api/league/unlock", response_model=LeagueUnlockResponse)
@limiter.limit("10/minute")
async def unlock_league(
    request: Request,
    payload: CodeRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Unlock the current season with the league access code."""
    try:
        return await gate_service.unlock_league(session, user["id"], payload.code)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except gate_service.LeagueNotReadyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except gate_service.InvalidCodeError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.get("/api/admin/session", response_model=AdminSessionResponse)
async def get_admin_session(user: dict = Depends(get_user_with_admin_flag)):
    """Whether the caller has the admin screens unlocked."""
    return {"is_admin_unlocked": user["is_admin_unlocked"]}


@router.post("/api/admin/unlock", response_model=AdminSessionResponse)
@limiter.limit("10/minute")
async def unlock_admin(
    request: Request,
    payload: CodeRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Unlock admin screens with the shared passcode."""
    try:
        return await gate_service.unlock_admin(session, user["id"], payload.code)
    except gate_service.InvalidCodeError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.post("/api/admin/lock", response_model=AdminSessionResponse)
async def lock_admin(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Lock admin screens again."""
    return await gate_service.lock_admin(session, user["id"])
