"""Push token registration and the announcement push relay."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service, push_service
from backend.api.auth_dependencies import require_user
from backend.models.schemas import PushTokenRequest, PushTokenResponse
from backend.utils.constants import WEBHOOK_SECRET_HEADER

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/push-tokens", response_model=PushTokenResponse)
async def register_push_token(
    payload: PushTokenRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Register or refresh this device's Expo push token."""
    try:
        return await data_service.upsert_push_token(
            session,
            payload.expo_push_token,
            user_id=user["id"],
            season_id=payload.season_id,
            platform=payload.platform,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.api_route(
    "/functions/v1/send-announcement-push",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
)
async def send_announcement_push(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Relay an announcement-insert notification to every registered device.

    Checked in order: method (405), shared secret header (401), JSON body (400).
    Nothing is read from the database until the caller is authorized.
    """
    if request.method != "POST":
        return JSONResponse(status_code=405, content={"error": "Method not allowed"})

    if not push_service.is_authorized(request.headers.get(WEBHOOK_SECRET_HEADER)):
        logger.warning("Rejected push relay call with missing or wrong secret")
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        event = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    try:
        return await push_service.send_announcement_push(session, event)
    except push_service.TokenFetchError as e:
        return JSONResponse(
            status_code=500, content={"error": "Failed to fetch tokens", "details": str(e)}
        )
    except push_service.GatewayError as e:
        logger.error(f"Push gateway request failed: {e}")
        return JSONResponse(
            status_code=502, content={"error": "Push gateway request failed", "details": str(e)}
        )
