"""Device sign-in route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.routes import limiter
from backend.database.db import get_db_session
from backend.services import auth_service, user_service
from backend.api.auth_dependencies import require_user
from backend.models.schemas import AuthResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/auth/anonymous", response_model=AuthResponse)
@limiter.limit("20/minute")
async def sign_in_anonymously(
    request: Request, session: AsyncSession = Depends(get_db_session)
):
    """Create an anonymous user for this device and return an access token."""
    try:
        user = await user_service.create_anonymous_user(session)
        token = auth_service.create_access_token({"user_id": user["id"]})
        return {"access_token": token, "token_type": "bearer", "user_id": user["id"]}
    except Exception as e:
        logger.error(f"Error creating anonymous user: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Could not start user session.")


@router.get("/api/auth/me")
async def get_me(user: dict = Depends(require_user)):
    """Return the authenticated user."""
    return user
