"""
User service layer for user database operations.
"""

from typing import Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.database.models import User
from backend.utils.datetime_utils import isoformat_or_none
import logging

logger = logging.getLogger(__name__)


def _user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "is_anonymous": user.is_anonymous,
        "created_at": isoformat_or_none(user.created_at),
    }


async def create_anonymous_user(session: AsyncSession) -> Dict:
    """
    Create a new anonymous user for a device.

    Returns:
        Dict with the new user's data
    """
    user = User(is_anonymous=True)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info(f"Created anonymous user {user.id}")
    return _user_to_dict(user)


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dict or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None
