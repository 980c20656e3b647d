"""
Season gate and admin unlock.

The season gate decides whether a device may skip the league lock screen: it
may only when the season it last unlocked is still the current season. Any
failure to read the current season locks the device.

Admin unlock compares a shared passcode and records an admin_unlock_sessions
row for the user. The passcode is a convenience gate for league organizers,
not authentication: anyone who knows the code gets admin screens.
"""

import hmac
import os
import logging
from typing import Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from dotenv import load_dotenv
from backend.database.models import AdminUnlockSession
from backend.services import data_service
from backend.utils.constants import DEFAULT_ADMIN_UNLOCK_CODE
from backend.utils.datetime_utils import utcnow, isoformat_or_none

load_dotenv()

logger = logging.getLogger(__name__)


class LeagueNotReadyError(Exception):
    """League code or current season has not been configured."""


class InvalidCodeError(Exception):
    """A submitted league or admin code did not match."""


def get_admin_unlock_code() -> str:
    """Admin passcode from ADMIN_UNLOCK_CODE, falling back to the shared default."""
    return os.getenv("ADMIN_UNLOCK_CODE") or DEFAULT_ADMIN_UNLOCK_CODE


def is_default_admin_code() -> bool:
    return get_admin_unlock_code() == DEFAULT_ADMIN_UNLOCK_CODE


def _codes_match(submitted: str, expected: str) -> bool:
    return hmac.compare_digest(submitted.encode("utf-8"), expected.encode("utf-8"))


#
# Season gate
#


def evaluate_gate(current_season_id: Optional[str], accepted_season_id: Optional[str]) -> Dict:
    """
    Decide lock state from the current and accepted season ids.

    Returns:
        Dict with locked, current_season_id and clear_accepted (the caller
        must drop its stored accepted id when True)
    """
    current = current_season_id or ""
    accepted = (accepted_season_id or "").strip()
    locked = not current or not accepted or accepted != current
    return {
        "locked": locked,
        "current_season_id": current_season_id or None,
        "clear_accepted": locked,
    }


async def check_season_gate(session: AsyncSession, accepted_season_id: Optional[str]) -> Dict:
    """
    Check whether a device's accepted season still matches the current season.

    Fails closed: a database error is logged and reported as locked.
    """
    try:
        current_season_id = await data_service.get_current_season_id(session)
    except Exception as e:
        logger.warning(f"Season gate could not read current season, locking: {e}")
        return evaluate_gate(None, accepted_season_id)
    return evaluate_gate(current_season_id, accepted_season_id)


async def unlock_league(session: AsyncSession, user_id: str, code: str) -> Dict:
    """
    Unlock the current season for a user with the league access code.

    Ensures the user has a season profile and returns the season id the
    device should store as accepted.

    Raises:
        ValueError: If the code is empty
        LeagueNotReadyError: If league code or current season is not configured
        InvalidCodeError: If the code does not match
    """
    cleaned = (code or "").strip()
    if not cleaned:
        raise ValueError("Please enter the league access code.")

    league_code = await data_service.get_league_code(session)
    season_id = await data_service.get_current_season_id(session)
    if not league_code or not season_id:
        raise LeagueNotReadyError("League is not ready yet. Please contact the admin.")

    if not _codes_match(cleaned, league_code):
        raise InvalidCodeError("That code is not correct.")

    await data_service.ensure_user_season_profile(session, user_id, season_id)
    logger.info(f"User {user_id} unlocked season {season_id}")
    return {"accepted_season_id": season_id}


#
# Admin unlock
#


async def is_admin_unlocked(session: AsyncSession, user_id: str) -> bool:
    """Check whether the user currently has admin unlocked."""
    result = await session.execute(
        select(AdminUnlockSession.user_id).where(AdminUnlockSession.user_id == user_id)
    )
    return result.scalar_one_or_none() is not None


async def unlock_admin(session: AsyncSession, user_id: str, code: str) -> Dict:
    """
    Unlock admin screens for a user.

    Raises:
        InvalidCodeError: If the passcode does not match
    """
    if not _codes_match((code or "").strip(), get_admin_unlock_code()):
        raise InvalidCodeError("Incorrect code")

    result = await session.execute(
        select(AdminUnlockSession).where(AdminUnlockSession.user_id == user_id)
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = AdminUnlockSession(user_id=user_id)
        session.add(row)
    row.unlocked_at = utcnow()
    await session.commit()
    logger.info(f"Admin unlocked for user {user_id}")
    return {"is_admin_unlocked": True, "unlocked_at": isoformat_or_none(row.unlocked_at)}


async def lock_admin(session: AsyncSession, user_id: str) -> Dict:
    """Remove the user's admin unlock."""
    await session.execute(delete(AdminUnlockSession).where(AdminUnlockSession.user_id == user_id))
    await session.commit()
    return {"is_admin_unlocked": False, "unlocked_at": None}
