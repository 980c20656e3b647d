"""
Score entry for scheduled matches.

Each match has at most one score row holding three games per side. Players
may enter scores for their own team's matches until the match or its week is
locked; a match locks itself once all three games are entered on both sides.
Admins can always edit.
"""

import re
from typing import Dict, Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.database.db import upsert_insert
from backend.database.models import Match, MatchScore, ScoringWeekLock
from backend.services import schedule_service
from backend.services.attendance_service import parse_week
from backend.utils.constants import GAME_KEYS, MAX_GAME_SCORE
from backend.utils.datetime_utils import utcnow, isoformat_or_none
import logging

logger = logging.getLogger(__name__)


class ScoreLockedError(Exception):
    """Scores for a match can no longer be changed by players."""


#
# Score values
#

def sanitize_game_score(value) -> str:
    """Keep the first two digits, capped at the max game score. Empty means not entered."""
    digits = re.sub(r"\D", "", str(value if value is not None else ""))
    if not digits:
        return ""
    return str(min(int(digits[:2]), MAX_GAME_SCORE))


def normalize_score_fields(value) -> Dict[str, str]:
    """Coerce one side's scores to {"g1", "g2", "g3"} strings."""
    if not isinstance(value, dict):
        value = {}
    return {key: sanitize_game_score(value.get(key)) for key in GAME_KEYS}


def is_complete(team_a: Dict[str, str], team_b: Dict[str, str]) -> bool:
    """True when every game has a score on both sides."""
    return all(team_a.get(key) and team_b.get(key) for key in GAME_KEYS)


def _score_to_dict(row: MatchScore) -> Dict:
    return {
        "match_id": row.match_id,
        "team_a": normalize_score_fields(row.team_a),
        "team_b": normalize_score_fields(row.team_b),
        "verified": bool(row.verified),
        "verified_by": row.verified_by,
        "verified_at": isoformat_or_none(row.verified_at),
        "locked": row.locked_at is not None,
        "locked_at": isoformat_or_none(row.locked_at),
        "locked_by": row.locked_by,
    }


async def _get_score_row(session: AsyncSession, match_id: str) -> Optional[MatchScore]:
    result = await session.execute(
        select(MatchScore)
        .where(MatchScore.match_id == match_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_match_score(session: AsyncSession, match_id: str) -> Optional[Dict]:
    row = await _get_score_row(session, match_id)
    return _score_to_dict(row) if row else None


async def get_scores_for_matches(
    session: AsyncSession, match_ids: Iterable[str]
) -> Dict[str, Dict]:
    """Score rows keyed by match ID. Matches without scores are absent."""
    match_ids = list(match_ids)
    if not match_ids:
        return {}
    result = await session.execute(
        select(MatchScore)
        .where(MatchScore.match_id.in_(match_ids))
        .execution_options(populate_existing=True)
    )
    return {row.match_id: _score_to_dict(row) for row in result.scalars().all()}


#
# Week locks
#

async def get_week_lock(session: AsyncSession, season_id: str, week: int) -> Dict:
    """Lock state for a week; weeks never locked report locked=False."""
    result = await session.execute(
        select(ScoringWeekLock)
        .where(ScoringWeekLock.season_id == season_id, ScoringWeekLock.week == week)
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    return {
        "season_id": season_id,
        "week": week,
        "locked": bool(row and row.locked_at),
        "locked_at": isoformat_or_none(row.locked_at) if row else None,
        "locked_by": row.locked_by if row else None,
    }


async def set_week_lock(
    session: AsyncSession, season_id: str, week, locked: bool, locked_by: Optional[str] = None
) -> Dict:
    """Lock or unlock score entry for a whole week."""
    week = parse_week(week)
    locked_at = utcnow() if locked else None
    locked_by = locked_by if locked else None
    stmt = upsert_insert(session, ScoringWeekLock).values(
        season_id=season_id, week=week, locked_at=locked_at, locked_by=locked_by
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["season_id", "week"],
        set_=dict(locked_at=stmt.excluded.locked_at, locked_by=stmt.excluded.locked_by),
    )
    await session.execute(stmt)
    await session.commit()
    logger.info(f"Week {week} scoring {'locked' if locked else 'unlocked'} for season {season_id}")
    return await get_week_lock(session, season_id, week)


#
# Match scores
#

async def _get_match(session: AsyncSession, match_id: str) -> Match:
    result = await session.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    if not match:
        raise LookupError(f"Match {match_id} not found")
    return match


async def save_match_score(
    session: AsyncSession,
    match_id: str,
    team_a,
    team_b,
    verified_by: str,
    user_id: Optional[str] = None,
    is_admin: bool = False,
    team_id: Optional[str] = None,
) -> Dict:
    """
    Save both sides' game scores for a match.

    Scores are sanitized before storage. Once every game is entered the match
    locks; an incomplete save leaves any existing lock untouched.

    Args:
        team_id: The caller's team; players may only score their own matches

    Raises:
        LookupError: If the match does not exist
        PermissionError: If a player's team is not playing in the match
        ScoreLockedError: If a player saves into a locked match or week
    """
    match = await _get_match(session, match_id)

    if not is_admin:
        if not team_id or team_id not in (match.team_a_id, match.team_b_id):
            raise PermissionError("You can only enter scores for your own matches.")
        week_lock = await get_week_lock(session, match.season_id, match.week)
        if week_lock["locked"]:
            raise ScoreLockedError("Scoring is locked for this week.")
        existing = await _get_score_row(session, match_id)
        if existing is not None and existing.locked_at is not None:
            raise ScoreLockedError("This match is locked.")

    side_a = normalize_score_fields(team_a)
    side_b = normalize_score_fields(team_b)
    now = utcnow()
    values = dict(
        match_id=match_id,
        team_a=side_a,
        team_b=side_b,
        verified=True,
        verified_by=verified_by,
        verified_at=now,
    )
    if is_complete(side_a, side_b):
        values.update(locked_at=now, locked_by=verified_by, locked_by_user_id=user_id)

    stmt = upsert_insert(session, MatchScore).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["match_id"],
        set_={key: getattr(stmt.excluded, key) for key in values if key != "match_id"},
    )
    await session.execute(stmt)
    await session.commit()
    logger.info(f"Scores saved for match {match_id} by {verified_by}")
    return await get_match_score(session, match_id)


async def set_match_lock(
    session: AsyncSession,
    match_id: str,
    locked: bool,
    locked_by: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Dict:
    """
    Lock or unlock a single match's scores.

    Raises:
        LookupError: If the match does not exist
    """
    await _get_match(session, match_id)
    empty = normalize_score_fields(None)
    values = dict(
        match_id=match_id,
        team_a=empty,
        team_b=empty,
        verified=False,
        locked_at=utcnow() if locked else None,
        locked_by=locked_by if locked else None,
        locked_by_user_id=user_id if locked else None,
    )
    stmt = upsert_insert(session, MatchScore).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["match_id"],
        set_=dict(
            locked_at=stmt.excluded.locked_at,
            locked_by=stmt.excluded.locked_by,
            locked_by_user_id=stmt.excluded.locked_by_user_id,
        ),
    )
    await session.execute(stmt)
    await session.commit()
    return await get_match_score(session, match_id)


#
# Listings
#

async def list_results(
    session: AsyncSession,
    season_id: str,
    week: Optional[int] = None,
    division_id: Optional[str] = None,
    team_id: Optional[str] = None,
) -> List[Dict]:
    """Scheduled matches with their score (or None) attached."""
    matches = await schedule_service.list_matches(
        session, season_id, week=week, division_id=division_id, team_id=team_id
    )
    scores = await get_scores_for_matches(session, [m["id"] for m in matches])
    for match in matches:
        score = scores.get(match["id"])
        match["score"] = score
        match["complete"] = bool(score) and is_complete(score["team_a"], score["team_b"])
    return matches


async def get_week_scoring(
    session: AsyncSession,
    season_id: str,
    week,
    is_admin: bool = False,
    team_id: Optional[str] = None,
) -> Dict:
    """
    Everything the score entry screen needs for one week.

    Players only see their own team's matches; can_edit says whether the
    caller may still change each one.
    """
    week = parse_week(week)
    week_lock = await get_week_lock(session, season_id, week)
    week_row = await schedule_service.get_week(session, season_id, week)
    if is_admin:
        matches = await list_results(session, season_id, week=week)
    elif team_id:
        matches = await list_results(session, season_id, week=week, team_id=team_id)
    else:
        matches = []
    for match in matches:
        match_locked = bool(match["score"] and match["score"]["locked"])
        match["can_edit"] = is_admin or not (week_lock["locked"] or match_locked)
    return {
        "week": week,
        "week_date": week_row["week_date"] if week_row else None,
        "week_locked": week_lock["locked"],
        "matches": matches,
    }
