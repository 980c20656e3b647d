"""
Schedule service: league nights (weeks) and the matches played on them.

Match times are stored in 12-hour form ("5:45 PM"). Slot comparisons always
go through minutes past midnight, so "17:45" and "5:45 PM" are the same slot.
"""

import re
from datetime import date
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from backend.database.db import upsert_insert
from backend.database.models import Attendance, Match, ScheduleWeek
from backend.services import data_service
from backend.services.attendance_service import parse_week
from backend.utils.constants import COURT_COUNT
from backend.utils.datetime_utils import isoformat_or_none
import logging

logger = logging.getLogger(__name__)

_TIME_12H = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)
_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


class ScheduleConflictError(Exception):
    """A team or court is already booked in that time slot."""


# ============================================================================
# Time helpers
# ============================================================================

def parse_time_to_minutes(raw) -> Optional[int]:
    """
    Minutes past midnight for "5:45 PM", "17:45" or "17:45:00".

    Returns None for anything else.
    """
    text = str(raw or "").strip()

    match = _TIME_12H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if not 1 <= hour <= 12 or not 0 <= minute <= 59:
            return None
        hour = hour % 12
        if match.group(3).upper() == "PM":
            hour += 12
        return hour * 60 + minute

    match = _TIME_24H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            return None
        return hour * 60 + minute

    return None


def format_minutes_12h(minutes: int) -> str:
    hour, minute = divmod(minutes, 60)
    suffix = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def normalize_match_time(raw) -> str:
    """
    Convert any accepted time format to the stored 12-hour form.

    Raises:
        ValueError: If the time cannot be parsed
    """
    minutes = parse_time_to_minutes(raw)
    if minutes is None:
        raise ValueError("Match time must look like 5:45 PM")
    return format_minutes_12h(minutes)


def _slot_minutes(match: Dict) -> int:
    minutes = parse_time_to_minutes(match.get("match_time"))
    return minutes if minutes is not None else 0


def match_sort_key(match: Dict):
    """Week, then time of day, then court, then creation order."""
    return (
        match.get("week") or 0,
        _slot_minutes(match),
        match.get("court") or 0,
        match.get("created_at") or "",
    )


def _pair_key(team_a_id: str, team_b_id: str) -> tuple:
    return tuple(sorted((str(team_a_id), str(team_b_id))))


def count_prior_meetings(matches: List[Dict]) -> Dict[str, int]:
    """
    For each match, how many times the same two teams met earlier in the season.

    "Earlier" follows match_sort_key, so the first meeting of a pair is 0.
    """
    running: Dict[tuple, int] = {}
    prior: Dict[str, int] = {}
    for match in sorted(matches, key=match_sort_key):
        if not match.get("team_a_id") or not match.get("team_b_id"):
            prior[match["id"]] = 0
            continue
        key = _pair_key(match["team_a_id"], match["team_b_id"])
        prior[match["id"]] = running.get(key, 0)
        running[key] = prior[match["id"]] + 1
    return prior


# ============================================================================
# Weeks
# ============================================================================

def _week_to_dict(row: ScheduleWeek) -> Dict:
    return {
        "season_id": row.season_id,
        "week": row.week,
        "week_date": row.week_date.isoformat() if row.week_date else None,
    }


async def list_weeks(session: AsyncSession, season_id: str) -> List[Dict]:
    """List a season's weeks in week order."""
    result = await session.execute(
        select(ScheduleWeek)
        .where(ScheduleWeek.season_id == season_id)
        .order_by(ScheduleWeek.week.asc())
    )
    return [_week_to_dict(w) for w in result.scalars().all()]


async def get_week(session: AsyncSession, season_id: str, week: int) -> Optional[Dict]:
    """Get one week of a season."""
    result = await session.execute(
        select(ScheduleWeek)
        .where(ScheduleWeek.season_id == season_id, ScheduleWeek.week == week)
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    return _week_to_dict(row) if row else None


async def save_week(
    session: AsyncSession, season_id: str, week, week_date: Optional[date] = None
) -> Dict:
    """
    Add a week to the schedule or set its date (upsert on season + week).

    Raises:
        ValueError: If the week number is invalid
    """
    week = parse_week(week)
    stmt = upsert_insert(session, ScheduleWeek).values(
        season_id=season_id, week=week, week_date=week_date
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["season_id", "week"],
        set_=dict(week_date=stmt.excluded.week_date, updated_at=func.now()),
    )
    await session.execute(stmt)
    await session.commit()
    logger.info(f"Saved schedule week {week} ({week_date}) for season {season_id}")
    return await get_week(session, season_id, week)


async def delete_week(session: AsyncSession, season_id: str, week: int) -> bool:
    """
    Remove a week along with its matches, their scores and its attendance.

    Returns:
        True if the week existed
    """
    week = parse_week(week)
    existed = await get_week(session, season_id, week) is not None

    await _delete_matches(session, season_id, week)
    await session.execute(
        delete(Attendance).where(Attendance.season_id == season_id, Attendance.week == week)
    )
    await session.execute(
        delete(ScheduleWeek).where(ScheduleWeek.season_id == season_id, ScheduleWeek.week == week)
    )
    await session.commit()
    if existed:
        logger.info(f"Deleted schedule week {week} for season {season_id}")
    return existed


# ============================================================================
# Matches
# ============================================================================

def _match_to_dict(match: Match) -> Dict:
    return {
        "id": match.id,
        "season_id": match.season_id,
        "week": match.week,
        "division_id": match.division_id,
        "match_time": match.match_time,
        "court": match.court,
        "team_a_id": match.team_a_id,
        "team_b_id": match.team_b_id,
        "created_at": isoformat_or_none(match.created_at),
    }


async def _season_matches(session: AsyncSession, season_id: str) -> List[Match]:
    result = await session.execute(select(Match).where(Match.season_id == season_id))
    return list(result.scalars().all())


async def list_matches(
    session: AsyncSession,
    season_id: str,
    week: Optional[int] = None,
    division_id: Optional[str] = None,
    team_id: Optional[str] = None,
) -> List[Dict]:
    """
    List a season's matches with team and division names resolved.

    Each match carries prior_meetings: how often the two teams already met
    this season before it. Filters narrow the list but never change that count.
    """
    matches = [_match_to_dict(m) for m in await _season_matches(session, season_id)]
    prior = count_prior_meetings(matches)

    teams = {t["id"]: t for t in await data_service.list_teams(session, season_id)}
    divisions = {d["id"]: d["name"] for d in await data_service.list_divisions(session, season_id)}

    selected = []
    for match in matches:
        if week is not None and match["week"] != week:
            continue
        if division_id is not None and match["division_id"] != division_id:
            continue
        if team_id is not None and team_id not in (match["team_a_id"], match["team_b_id"]):
            continue
        team_a = teams.get(match["team_a_id"]) or {}
        team_b = teams.get(match["team_b_id"]) or {}
        match.update({
            "team_a_name": team_a.get("team_name"),
            "team_b_name": team_b.get("team_name"),
            "division_name": divisions.get(match["division_id"]),
            "prior_meetings": prior.get(match["id"], 0),
        })
        selected.append(match)
    return sorted(selected, key=match_sort_key)


async def get_match(session: AsyncSession, match_id: str) -> Optional[Dict]:
    """Get a match by ID."""
    result = await session.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    return _match_to_dict(match) if match else None


async def get_matchup_history(
    session: AsyncSession,
    season_id: str,
    team_a_id: str,
    team_b_id: str,
    exclude_match_id: Optional[str] = None,
) -> Dict:
    """How many times two teams have been scheduled against each other this season."""
    key = _pair_key(team_a_id, team_b_id)
    weeks = [
        m.week for m in await _season_matches(session, season_id)
        if m.id != exclude_match_id
        and m.team_a_id and m.team_b_id
        and _pair_key(m.team_a_id, m.team_b_id) == key
    ]
    played_weeks = sorted(set(weeks))
    return {
        "times_played": len(weeks),
        "weeks": played_weeks,
        "last_week": played_weeks[-1] if played_weeks else None,
    }


async def _team_fully_out(session: AsyncSession, season_id: str, week: int, team_id: str) -> bool:
    result = await session.execute(
        select(Attendance).where(
            Attendance.season_id == season_id,
            Attendance.week == week,
            Attendance.team_id == team_id,
        )
    )
    row = result.scalar_one_or_none()
    return row is not None and row.player1_in is False and row.player2_in is False


async def _validate_match(
    session: AsyncSession,
    season_id: str,
    fields: Dict,
    existing: Optional[Match] = None,
) -> Dict:
    """
    Check a match against the schedule rules and return normalized values.

    Raises:
        ValueError: Bad input, inactive team, or a team with both players OUT
        LookupError: Week or team not part of the season
        ScheduleConflictError: Team or court already booked in the slot
    """
    week = parse_week(fields.get("week"))
    if await get_week(session, season_id, week) is None:
        raise LookupError(f"Week {week} is not on the schedule")

    match_time = normalize_match_time(fields.get("match_time"))
    minutes = parse_time_to_minutes(match_time)

    court = fields.get("court")
    if isinstance(court, bool) or not isinstance(court, int) or not 1 <= court <= COURT_COUNT:
        raise ValueError(f"Court must be between 1 and {COURT_COUNT}")

    division_id = fields.get("division_id")
    team_a_id = fields.get("team_a_id")
    team_b_id = fields.get("team_b_id")
    if not division_id:
        raise ValueError("Select a division first.")
    if not team_a_id or not team_b_id:
        raise ValueError("Select Team A and Team B.")
    if team_a_id == team_b_id:
        raise ValueError("Team B cannot be the same as Team A.")

    teams = []
    for team_id in (team_a_id, team_b_id):
        team = await data_service.get_team(session, team_id)
        if not team or team["season_id"] != season_id:
            raise LookupError(f"Team {team_id} not found in this season")
        if team["division_id"] != division_id:
            raise ValueError(f"{team['team_name']} is not in this division")
        teams.append(team)

    # Editing an old match may keep its original, since-deactivated teams
    keeps_original_teams = (
        existing is not None
        and existing.team_a_id == team_a_id
        and existing.team_b_id == team_b_id
    )
    if not keeps_original_teams and not all(t["is_active"] for t in teams):
        raise ValueError("One of these teams is INACTIVE. Inactive teams cannot be scheduled.")

    for team in teams:
        if await _team_fully_out(session, season_id, week, team["id"]):
            raise ValueError("One of these teams has BOTH players marked OUT for this week.")

    same_slot = [
        m for m in await _season_matches(session, season_id)
        if m.week == week
        and (existing is None or m.id != existing.id)
        and parse_time_to_minutes(m.match_time) == minutes
    ]
    if any({m.team_a_id, m.team_b_id} & {team_a_id, team_b_id} for m in same_slot):
        raise ScheduleConflictError("One of these teams is already scheduled at this time.")
    if any(m.court == court for m in same_slot):
        raise ScheduleConflictError(f"Court {court} is already booked at {match_time}.")

    return {
        "week": week,
        "division_id": division_id,
        "match_time": match_time,
        "court": court,
        "team_a_id": team_a_id,
        "team_b_id": team_b_id,
    }


async def create_match(session: AsyncSession, season_id: str, **fields) -> Dict:
    """
    Schedule a match.

    Raises:
        ValueError, LookupError, ScheduleConflictError: See _validate_match
    """
    values = await _validate_match(session, season_id, fields)
    match = Match(season_id=season_id, **values)
    session.add(match)
    await session.commit()
    await session.refresh(match)
    logger.info(
        f"Scheduled match {match.id}: week {match.week} {match.match_time} court {match.court}"
    )
    return _match_to_dict(match)


async def update_match(session: AsyncSession, match_id: str, **fields) -> Optional[Dict]:
    """
    Move or re-pair a scheduled match. Fields not given keep their values.

    Returns None when the match does not exist.
    """
    result = await session.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    if not match:
        return None

    merged = _match_to_dict(match)
    merged.update({k: v for k, v in fields.items() if k in merged})
    values = await _validate_match(session, match.season_id, merged, existing=match)
    for key, value in values.items():
        setattr(match, key, value)
    await session.commit()
    await session.refresh(match)
    return _match_to_dict(match)


async def delete_match(session: AsyncSession, match_id: str) -> bool:
    """Delete a match and its scores."""
    result = await session.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    if not match:
        return False
    await session.delete(match)
    await session.commit()
    return True


async def _delete_matches(session: AsyncSession, season_id: str, week: int) -> int:
    result = await session.execute(
        select(Match).where(Match.season_id == season_id, Match.week == week)
    )
    matches = result.scalars().all()
    for match in matches:
        await session.delete(match)
    return len(matches)


async def clear_week_matches(session: AsyncSession, season_id: str, week) -> int:
    """Delete every match of a week, keeping the week itself. Returns the count."""
    week = parse_week(week)
    count = await _delete_matches(session, season_id, week)
    await session.commit()
    logger.info(f"Cleared {count} matches from week {week} of season {season_id}")
    return count
