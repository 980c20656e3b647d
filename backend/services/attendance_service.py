"""
Attendance service for weekly player check-in.

Each team has a single attendance row per (season, week) holding both
players' IN/OUT flags. Recording one player reads the existing row first so
the teammate's flag is never overwritten.
"""

import math
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from backend.database.db import upsert_insert
from backend.database.models import Attendance, AttendanceStatus
from backend.services import data_service
import logging

logger = logging.getLogger(__name__)


def parse_week(value) -> int:
    """
    Validate a user-supplied week number.

    Accepts positive whole numbers given as int, float or numeric string.

    Raises:
        ValueError: If the value is missing, not finite, or not positive
    """
    if value is None or isinstance(value, bool):
        raise ValueError("Week required")
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError("Week required")
    if not math.isfinite(number) or number <= 0 or number != int(number):
        raise ValueError("Week required")
    return int(number)


def _attendance_to_dict(row: Attendance) -> Dict:
    return {
        "season_id": row.season_id,
        "week": row.week,
        "team_id": row.team_id,
        "division_id": row.division_id,
        "player1_in": row.player1_in,
        "player2_in": row.player2_in,
    }


def build_player_list(teams: List[Dict]) -> List[Dict]:
    """
    Flatten teams into one entry per named player slot, sorted by player name.
    """
    players = []
    for team in teams:
        for which in (1, 2):
            name = (team.get(f"player{which}_name") or "").strip()
            if not name:
                continue
            players.append({
                "team_id": team["id"],
                "division_id": team.get("division_id"),
                "team_name": team.get("team_name") or "Team",
                "player": which,
                "player_name": name,
            })
    return sorted(players, key=lambda p: p["player_name"].lower())


def filter_players(players: List[Dict], query: Optional[str]) -> List[Dict]:
    """Case-insensitive substring match against "<player> <team>"."""
    q = (query or "").strip().lower()
    if not q:
        return players
    return [
        p for p in players
        if q in f"{p['player_name']} {p['team_name']}".lower()
    ]


async def list_season_players(
    session: AsyncSession, season_id: str, query: Optional[str] = None
) -> List[Dict]:
    """List every player in a season, optionally filtered by name or team."""
    teams = await data_service.list_teams(session, season_id)
    return filter_players(build_player_list(teams), query)


async def get_attendance_row(
    session: AsyncSession, season_id: str, week: int, team_id: str
) -> Optional[Dict]:
    """Get the attendance row for one team and week."""
    row = await _get_row(session, season_id, week, team_id)
    return _attendance_to_dict(row) if row else None


async def _get_row(
    session: AsyncSession, season_id: str, week: int, team_id: str
) -> Optional[Attendance]:
    result = await session.execute(
        select(Attendance).where(
            Attendance.season_id == season_id,
            Attendance.week == week,
            Attendance.team_id == team_id,
        ).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_week_attendance(session: AsyncSession, season_id: str, week: int) -> Dict:
    """
    Get all attendance rows for a week plus a per-player status map.

    The map is keyed "<team_id>-<1|2>"; players with no recorded flag are
    left out.
    """
    result = await session.execute(
        select(Attendance).where(Attendance.season_id == season_id, Attendance.week == week)
    )
    rows = [_attendance_to_dict(r) for r in result.scalars().all()]

    statuses: Dict[str, str] = {}
    for row in rows:
        for which in (1, 2):
            flag = row[f"player{which}_in"]
            if flag is not None:
                statuses[f"{row['team_id']}-{which}"] = (
                    AttendanceStatus.IN.value if flag else AttendanceStatus.OUT.value
                )

    return {"season_id": season_id, "week": week, "records": rows, "statuses": statuses}


async def record_attendance(
    session: AsyncSession,
    season_id: str,
    week: int,
    team_id: str,
    player: int,
    status: str,
) -> Dict:
    """
    Record IN/OUT for one player, keeping the teammate's flag.

    A teammate with no stored flag is written as IN, matching how the mobile
    app has always treated unanswered players.

    Raises:
        ValueError: If week, player or status are invalid
        LookupError: If the team is not part of the season
    """
    week = parse_week(week)
    if player not in (1, 2):
        raise ValueError("player must be 1 or 2")
    try:
        is_in = AttendanceStatus(status) == AttendanceStatus.IN
    except ValueError:
        raise ValueError("status must be IN or OUT")

    team = await data_service.get_team(session, team_id)
    if not team or team["season_id"] != season_id:
        raise LookupError(f"Team {team_id} not found in this season")

    row = await _get_row(session, season_id, week, team_id)
    current_p1 = False if row is not None and row.player1_in is False else True
    current_p2 = False if row is not None and row.player2_in is False else True

    next_p1 = is_in if player == 1 else current_p1
    next_p2 = is_in if player == 2 else current_p2

    # A row created by another device between the read and this write keeps
    # that device's flag: only the submitted player is overwritten on conflict.
    table = Attendance.__table__
    teammate = table.c.player2_in if player == 1 else table.c.player1_in
    stmt = upsert_insert(session, Attendance).values(
        season_id=season_id,
        week=week,
        team_id=team_id,
        division_id=team.get("division_id"),
        player1_in=next_p1,
        player2_in=next_p2,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["season_id", "week", "team_id"],
        set_={
            f"player{player}_in": getattr(stmt.excluded, f"player{player}_in"),
            teammate.name: func.coalesce(teammate, True),
            "division_id": stmt.excluded.division_id,
            "updated_at": func.now(),
        },
    )
    await session.execute(stmt)
    await session.commit()

    row = await _get_row(session, season_id, week, team_id)
    logger.info(
        f"Attendance week {week} team {team_id} player {player}: {AttendanceStatus(status).value}"
    )
    return _attendance_to_dict(row)
