"""
Standings service.
Derives per-division win/loss tables from verified match scores.
"""

from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from backend.services import data_service, schedule_service, scoring_service
from backend.utils.constants import GAME_KEYS, STANDINGS_DIVISION_ORDER, UNASSIGNED_DIVISION


# ============================================================================
# Game Helpers
# ============================================================================

def calculate_winner(team_a_score: int, team_b_score: int) -> int:
    """
    Determine winner: 1 = team A, 2 = team B, -1 = tie.

    Args:
        team_a_score: Points for team A
        team_b_score: Points for team B

    Returns:
        Winner indicator (1, 2, or -1 for tie)
    """
    if team_a_score > team_b_score:
        return 1
    elif team_b_score > team_a_score:
        return 2
    else:
        return -1


def _points(value) -> Optional[int]:
    text = str(value if value is not None else "").strip()
    return int(text) if text.isdigit() else None


# ============================================================================
# Team Records
# ============================================================================

class TeamRecord:
    """Running game totals for one team."""

    def __init__(self, team_id: str, team_name: str, is_active: bool = True):
        self.team_id = team_id
        self.team_name = team_name
        self.is_active = is_active
        self.games_played = 0
        self.wins = 0
        self.losses = 0
        self.points_for = 0
        self.points_against = 0

    @property
    def point_diff(self) -> int:
        return self.points_for - self.points_against

    def record_game(self, points_for: int, points_against: int):
        """Add one game. Ties count as played but neither won nor lost."""
        self.games_played += 1
        self.points_for += points_for
        self.points_against += points_against
        winner = calculate_winner(points_for, points_against)
        if winner == 1:
            self.wins += 1
        elif winner == 2:
            self.losses += 1

    def sort_key(self):
        return (
            not self.is_active,
            self.games_played == 0,
            -self.wins,
            self.losses,
            -self.points_for,
            self.points_against,
            self.team_name.lower(),
        )

    def to_dict(self) -> Dict:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "is_active": self.is_active,
            "games_played": self.games_played,
            "wins": self.wins,
            "losses": self.losses,
            "points_for": self.points_for,
            "points_against": self.points_against,
            "point_diff": self.point_diff,
        }


def _division_sort_key(name: str):
    if name in STANDINGS_DIVISION_ORDER:
        return (0, STANDINGS_DIVISION_ORDER.index(name), "")
    return (1, 0, name.lower())


# ============================================================================
# Standings
# ============================================================================

def compute_standings(
    matches: List[Dict],
    scores_by_match_id: Dict[str, Dict],
    teams: List[Dict],
    divisions: List[Dict],
) -> List[Dict]:
    """
    Build standings tables, one per division.

    Only verified scores count, and only games entered on both sides. Every
    team that appears on the schedule is listed once, under its current
    division, even before it has played.

    Returns:
        [{"division_name": str, "rows": [team record dicts with rank]}]
    """
    team_by_id = {t["id"]: t for t in teams}
    division_names = {d["id"]: d["name"] for d in divisions}
    records: Dict[str, TeamRecord] = {}

    def record_for(team_id: str, fallback_name: str) -> TeamRecord:
        if team_id not in records:
            team = team_by_id.get(team_id) or {}
            name = (team.get("team_name") or "").strip() or fallback_name
            records[team_id] = TeamRecord(team_id, name, team.get("is_active", True) is not False)
        return records[team_id]

    for match in matches:
        team_a_id, team_b_id = match.get("team_a_id"), match.get("team_b_id")
        if team_a_id:
            record_for(team_a_id, "Team A")
        if team_b_id:
            record_for(team_b_id, "Team B")
        if not team_a_id or not team_b_id:
            continue

        score = scores_by_match_id.get(match["id"])
        if not score or not score.get("verified"):
            continue
        side_a = score.get("team_a") or {}
        side_b = score.get("team_b") or {}
        for key in GAME_KEYS:
            a_points, b_points = _points(side_a.get(key)), _points(side_b.get(key))
            if a_points is None or b_points is None:
                continue
            records[team_a_id].record_game(a_points, b_points)
            records[team_b_id].record_game(b_points, a_points)

    buckets: Dict[str, List[TeamRecord]] = {}
    for team_id, record in records.items():
        division_id = (team_by_id.get(team_id) or {}).get("division_id")
        division_name = division_names.get(division_id) or UNASSIGNED_DIVISION
        buckets.setdefault(division_name, []).append(record)

    standings = []
    for division_name in sorted(buckets, key=_division_sort_key):
        rows = []
        for rank, record in enumerate(sorted(buckets[division_name], key=TeamRecord.sort_key), 1):
            row = record.to_dict()
            row["rank"] = rank
            rows.append(row)
        standings.append({"division_name": division_name, "rows": rows})
    return standings


async def get_standings(session: AsyncSession, season_id: str) -> List[Dict]:
    """Standings for a season from its schedule and saved scores."""
    matches = await schedule_service.list_matches(session, season_id)
    scores = await scoring_service.get_scores_for_matches(session, [m["id"] for m in matches])
    teams = await data_service.list_teams(session, season_id)
    divisions = await data_service.list_divisions(session, season_id)
    return compute_standings(matches, scores, teams, divisions)
