"""
Data service layer for database operations.
Handles the CRUD operations for settings, seasons, divisions, teams,
season profiles, push tokens and past winners.
"""

import re
from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from backend.database.db import upsert_insert
from backend.database.models import (
    AppSettings, Season, Division, Team, UserSeasonProfile, UserPushToken, PastWinner,
)
from backend.utils.constants import DIVISION_ORDER
from backend.utils.datetime_utils import utcnow, isoformat_or_none
import logging

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


class DuplicateNameError(ValueError):
    """Raised when a season or team name is already taken."""

#
# Helper functions
#


def normalize_name(name: Optional[str]) -> str:
    """Collapse whitespace and lowercase a name for duplicate checks."""
    return re.sub(r"\s+", " ", (name or "").strip()).lower()


def season_name_from_number(value) -> Optional[str]:
    """
    Build the canonical season name from a season number.

    Accepts ints or numeric strings ("4", " 4 "). Returns None for anything
    that is not a positive whole number.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    else:
        text = str(value or "").strip()
        if not text.isdigit():
            return None
        number = int(text)
    if number <= 0:
        return None
    return f"Season {number}"


def _season_to_dict(season: Season) -> Dict:
    return {
        "id": season.id,
        "name": season.name,
        "created_at": isoformat_or_none(season.created_at),
    }


def _division_to_dict(division: Division) -> Dict:
    return {
        "id": division.id,
        "season_id": division.season_id,
        "name": division.name,
    }


def _team_to_dict(team: Team) -> Dict:
    return {
        "id": team.id,
        "season_id": team.season_id,
        "division_id": team.division_id,
        "team_name": team.team_name,
        "player1_name": team.player1_name,
        "player2_name": team.player2_name,
        "player1_paid": bool(team.player1_paid),
        "player2_paid": bool(team.player2_paid),
        "is_active": team.is_active if isinstance(team.is_active, bool) else True,
    }


def _profile_to_dict(profile: UserSeasonProfile) -> Dict:
    return {
        "user_id": profile.user_id,
        "season_id": profile.season_id,
        "team_id": profile.team_id,
        "player_name": profile.player_name,
    }


def _division_sort_key(division: Dict):
    name = (division.get("name") or "").strip()
    return (DIVISION_ORDER.get(name, 999), name.lower())


#
# App settings (singleton)
#


async def _get_settings_row(session: AsyncSession) -> Optional[AppSettings]:
    result = await session.execute(select(AppSettings).limit(1))
    return result.scalar_one_or_none()


async def ensure_app_settings(
    session: AsyncSession, league_code: Optional[str] = None
) -> Dict:
    """
    Create the singleton settings row if it does not exist yet.

    An existing row is left untouched, except that a missing league code is
    filled in when one is supplied.
    """
    row = await _get_settings_row(session)
    if row is None:
        row = AppSettings(id=SETTINGS_ROW_ID, playoff_mode=False, league_code=league_code)
        session.add(row)
        await session.commit()
        logger.info("Created app settings row")
    elif league_code and not row.league_code:
        row.league_code = league_code
        await session.commit()
    return await get_app_settings(session)


async def get_app_settings(session: AsyncSession) -> Optional[Dict]:
    """
    Get the singleton settings row with the current season's name resolved.

    Returns:
        Settings dict or None if the row has not been created
    """
    row = await _get_settings_row(session)
    if row is None:
        return None

    season_name = None
    if row.current_season_id:
        result = await session.execute(
            select(Season.name).where(Season.id == row.current_season_id)
        )
        season_name = result.scalar_one_or_none()

    return {
        "id": row.id,
        "current_season_id": row.current_season_id,
        "current_season_name": season_name,
        "playoff_mode": bool(row.playoff_mode),
    }


async def get_current_season_id(session: AsyncSession) -> Optional[str]:
    """Get the current season id, or None when unset."""
    result = await session.execute(select(AppSettings.current_season_id).limit(1))
    return result.scalar_one_or_none()


async def get_league_code(session: AsyncSession) -> Optional[str]:
    """Get the league access code players enter on the lock screen."""
    result = await session.execute(select(AppSettings.league_code).limit(1))
    return result.scalar_one_or_none()


async def set_league_code(session: AsyncSession, league_code: str) -> None:
    """Replace the league access code."""
    row = await _get_settings_row(session)
    if row is None:
        raise ValueError("App settings have not been initialized")
    row.league_code = league_code
    await session.commit()


async def set_current_season(session: AsyncSession, season_id: str) -> Dict:
    """
    Point the app at a different season.

    Raises:
        ValueError: If the season or the settings row does not exist
    """
    row = await _get_settings_row(session)
    if row is None:
        raise ValueError("App settings have not been initialized")

    result = await session.execute(select(Season.id).where(Season.id == season_id))
    if result.scalar_one_or_none() is None:
        raise ValueError(f"Season {season_id} not found")

    row.current_season_id = season_id
    await session.commit()
    logger.info(f"Current season set to {season_id}")
    return await get_app_settings(session)


async def set_playoff_mode(session: AsyncSession, enabled: bool) -> Dict:
    """
    Update the playoff flag and nothing else.

    Turning playoff mode off never removes any playoff data.

    Raises:
        ValueError: If the settings row does not exist
    """
    row = await _get_settings_row(session)
    if row is None:
        raise ValueError("App settings have not been initialized")
    row.playoff_mode = bool(enabled)
    await session.commit()
    return await get_app_settings(session)


#
# Seasons
#


async def list_seasons(session: AsyncSession) -> List[Dict]:
    """List all seasons ordered by name."""
    result = await session.execute(select(Season).order_by(Season.name.asc()))
    return [_season_to_dict(s) for s in result.scalars().all()]


async def get_season(session: AsyncSession, season_id: str) -> Optional[Dict]:
    """Get a season by ID."""
    result = await session.execute(select(Season).where(Season.id == season_id))
    season = result.scalar_one_or_none()
    return _season_to_dict(season) if season else None


async def create_season(session: AsyncSession, name: str) -> Dict:
    """
    Create a season.

    Raises:
        ValueError: If the name is blank or a season with the same name exists
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Season name is required")

    result = await session.execute(
        select(Season.id).where(func.lower(func.trim(Season.name)) == name.lower())
    )
    if result.first() is not None:
        raise DuplicateNameError(f"{name} already exists.")

    season = Season(name=name)
    session.add(season)
    await session.commit()
    await session.refresh(season)
    return _season_to_dict(season)


async def delete_season(session: AsyncSession, season_id: str) -> bool:
    """
    Delete a season and everything under it.

    Returns:
        True if a season was deleted

    Raises:
        ValueError: If the season is the current season
    """
    current_id = await get_current_season_id(session)
    if current_id == season_id:
        raise ValueError("You cannot delete the current season.")

    result = await session.execute(select(Season).where(Season.id == season_id))
    season = result.scalar_one_or_none()
    if not season:
        return False
    await session.delete(season)
    await session.commit()
    return True


#
# Divisions
#


async def list_divisions(session: AsyncSession, season_id: str) -> List[Dict]:
    """List a season's divisions, skill levels first, then by name."""
    result = await session.execute(select(Division).where(Division.season_id == season_id))
    divisions = [_division_to_dict(d) for d in result.scalars().all()]
    return sorted(divisions, key=_division_sort_key)


async def get_division(session: AsyncSession, division_id: str) -> Optional[Dict]:
    """Get a division by ID."""
    result = await session.execute(select(Division).where(Division.id == division_id))
    division = result.scalar_one_or_none()
    return _division_to_dict(division) if division else None


async def create_division(session: AsyncSession, season_id: str, name: str) -> Dict:
    """
    Create a division in a season.

    Raises:
        ValueError: If the name is blank
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Division name is required")
    division = Division(season_id=season_id, name=name)
    session.add(division)
    await session.commit()
    await session.refresh(division)
    return _division_to_dict(division)


async def delete_division(session: AsyncSession, division_id: str) -> bool:
    """Delete a division. Its teams stay in the season without a division."""
    result = await session.execute(select(Division).where(Division.id == division_id))
    division = result.scalar_one_or_none()
    if not division:
        return False
    await session.delete(division)
    await session.commit()
    return True


#
# Teams
#


async def list_teams(
    session: AsyncSession, season_id: str, active_only: bool = False
) -> List[Dict]:
    """List a season's teams ordered by team name."""
    query = select(Team).where(Team.season_id == season_id)
    if active_only:
        query = query.where(Team.is_active == True)  # noqa: E712
    result = await session.execute(query.order_by(Team.team_name.asc()))
    return [_team_to_dict(t) for t in result.scalars().all()]


async def get_team(session: AsyncSession, team_id: str) -> Optional[Dict]:
    """Get a team by ID."""
    result = await session.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    return _team_to_dict(team) if team else None


async def _ensure_unique_team_name(
    session: AsyncSession,
    season_id: str,
    division_id: Optional[str],
    team_name: str,
    exclude_team_id: Optional[str] = None,
) -> None:
    query = select(Team).where(Team.season_id == season_id, Team.division_id == division_id)
    if division_id is None:
        query = select(Team).where(Team.season_id == season_id, Team.division_id.is_(None))
    result = await session.execute(query)
    incoming = normalize_name(team_name)
    for team in result.scalars().all():
        if team.id != exclude_team_id and normalize_name(team.team_name) == incoming:
            raise DuplicateNameError("Duplicate team name in this division.")


async def _ensure_division_in_season(
    session: AsyncSession, season_id: str, division_id: Optional[str]
) -> None:
    if division_id is None:
        return
    division = await get_division(session, division_id)
    if not division or division["season_id"] != season_id:
        raise LookupError(f"Division {division_id} not found in this season")


async def create_team(
    session: AsyncSession,
    season_id: str,
    team_name: str,
    division_id: Optional[str] = None,
    player1_name: Optional[str] = None,
    player2_name: Optional[str] = None,
) -> Dict:
    """
    Create an active, unpaid team.

    Raises:
        ValueError: If the name is blank or already used in the division
        LookupError: If the division is not part of the season
    """
    team_name = (team_name or "").strip()
    if not team_name:
        raise ValueError("Team name is required")

    await _ensure_division_in_season(session, season_id, division_id)
    await _ensure_unique_team_name(session, season_id, division_id, team_name)

    team = Team(
        season_id=season_id,
        division_id=division_id,
        team_name=team_name,
        player1_name=(player1_name or "").strip() or None,
        player2_name=(player2_name or "").strip() or None,
        player1_paid=False,
        player2_paid=False,
        is_active=True,
    )
    session.add(team)
    await session.commit()
    await session.refresh(team)
    return _team_to_dict(team)


async def update_team(session: AsyncSession, team_id: str, **fields) -> Optional[Dict]:
    """
    Update a team's names, division or active flag.

    Only keys present in ``fields`` are changed. Returns None if the team
    does not exist.

    Raises:
        ValueError: If the new name is blank or collides in the target division
        LookupError: If the target division is not part of the team's season
    """
    result = await session.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    if not team:
        return None

    target_division = fields.get("division_id", team.division_id)
    target_name = team.team_name
    if "team_name" in fields:
        target_name = (fields["team_name"] or "").strip()
        if not target_name:
            raise ValueError("Team name is required")

    if "division_id" in fields:
        await _ensure_division_in_season(session, team.season_id, target_division)
    if "division_id" in fields or "team_name" in fields:
        await _ensure_unique_team_name(
            session, team.season_id, target_division, target_name, exclude_team_id=team.id
        )

    team.team_name = target_name
    team.division_id = target_division
    for key in ("player1_name", "player2_name"):
        if key in fields:
            setattr(team, key, (fields[key] or "").strip() or None)
    if fields.get("is_active") is not None:
        team.is_active = bool(fields["is_active"])

    await session.commit()
    await session.refresh(team)
    return _team_to_dict(team)


async def toggle_player_paid(session: AsyncSession, team_id: str, player: int) -> Optional[Dict]:
    """Flip the paid flag for player slot 1 or 2. Returns None if the team does not exist."""
    if player not in (1, 2):
        raise ValueError("player must be 1 or 2")
    result = await session.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    if not team:
        return None
    if player == 1:
        team.player1_paid = not team.player1_paid
    else:
        team.player2_paid = not team.player2_paid
    await session.commit()
    await session.refresh(team)
    return _team_to_dict(team)


async def delete_team(session: AsyncSession, team_id: str) -> bool:
    """Delete a team."""
    result = await session.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    if not team:
        return False
    await session.delete(team)
    await session.commit()
    return True


#
# User season profiles
#


async def get_user_season_profile(
    session: AsyncSession, user_id: str, season_id: str
) -> Optional[Dict]:
    """Get the profile linking a user to a season."""
    result = await session.execute(
        select(UserSeasonProfile).where(
            UserSeasonProfile.user_id == user_id,
            UserSeasonProfile.season_id == season_id,
        )
    )
    profile = result.scalar_one_or_none()
    return _profile_to_dict(profile) if profile else None


async def ensure_user_season_profile(
    session: AsyncSession, user_id: str, season_id: str
) -> Dict:
    """Create the user's profile for a season if it does not exist yet."""
    existing = await get_user_season_profile(session, user_id, season_id)
    if existing:
        return existing
    profile = UserSeasonProfile(user_id=user_id, season_id=season_id)
    session.add(profile)
    await session.commit()
    await session.refresh(profile)
    return _profile_to_dict(profile)


async def update_user_season_profile(
    session: AsyncSession, user_id: str, season_id: str, **fields
) -> Optional[Dict]:
    """
    Update team_id and/or player_name on an existing profile.

    Returns None when the user has no profile for the season.
    """
    result = await session.execute(
        select(UserSeasonProfile).where(
            UserSeasonProfile.user_id == user_id,
            UserSeasonProfile.season_id == season_id,
        )
    )
    profile = result.scalar_one_or_none()
    if not profile:
        return None
    for key in ("team_id", "player_name"):
        if key in fields:
            setattr(profile, key, fields[key])
    await session.commit()
    await session.refresh(profile)
    return _profile_to_dict(profile)


#
# Push tokens
#


async def upsert_push_token(
    session: AsyncSession,
    expo_push_token: str,
    user_id: Optional[str] = None,
    season_id: Optional[str] = None,
    platform: Optional[str] = None,
) -> Dict:
    """
    Register or refresh a device's push token (keyed by the token itself).

    Raises:
        ValueError: If the token is empty
    """
    token = (expo_push_token or "").strip()
    if not token:
        raise ValueError("expo_push_token is required")

    stmt = upsert_insert(session, UserPushToken).values(
        expo_push_token=token,
        user_id=user_id,
        season_id=season_id,
        platform=platform,
        last_seen_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["expo_push_token"],
        set_=dict(
            user_id=stmt.excluded.user_id,
            season_id=stmt.excluded.season_id,
            platform=stmt.excluded.platform,
            last_seen_at=stmt.excluded.last_seen_at,
        ),
    )
    await session.execute(stmt)
    await session.commit()

    result = await session.execute(
        select(UserPushToken)
        .where(UserPushToken.expo_push_token == token)
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one()
    return {
        "expo_push_token": row.expo_push_token,
        "user_id": row.user_id,
        "season_id": row.season_id,
        "platform": row.platform,
        "last_seen_at": isoformat_or_none(row.last_seen_at),
    }


async def get_distinct_push_tokens(session: AsyncSession) -> List[str]:
    """
    Get every registered push token once, skipping empty values.

    Order follows registration order so batches are stable.
    """
    result = await session.execute(
        select(UserPushToken.expo_push_token).order_by(UserPushToken.id.asc())
    )
    tokens: List[str] = []
    seen = set()
    for token in result.scalars().all():
        if token and token not in seen:
            seen.add(token)
            tokens.append(token)
    return tokens


#
# Past winners
#

_SEASON_NUMBER = re.compile(r"(\d+)")


def _past_winner_to_dict(row: PastWinner) -> Dict:
    return {
        "id": row.id,
        "season_label": row.season_label,
        "division_label": row.division_label,
        "winners_label": row.winners_label,
        "photo_path": row.photo_path,
        "created_at": isoformat_or_none(row.created_at),
    }


async def list_past_winners(session: AsyncSession) -> List[Dict]:
    """List past winners, newest first."""
    result = await session.execute(
        select(PastWinner).order_by(PastWinner.created_at.desc(), PastWinner.id.asc())
    )
    return [_past_winner_to_dict(w) for w in result.scalars().all()]


def group_past_winners(winners: List[Dict]) -> List[Dict]:
    """
    Group newest-first winner rows by season label, then division label.

    Seasons whose label carries a number ("Season 12") come first, highest
    number first; the rest follow newest first. Divisions keep the order in
    which they first appear.
    """
    seasons: Dict[str, Dict] = {}
    for position, winner in enumerate(winners):
        label = (winner.get("season_label") or "").strip() or "Season"
        season = seasons.get(label)
        if season is None:
            number = _SEASON_NUMBER.search(label)
            season = seasons[label] = {
                "season_label": label,
                "season_number": int(number.group(1)) if number else None,
                "first_position": position,
                "divisions": {},
            }
        division_label = (winner.get("division_label") or "").strip() or "Division"
        season["divisions"].setdefault(division_label, []).append(winner)

    def season_key(season: Dict):
        if season["season_number"] is not None:
            return (0, -season["season_number"], season["first_position"])
        return (1, 0, season["first_position"])

    return [
        {
            "season_label": season["season_label"],
            "divisions": [
                {"division_label": name, "winners": rows}
                for name, rows in season["divisions"].items()
            ],
        }
        for season in sorted(seasons.values(), key=season_key)
    ]


async def create_past_winner(
    session: AsyncSession,
    season_label: str,
    division_label: str,
    winners_label: str,
    photo_path: Optional[str] = None,
) -> Dict:
    """
    Add a hall-of-fame entry.

    Raises:
        ValueError: If any of the three labels is blank
    """
    season_label = (season_label or "").strip()
    division_label = (division_label or "").strip()
    winners_label = (winners_label or "").strip()
    if not season_label or not division_label or not winners_label:
        raise ValueError("Please fill Season, Division, and Winners.")

    winner = PastWinner(
        season_label=season_label,
        division_label=division_label,
        winners_label=winners_label,
        photo_path=(photo_path or "").strip() or None,
    )
    session.add(winner)
    await session.commit()
    await session.refresh(winner)
    logger.info(f"Added past winner {winners_label} ({season_label}, {division_label})")
    return _past_winner_to_dict(winner)


async def delete_past_winner(session: AsyncSession, winner_id: str) -> bool:
    """Delete a past winner entry."""
    result = await session.execute(select(PastWinner).where(PastWinner.id == winner_id))
    winner = result.scalar_one_or_none()
    if not winner:
        return False
    await session.delete(winner)
    await session.commit()
    return True
