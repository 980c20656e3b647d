#!/usr/bin/env python3
"""
Script to set up a league season through the API.

Signs in anonymously, unlocks admin, starts a season, sets the league code,
and creates divisions and teams. Safe to re-run: existing teams are skipped.
"""

import asyncio
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from backend.client.api_client import LeagueApiClient, LeagueApiError

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
ADMIN_UNLOCK_CODE = os.getenv("ADMIN_UNLOCK_CODE", "2468")
LEAGUE_CODE = os.getenv("DEFAULT_LEAGUE_CODE", "beach")
SEASON_NUMBER = int(os.getenv("SEASON_NUMBER", "1"))

# Division -> [(team name, player 1, player 2)]
TEAMS = {
    "Beginner": [
        ("Sand Storm", "Alex", "Jordan"),
        ("Net Gains", "Sam", "Riley"),
    ],
    "Intermediate": [
        ("Dig Deep", "Casey", "Morgan"),
        ("Block Party", "Taylor", "Jamie"),
    ],
    "Advanced": [
        ("Side Out", "Drew", "Quinn"),
        ("Ace Hole", "Avery", "Parker"),
    ],
}


async def ensure_season(api: LeagueApiClient) -> dict:
    try:
        season = await api.start_season(SEASON_NUMBER)
        print(f"   ✅ Started {season['name']}")
        return season
    except LeagueApiError as e:
        if e.status_code != 409:
            raise
    season = next(s for s in await api.list_seasons() if s["name"] == f"Season {SEASON_NUMBER}")
    await api.set_current_season(season["id"])
    print(f"   ⚠️  {season['name']} already exists, made it current")
    return season


async def main():
    """Create a season with divisions and teams."""
    print("🏐 League setup script")
    print("=" * 50)
    print(f"API URL: {API_BASE_URL}")
    print("=" * 50)

    async with LeagueApiClient(API_BASE_URL) as api:
        await api.sign_in_anonymous()
        await api.unlock_admin(ADMIN_UNLOCK_CODE)
        print("🔐 Admin unlocked")

        await ensure_season(api)
        await api.set_league_code(LEAGUE_CODE)
        print(f"   ✅ League code set to {LEAGUE_CODE}")

        divisions = {d["name"]: d for d in await api.list_divisions()}
        created = skipped = 0
        for division_name, teams in TEAMS.items():
            division = divisions.get(division_name) or await api.create_division(division_name)
            for team_name, player1, player2 in teams:
                try:
                    await api.create_team(
                        team_name,
                        division_id=division["id"],
                        player1_name=player1,
                        player2_name=player2,
                    )
                    created += 1
                except LeagueApiError as e:
                    if e.status_code != 409:
                        raise
                    skipped += 1

        await api.lock_admin()

    print("\n" + "=" * 50)
    print(f"✅ Teams created: {created}")
    print(f"⚠️  Teams skipped (already exist): {skipped}")
    print("=" * 50)


if __name__ == "__main__":
    asyncio.run(main())
