"""
Async HTTP client for the league API.

Wraps httpx.AsyncClient with the bearer token issued by anonymous sign-in.
Non-2xx responses raise LeagueApiError carrying the status code and the
server's detail message.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


class LeagueApiError(Exception):
    """The API answered with an error status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class LeagueApiClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = await self._client.request(method, path, headers=headers, **kwargs)
        if response.is_error:
            try:
                body = response.json()
                detail = body.get("detail") or body.get("error") or response.text
            except ValueError:
                detail = response.text
            raise LeagueApiError(response.status_code, str(detail))
        return response.json()

    # Auth

    async def sign_in_anonymous(self) -> Dict:
        """Create an anonymous user and keep its token for later calls."""
        data = await self._request("POST", "/api/auth/anonymous")
        self.token = data["access_token"]
        return data

    # Gate

    async def get_gate(self, accepted_season_id: Optional[str]) -> Dict:
        params = {"accepted_season_id": accepted_season_id} if accepted_season_id else {}
        return await self._request("GET", "/api/gate", params=params)

    async def unlock_league(self, code: str) -> Dict:
        return await self._request("POST", "/api/league/unlock", json={"code": code})

    async def get_admin_session(self) -> Dict:
        return await self._request("GET", "/api/admin/session")

    async def unlock_admin(self, code: str) -> Dict:
        return await self._request("POST", "/api/admin/unlock", json={"code": code})

    async def lock_admin(self) -> Dict:
        return await self._request("POST", "/api/admin/lock")

    # Settings and seasons

    async def get_settings(self) -> Dict:
        return await self._request("GET", "/api/settings")

    async def set_playoff_mode(self, enabled: bool) -> Dict:
        return await self._request(
            "PUT", "/api/settings/playoff-mode", json={"playoff_mode": enabled}
        )

    async def set_league_code(self, league_code: str) -> Dict:
        return await self._request(
            "PUT", "/api/settings/league-code", json={"league_code": league_code}
        )

    async def list_seasons(self) -> List[Dict]:
        return await self._request("GET", "/api/seasons")

    async def start_season(self, season_number: int) -> Dict:
        return await self._request("POST", "/api/seasons", json={"season_number": season_number})

    async def set_current_season(self, season_id: str) -> Dict:
        return await self._request(
            "PUT", "/api/settings/current-season", json={"season_id": season_id}
        )

    # Divisions and teams

    async def list_divisions(self) -> List[Dict]:
        return await self._request("GET", "/api/divisions")

    async def create_division(self, name: str) -> Dict:
        return await self._request("POST", "/api/divisions", json={"name": name})

    async def list_teams(self) -> List[Dict]:
        return await self._request("GET", "/api/teams")

    async def create_team(self, team_name: str, **fields) -> Dict:
        return await self._request("POST", "/api/teams", json={"team_name": team_name, **fields})

    # Attendance

    async def list_players(self, query: Optional[str] = None) -> List[Dict]:
        params = {"q": query} if query else {}
        return await self._request("GET", "/api/attendance/players", params=params)

    async def get_week_attendance(self, week: int) -> Dict:
        return await self._request("GET", "/api/attendance", params={"week": week})

    async def record_attendance(self, week: int, team_id: str, player: int, status: str) -> Dict:
        return await self._request(
            "POST",
            "/api/attendance",
            json={"week": week, "team_id": team_id, "player": player, "status": status},
        )

    # Schedule, scores and standings

    async def list_schedule_weeks(self) -> List[Dict]:
        return await self._request("GET", "/api/schedule/weeks")

    async def list_matches(self, week: Optional[int] = None) -> List[Dict]:
        params = {"week": week} if week is not None else {}
        return await self._request("GET", "/api/schedule/matches", params=params)

    async def get_week_scoring(self, week: int) -> Dict:
        return await self._request("GET", f"/api/scoring/weeks/{week}")

    async def save_match_score(self, match_id: str, team_a: Dict, team_b: Dict) -> Dict:
        return await self._request(
            "PUT", f"/api/scoring/matches/{match_id}", json={"team_a": team_a, "team_b": team_b}
        )

    async def list_results(self, week: Optional[int] = None, mine: bool = False) -> List[Dict]:
        params = {"mine": mine}
        if week is not None:
            params["week"] = week
        return await self._request("GET", "/api/results", params=params)

    async def get_standings(self) -> List[Dict]:
        return await self._request("GET", "/api/standings")

    async def list_past_winners(self) -> List[Dict]:
        return await self._request("GET", "/api/past-winners")

    # Onboarding

    async def list_onboarding_teams(self) -> List[Dict]:
        return await self._request("GET", "/api/onboarding/teams")

    async def choose_team(self, team_id: str) -> Dict:
        return await self._request("PUT", "/api/onboarding/team", json={"team_id": team_id})

    async def list_onboarding_players(self) -> Dict:
        return await self._request("GET", "/api/onboarding/players")

    async def choose_player(self, player_name: str) -> Dict:
        return await self._request(
            "PUT", "/api/onboarding/player", json={"player_name": player_name}
        )

    # Announcements and push

    async def list_announcements(self) -> List[Dict]:
        return await self._request("GET", "/api/announcements")

    async def post_announcement(self, body: str) -> Dict:
        return await self._request("POST", "/api/announcements", json={"body": body})

    async def register_push_token(
        self, expo_push_token: str, season_id: Optional[str] = None, platform: Optional[str] = None
    ) -> Dict:
        return await self._request(
            "POST",
            "/api/push-tokens",
            json={"expo_push_token": expo_push_token, "season_id": season_id, "platform": platform},
        )
