"""
Device session state: season gate, admin unlock and the playoff toggle.

Each piece of state is an explicit object owned by the caller, not a module
global, so several sessions can coexist (one per device in tests).
"""

import logging
from typing import Dict, Optional

from backend.client.api_client import LeagueApiClient, LeagueApiError
from backend.client.storage import AcceptedSeasonStore

logger = logging.getLogger(__name__)

INACTIVE_STATES = ("inactive", "background")
ACTIVE_STATE = "active"


class SeasonGate:
    """
    Decides whether the league lock screen must be shown.

    The device is unlocked only while its stored accepted season equals the
    league's current season. Anything that goes wrong locks the device and
    clears the stored value.
    """

    def __init__(self, api: LeagueApiClient, store: AcceptedSeasonStore):
        self.api = api
        self.store = store
        self.locked = True
        self.current_season_id: Optional[str] = None

    async def _clear_store(self) -> None:
        try:
            await self.store.clear()
        except Exception as e:
            logger.warning(f"Could not clear accepted season: {e}")

    async def check(self) -> bool:
        """Re-evaluate the gate. Returns True when locked."""
        try:
            accepted = await self.store.get()
            decision = await self.api.get_gate(accepted)
        except Exception as e:
            logger.warning(f"Season gate check failed, locking: {e}")
            await self._clear_store()
            self.locked = True
            self.current_season_id = None
            return True

        self.locked = bool(decision.get("locked", True))
        self.current_season_id = decision.get("current_season_id")
        if self.locked or decision.get("clear_accepted"):
            await self._clear_store()
        return self.locked

    async def unlock(self, code: str) -> Dict:
        """
        Unlock with the league code and remember the accepted season.

        Raises:
            LeagueApiError: If the server rejects the code
        """
        result = await self.api.unlock_league(code)
        await self.store.set(result["accepted_season_id"])
        self.locked = False
        self.current_season_id = result["accepted_season_id"]
        return result

    async def on_app_state_change(self, previous: str, current: str) -> Optional[bool]:
        """Re-check when the app comes back to the foreground; otherwise do nothing."""
        if previous in INACTIVE_STATES and current == ACTIVE_STATE:
            return await self.check()
        return None


class AdminSession:
    """
    In-memory admin unlock flag for this device.

    Set only after the server accepts the passcode, and forgotten on restart.
    The passcode is a shared convenience lock, not a credential.
    """

    def __init__(self, api: LeagueApiClient):
        self.api = api
        self.is_admin_unlocked = False

    async def unlock(self, code: str) -> bool:
        try:
            await self.api.unlock_admin(code)
        except LeagueApiError as e:
            if e.status_code == 403:
                return False
            raise
        self.is_admin_unlocked = True
        return True

    async def lock(self) -> None:
        await self.api.lock_admin()
        self.is_admin_unlocked = False

    async def refresh(self) -> bool:
        session = await self.api.get_admin_session()
        self.is_admin_unlocked = bool(session.get("is_admin_unlocked"))
        return self.is_admin_unlocked


class PlayoffModeToggle:
    """
    Optimistic playoff-mode switch.

    The displayed value flips as soon as toggle() starts and is reverted if
    the server update fails. A second toggle while one is in flight is
    ignored.
    """

    def __init__(self, api: LeagueApiClient, playoff_mode: bool = False):
        self.api = api
        self.playoff_mode = playoff_mode
        self.in_flight = False

    async def load(self) -> bool:
        settings = await self.api.get_settings()
        self.playoff_mode = bool(settings.get("playoff_mode"))
        return self.playoff_mode

    async def toggle(self) -> bool:
        """Returns True if the server accepted the change."""
        if self.in_flight:
            return False

        previous = self.playoff_mode
        self.playoff_mode = not previous
        self.in_flight = True
        try:
            settings = await self.api.set_playoff_mode(self.playoff_mode)
            self.playoff_mode = bool(settings.get("playoff_mode", self.playoff_mode))
            return True
        except Exception as e:
            logger.warning(f"Playoff mode update failed, reverting: {e}")
            self.playoff_mode = previous
            return False
        finally:
            self.in_flight = False
