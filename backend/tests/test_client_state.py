"""
Tests for the device-side client package: accepted season storage, the
season gate, admin session and the optimistic playoff toggle.
"""
import asyncio
import json
import httpx
import pytest
from backend.api.main import app
from backend.client.api_client import LeagueApiClient, LeagueApiError
from backend.client.session_state import AdminSession, PlayoffModeToggle, SeasonGate
from backend.client.storage import (
    AcceptedSeasonStore, FileAcceptedSeasonStore, MemoryAcceptedSeasonStore,
)
from conftest import ADMIN_CODE, LEAGUE_CODE


def mock_api(handler):
    transport = httpx.MockTransport(handler)
    return LeagueApiClient(
        "http://test", token="t", client=httpx.AsyncClient(transport=transport, base_url="http://test")
    )


def asgi_api():
    """Client talking to the real app in-process (uses the client fixture's database)."""
    transport = httpx.ASGITransport(app=app)
    return LeagueApiClient(
        "http://test", client=httpx.AsyncClient(transport=transport, base_url="http://test")
    )


# ============================================================================
# Storage
# ============================================================================

def test_store_interface_is_abstract():
    with pytest.raises(TypeError):
        AcceptedSeasonStore()

    class GetOnlyStore(AcceptedSeasonStore):
        async def get(self):
            return None

    with pytest.raises(TypeError):
        GetOnlyStore()


@pytest.mark.asyncio
async def test_memory_store():
    store = MemoryAcceptedSeasonStore()
    assert await store.get() is None
    await store.set("s1")
    assert await store.get() == "s1"
    await store.clear()
    assert await store.get() is None


@pytest.mark.asyncio
async def test_file_store_round_trip(tmp_path):
    path = tmp_path / "device" / "secure.json"
    store = FileAcceptedSeasonStore(path)
    await store.set("s1")

    assert json.loads(path.read_text()) == {"PPL_ACCEPTED_SEASON_ID_V3": "s1"}
    assert await FileAcceptedSeasonStore(path).get() == "s1"

    await store.clear()
    assert await store.get() is None


@pytest.mark.asyncio
async def test_file_store_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "secure.json"
    path.write_text("{broken")
    assert await FileAcceptedSeasonStore(path).get() is None


# ============================================================================
# Season gate
# ============================================================================

@pytest.mark.asyncio
async def test_gate_unlocked_keeps_store():
    def handler(request):
        assert request.url.params["accepted_season_id"] == "s1"
        return httpx.Response(
            200, json={"locked": False, "current_season_id": "s1", "clear_accepted": False}
        )

    store = MemoryAcceptedSeasonStore("s1")
    gate = SeasonGate(mock_api(handler), store)
    assert await gate.check() is False
    assert await store.get() == "s1"


@pytest.mark.asyncio
async def test_gate_locked_clears_store():
    def handler(request):
        return httpx.Response(
            200, json={"locked": True, "current_season_id": "s2", "clear_accepted": True}
        )

    store = MemoryAcceptedSeasonStore("s1")
    gate = SeasonGate(mock_api(handler), store)
    assert await gate.check() is True
    assert gate.current_season_id == "s2"
    assert await store.get() is None


@pytest.mark.asyncio
async def test_gate_error_fails_closed():
    def handler(request):
        return httpx.Response(500, json={"detail": "boom"})

    store = MemoryAcceptedSeasonStore("s1")
    gate = SeasonGate(mock_api(handler), store)
    gate.locked = False
    assert await gate.check() is True
    assert await store.get() is None


@pytest.mark.asyncio
async def test_gate_rechecks_only_when_returning_to_foreground():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(
            200, json={"locked": True, "current_season_id": None, "clear_accepted": True}
        )

    gate = SeasonGate(mock_api(handler), MemoryAcceptedSeasonStore())
    assert await gate.on_app_state_change("active", "background") is None
    assert await gate.on_app_state_change("active", "inactive") is None
    assert calls == []

    assert await gate.on_app_state_change("background", "active") is True
    assert await gate.on_app_state_change("inactive", "active") is True
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_gate_unlock_against_app(client):
    async with asgi_api() as api:
        await api.sign_in_anonymous()
        await api.unlock_admin(ADMIN_CODE)
        season = await api.start_season(1)

        store = MemoryAcceptedSeasonStore()
        gate = SeasonGate(api, store)
        assert await gate.check() is True

        with pytest.raises(LeagueApiError) as exc_info:
            await gate.unlock("wrong")
        assert exc_info.value.status_code == 403
        assert await store.get() is None

        await gate.unlock(LEAGUE_CODE)
        assert await store.get() == season["id"]
        assert await gate.check() is False

        # Starting a new season locks the device again
        await api.start_season(2)
        assert await gate.check() is True
        assert await store.get() is None


# ============================================================================
# Admin session
# ============================================================================

@pytest.mark.asyncio
async def test_admin_session_against_app(client):
    async with asgi_api() as api:
        await api.sign_in_anonymous()
        admin = AdminSession(api)

        assert await admin.unlock("0000") is False
        assert admin.is_admin_unlocked is False

        assert await admin.unlock(ADMIN_CODE) is True
        assert admin.is_admin_unlocked is True
        assert await admin.refresh() is True

        await admin.lock()
        assert admin.is_admin_unlocked is False
        assert await admin.refresh() is False


@pytest.mark.asyncio
async def test_admin_session_other_errors_propagate():
    def handler(request):
        return httpx.Response(500, json={"detail": "boom"})

    admin = AdminSession(mock_api(handler))
    with pytest.raises(LeagueApiError):
        await admin.unlock(ADMIN_CODE)
    assert admin.is_admin_unlocked is False


# ============================================================================
# Playoff toggle
# ============================================================================

@pytest.mark.asyncio
async def test_playoff_toggle_success():
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(200, json={"id": 1, "playoff_mode": body["playoff_mode"]})

    toggle = PlayoffModeToggle(mock_api(handler), playoff_mode=False)
    assert await toggle.toggle() is True
    assert toggle.playoff_mode is True
    assert toggle.in_flight is False


@pytest.mark.parametrize("initial", [False, True])
@pytest.mark.asyncio
async def test_playoff_toggle_reverts_on_failure(initial):
    seen = []

    def handler(request):
        seen.append(json.loads(request.content)["playoff_mode"])
        return httpx.Response(403, json={"detail": "Admin access required"})

    toggle = PlayoffModeToggle(mock_api(handler), playoff_mode=initial)
    assert await toggle.toggle() is False
    assert seen == [not initial]
    assert toggle.playoff_mode is initial
    assert toggle.in_flight is False


@pytest.mark.asyncio
async def test_playoff_toggle_reverts_on_transport_error():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    toggle = PlayoffModeToggle(mock_api(handler), playoff_mode=True)
    assert await toggle.toggle() is False
    assert toggle.playoff_mode is True


@pytest.mark.asyncio
async def test_playoff_toggle_ignores_second_toggle_in_flight():
    release = asyncio.Event()
    requests = []

    async def slow_handler(request):
        requests.append(request)
        await release.wait()
        return httpx.Response(200, json={"id": 1, "playoff_mode": True})

    transport = httpx.MockTransport(slow_handler)
    api = LeagueApiClient(
        "http://test", token="t", client=httpx.AsyncClient(transport=transport, base_url="http://test")
    )
    toggle = PlayoffModeToggle(api, playoff_mode=False)

    first = asyncio.create_task(toggle.toggle())
    await asyncio.sleep(0)
    while not requests:
        await asyncio.sleep(0)
    assert toggle.playoff_mode is True
    assert await toggle.toggle() is False

    release.set()
    assert await first is True
    assert toggle.playoff_mode is True
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_playoff_toggle_against_app(client):
    async with asgi_api() as api:
        await api.sign_in_anonymous()
        toggle = PlayoffModeToggle(api)

        # Not admin yet: server refuses and the switch snaps back
        assert await toggle.toggle() is False
        assert toggle.playoff_mode is False

        await api.unlock_admin(ADMIN_CODE)
        assert await toggle.toggle() is True
        assert await toggle.load() is True
