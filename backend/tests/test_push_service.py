"""
Tests for the announcement push relay service.
Gateway calls go through httpx.MockTransport.
"""
import json
import httpx
import pytest
from backend.database.models import UserPushToken
from backend.services import data_service, push_service


class GatewayRecorder:
    """Mock push gateway that records every request."""

    def __init__(self, status_code=200, body=None, raw=None):
        self.requests = []
        self.status_code = status_code
        self.body = body if body is not None else {"data": [{"status": "ok"}]}
        self.raw = raw

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw)
        return httpx.Response(self.status_code, json=self.body)

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


async def _add_tokens(db_session, *tokens):
    db_session.add_all([UserPushToken(expo_push_token=t) for t in tokens])
    await db_session.commit()


def test_is_authorized(monkeypatch):
    monkeypatch.delenv("ANNOUNCEMENT_WEBHOOK_SECRET", raising=False)
    assert push_service.is_authorized("anything") is False
    assert push_service.is_authorized(None) is False

    monkeypatch.setenv("ANNOUNCEMENT_WEBHOOK_SECRET", "s3cret")
    assert push_service.is_authorized("s3cret") is True
    assert push_service.is_authorized("S3CRET") is False
    assert push_service.is_authorized(None) is False


@pytest.mark.parametrize(
    "event,expected",
    [
        ({"record": {"body": "Game moved to 7pm"}}, "Game moved to 7pm"),
        ({"record": {"message": "Bring water"}}, "Bring water"),
        ({"record": {"body": "", "message": "fallback"}}, ""),
        ({"record": {}}, "New announcement"),
        ({}, "New announcement"),
        ([], "New announcement"),
        ({"record": "not a dict"}, "New announcement"),
    ],
)
def test_extract_body_text(event, expected):
    assert push_service.extract_body_text(event) == expected


def test_build_messages():
    messages = push_service.build_messages(["a", "b"], "Hi")
    assert messages == [
        {"to": "a", "sound": "default", "title": "New Announcement", "body": "Hi"},
        {"to": "b", "sound": "default", "title": "New Announcement", "body": "Hi"},
    ]


@pytest.mark.asyncio
async def test_zero_tokens_skips_gateway(db_session):
    gateway = GatewayRecorder()
    async with gateway.client() as client:
        result = await push_service.send_announcement_push(
            db_session, {"record": {"body": "hello"}}, client=client
        )
    assert result == {"ok": True, "sent": 0}
    assert gateway.requests == []


@pytest.mark.asyncio
async def test_three_tokens_single_batch(db_session):
    await _add_tokens(db_session, "ExponentPushToken[a]", "ExponentPushToken[b]", "ExponentPushToken[c]")
    gateway = GatewayRecorder(body={"data": [{"status": "ok"}] * 3})

    async with gateway.client() as client:
        result = await push_service.send_announcement_push(
            db_session, {"record": {"body": "Game moved to 7pm"}}, client=client
        )

    assert len(gateway.requests) == 1
    sent = json.loads(gateway.requests[0].content)
    assert [m["to"] for m in sent] == [
        "ExponentPushToken[a]", "ExponentPushToken[b]", "ExponentPushToken[c]"
    ]
    assert {m["body"] for m in sent} == {"Game moved to 7pm"}
    assert {m["title"] for m in sent} == {"New Announcement"}
    assert str(gateway.requests[0].url) == push_service.get_push_url()
    assert result == {"ok": True, "sent": 3, "expo": {"data": [{"status": "ok"}] * 3}}


@pytest.mark.asyncio
async def test_gateway_non_json_response(db_session):
    await _add_tokens(db_session, "ExponentPushToken[a]")
    gateway = GatewayRecorder(status_code=502, raw=b"<html>bad gateway</html>")

    async with gateway.client() as client:
        result = await push_service.send_announcement_push(db_session, {}, client=client)

    assert result == {"ok": True, "sent": 1, "expo": {}}


@pytest.mark.asyncio
async def test_gateway_transport_error(db_session):
    await _add_tokens(db_session, "ExponentPushToken[a]")

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(push_service.GatewayError):
            await push_service.send_announcement_push(db_session, {}, client=client)


@pytest.mark.asyncio
async def test_token_fetch_error(db_session, monkeypatch):
    async def broken(session):
        raise RuntimeError("relation does not exist")

    monkeypatch.setattr(data_service, "get_distinct_push_tokens", broken)
    gateway = GatewayRecorder()
    async with gateway.client() as client:
        with pytest.raises(push_service.TokenFetchError):
            await push_service.send_announcement_push(db_session, {}, client=client)
    assert gateway.requests == []


@pytest.mark.asyncio
async def test_dispatch_webhook_skipped_without_url(monkeypatch):
    monkeypatch.delenv("ANNOUNCEMENT_WEBHOOK_URL", raising=False)
    gateway = GatewayRecorder()
    async with gateway.client() as client:
        assert await push_service.dispatch_announcement_webhook({"body": "x"}, client=client) is False
    assert gateway.requests == []


@pytest.mark.asyncio
async def test_dispatch_webhook_payload(monkeypatch):
    monkeypatch.setenv("ANNOUNCEMENT_WEBHOOK_URL", "http://relay.test/functions/v1/send-announcement-push")
    monkeypatch.setenv("ANNOUNCEMENT_WEBHOOK_SECRET", "s3cret")
    relay = GatewayRecorder(body={"ok": True, "sent": 0})

    async with relay.client() as client:
        delivered = await push_service.dispatch_announcement_webhook(
            {"id": "a1", "body": "Game moved to 7pm"}, client=client
        )

    assert delivered is True
    request = relay.requests[0]
    assert request.headers["x-webhook-secret"] == "s3cret"
    assert json.loads(request.content) == {
        "type": "INSERT",
        "table": "announcements",
        "record": {"id": "a1", "body": "Game moved to 7pm"},
    }


@pytest.mark.asyncio
async def test_dispatch_webhook_failure_is_not_raised(monkeypatch):
    monkeypatch.setenv("ANNOUNCEMENT_WEBHOOK_URL", "http://relay.test/hook")
    relay = GatewayRecorder(status_code=401, body={"error": "Unauthorized"})

    async with relay.client() as client:
        assert await push_service.dispatch_announcement_webhook({"body": "x"}, client=client) is False
