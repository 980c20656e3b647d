"""
Push announcement relay.

Called by the announcement-insert webhook: loads every registered Expo push
token and sends one batched request to the Expo push gateway. There is no
retry and no per-token bookkeeping; the gateway's response is handed back as-is.
"""

import os
import logging
from typing import Any, Dict, List, Optional
import httpx
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession
from backend.services import data_service
from backend.utils.constants import (
    EXPO_PUSH_URL,
    PUSH_TITLE,
    PUSH_SOUND,
    DEFAULT_PUSH_BODY,
    WEBHOOK_SECRET_HEADER,
)

load_dotenv()

logger = logging.getLogger(__name__)

GATEWAY_TIMEOUT_SECONDS = 15.0


class TokenFetchError(Exception):
    """Push tokens could not be loaded."""


class GatewayError(Exception):
    """The push gateway could not be reached."""


def get_webhook_secret() -> Optional[str]:
    return os.getenv("ANNOUNCEMENT_WEBHOOK_SECRET") or None


def get_push_url() -> str:
    return os.getenv("EXPO_PUSH_URL", EXPO_PUSH_URL)


def is_authorized(secret_header: Optional[str]) -> bool:
    """A request is authorized only when a secret is configured and matches exactly."""
    expected = get_webhook_secret()
    return bool(expected) and (secret_header or "") == expected


def extract_body_text(event: Any) -> str:
    """
    Pull the message text out of a change-notification payload.

    Uses record.body, then record.message, then a default.
    """
    record = event.get("record") if isinstance(event, dict) else None
    if not isinstance(record, dict):
        return DEFAULT_PUSH_BODY
    for key in ("body", "message"):
        value = record.get(key)
        if value is not None:
            return value
    return DEFAULT_PUSH_BODY


def build_messages(tokens: List[str], body_text: str) -> List[Dict]:
    """One gateway message per token, identical apart from the recipient."""
    return [
        {"to": token, "sound": PUSH_SOUND, "title": PUSH_TITLE, "body": body_text}
        for token in tokens
    ]


async def post_to_gateway(
    messages: List[Dict], client: Optional[httpx.AsyncClient] = None
) -> Any:
    """
    Submit a batch of messages in a single request.

    Returns:
        Parsed gateway JSON, or {} when the response body is not JSON

    Raises:
        GatewayError: If the request itself fails
    """
    async def _send(http: httpx.AsyncClient) -> Any:
        response = await http.post(
            get_push_url(),
            json=messages,
            headers={"Content-Type": "application/json"},
        )
        try:
            return response.json()
        except ValueError:
            logger.warning(f"Push gateway returned non-JSON response ({response.status_code})")
            return {}

    try:
        if client is not None:
            return await _send(client)
        async with httpx.AsyncClient(timeout=GATEWAY_TIMEOUT_SECONDS) as http:
            return await _send(http)
    except httpx.HTTPError as e:
        raise GatewayError(str(e)) from e


async def send_announcement_push(
    session: AsyncSession, event: Any, client: Optional[httpx.AsyncClient] = None
) -> Dict:
    """
    Fan one announcement out to every registered device.

    Returns:
        {"ok": True, "sent": 0} when there are no tokens, otherwise
        {"ok": True, "sent": n, "expo": <gateway response>}

    Raises:
        TokenFetchError: If tokens could not be loaded
        GatewayError: If the gateway request fails
    """
    body_text = extract_body_text(event)

    try:
        tokens = await data_service.get_distinct_push_tokens(session)
    except Exception as e:
        logger.error(f"Failed to fetch push tokens: {e}", exc_info=True)
        raise TokenFetchError(str(e)) from e

    if not tokens:
        logger.info("No push tokens registered; nothing to send")
        return {"ok": True, "sent": 0}

    messages = build_messages(tokens, body_text)
    expo_response = await post_to_gateway(messages, client=client)
    logger.info(f"Sent announcement push to {len(messages)} devices")
    return {"ok": True, "sent": len(messages), "expo": expo_response}


async def dispatch_announcement_webhook(
    record: Dict, client: Optional[httpx.AsyncClient] = None
) -> bool:
    """
    Notify the push relay that an announcement was inserted.

    Mirrors a database insert webhook: posts {"type": "INSERT", "table":
    "announcements", "record": ...} with the shared secret header. Does
    nothing unless ANNOUNCEMENT_WEBHOOK_URL is set. Errors are logged, never
    raised, so posting an announcement is never blocked by delivery.

    Returns:
        True if the relay accepted the call
    """
    url = os.getenv("ANNOUNCEMENT_WEBHOOK_URL")
    if not url:
        logger.debug("ANNOUNCEMENT_WEBHOOK_URL not set, skipping push dispatch")
        return False

    payload = {"type": "INSERT", "table": "announcements", "record": record}
    headers = {WEBHOOK_SECRET_HEADER: get_webhook_secret() or ""}

    try:
        if client is not None:
            response = await client.post(url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=GATEWAY_TIMEOUT_SECONDS) as http:
                response = await http.post(url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.warning(f"Announcement webhook dispatch failed: {e}")
        return False

    if response.status_code != 200:
        logger.warning(
            f"Announcement webhook returned {response.status_code}: {response.text[:200]}"
        )
        return False
    return True
