"""
Webhook delivery.

Posts payloads to a Discord-compatible webhook. Failures always raise:
data gaps may degrade quietly, but a failed notification must be seen.
"""

import logging
from typing import Optional

import httpx


logger = logging.getLogger(__name__)


MAX_EMBEDS = 10
MAX_CONTENT = 2000


class WebhookError(Exception):
    """Raised when the webhook rejects or cannot receive a payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def message_payload(message: str) -> dict:
    """Single plain-text message payload."""
    return {"content": message[:MAX_CONTENT]}


def embeds_payload(embeds: list[dict], content: Optional[str] = None) -> dict:
    """Rich payload; Discord accepts at most MAX_EMBEDS embeds per message."""
    payload: dict = {"embeds": embeds[:MAX_EMBEDS]}
    if content:
        payload["content"] = content[:MAX_CONTENT]
    return payload


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return str(body)[:200]


async def send_webhook(
    webhook_url: str,
    payload: dict,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> None:
    """
    POST a payload to the webhook.

    Args:
        webhook_url: Target webhook URL.
        payload: JSON body ({"content": ...} and/or {"embeds": [...]}).
        client: Optional shared HTTP client.
        timeout: Request timeout in seconds when no client is given.

    Raises:
        WebhookError: If the request fails or the webhook returns a non-success status.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            return await send_webhook(webhook_url, payload, own_client)

    try:
        response = await client.post(webhook_url, json=payload)
    except httpx.HTTPError as e:
        raise WebhookError(f"Failed to reach webhook: {e}")

    if response.is_error:
        message = _error_message(response)
        logger.error(f"Webhook API error ({response.status_code}): {message}")
        raise WebhookError(f"Discord API Error: {message}", status_code=response.status_code)

    logger.info(f"Webhook delivered ({len(payload.get('embeds', []))} embeds)")
