"""
Scheduled digest push.

The schedule itself lives in an external cron; this module only checks the
shared secret it sends and runs fetch -> format -> push once.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from .aggregator import aggregate_dashboard
from .config import Config
from .digest import build_digest
from .webhook import send_webhook


logger = logging.getLogger(__name__)


class AuthorizationError(Exception):
    """Raised when a scheduled trigger presents the wrong shared secret."""
    pass


def authorize(config: Config, provided_secret: Optional[str]) -> None:
    """
    Check the cron shared secret.

    Raises:
        ConfigError: If CRON_SECRET is not configured on the server.
        AuthorizationError: If the provided secret does not match.
    """
    config.require("cron_secret")
    if provided_secret != config.cron_secret:
        raise AuthorizationError("Unauthorized")


async def run_scheduled_push(
    config: Config,
    llm=None,
    client: Optional[httpx.AsyncClient] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Aggregate the dashboard and push the digest to the webhook.

    Configuration is checked before any model or webhook call.

    Returns:
        True if a digest was sent, False if there was nothing to send.

    Raises:
        ConfigError: If the model credential or webhook URL is missing.
        FeedClientError: If a feed relay fails.
        WebhookError: If the webhook rejects the digest.
    """
    config.require("gemini_api_key", "webhook_url")

    if client is None:
        async with httpx.AsyncClient(timeout=config.http_timeout, follow_redirects=True) as run_client:
            return await run_scheduled_push(config, llm, run_client, now)

    logger.info("Scheduled push started: fetching all dashboard data...")
    data = await aggregate_dashboard(config, llm, client)

    payload = build_digest(data, now or datetime.now(timezone.utc), config.calendar_timezone)
    if payload is None:
        logger.warning("No data to send to webhook")
        return False

    await send_webhook(config.webhook_url, payload, client)
    logger.info("Successfully sent digest to webhook")
    return True
