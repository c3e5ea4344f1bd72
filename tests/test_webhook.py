"""Tests for webhook delivery."""

import asyncio
import json

import httpx
import pytest

from insight_dashboard.webhook import (
    MAX_CONTENT,
    MAX_EMBEDS,
    WebhookError,
    embeds_payload,
    message_payload,
    send_webhook,
)


WEBHOOK_URL = "https://discord.test/api/webhooks/1/abc"


def send(payload, handler):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await send_webhook(WEBHOOK_URL, payload, client)
    asyncio.run(run())


class TestPayloads:
    """Tests for payload builders."""

    def test_message_payload_truncated(self):
        assert len(message_payload("x" * 5000)["content"]) == MAX_CONTENT

    def test_embeds_payload_capped(self):
        payload = embeds_payload([{"title": str(i)} for i in range(15)], content="hi")

        assert len(payload["embeds"]) == MAX_EMBEDS
        assert payload["content"] == "hi"


class TestSendWebhook:
    """Tests for send_webhook function."""

    def test_success_posts_json(self):
        received = []

        def handler(request):
            received.append((request.method, str(request.url), json.loads(request.content)))
            return httpx.Response(204)

        send({"content": "hello"}, handler)

        assert received == [("POST", WEBHOOK_URL, {"content": "hello"})]

    def test_error_status_carries_discord_message(self):
        def handler(request):
            return httpx.Response(400, json={"message": "Invalid Form Body", "code": 50035})

        with pytest.raises(WebhookError) as exc_info:
            send({"content": "hello"}, handler)

        assert exc_info.value.status_code == 400
        assert "Invalid Form Body" in str(exc_info.value)

    def test_unreachable_webhook(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        with pytest.raises(WebhookError) as exc_info:
            send({"content": "hello"}, handler)

        assert exc_info.value.status_code is None
