"""Tests for the scheduled push."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from insight_dashboard.config import Config, ConfigError
from insight_dashboard.models import DashboardData, NewsArticle
from insight_dashboard.scheduler import AuthorizationError, authorize, run_scheduled_push


NOW = datetime(2024, 1, 15, 1, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    return Config(gemini_api_key="k", webhook_url="https://discord.test/hook", cron_secret="s3cret")


class TestAuthorize:
    """Tests for authorize function."""

    def test_matching_secret(self, config):
        authorize(config, "s3cret")

    def test_wrong_secret(self, config):
        with pytest.raises(AuthorizationError):
            authorize(config, "guess")

    def test_missing_header(self, config):
        with pytest.raises(AuthorizationError):
            authorize(config, None)

    def test_secret_not_configured(self):
        with pytest.raises(ConfigError) as exc_info:
            authorize(Config(), "anything")

        assert "CRON_SECRET" in str(exc_info.value)


class TestRunScheduledPush:
    """Tests for run_scheduled_push function."""

    def test_missing_webhook_makes_no_calls(self):
        llm = MagicMock()
        llm.generate = AsyncMock()

        with patch("insight_dashboard.scheduler.aggregate_dashboard") as mock_aggregate, \
             patch("insight_dashboard.scheduler.send_webhook") as mock_send:
            with pytest.raises(ConfigError):
                asyncio.run(run_scheduled_push(Config(gemini_api_key="k"), llm, MagicMock()))

        mock_aggregate.assert_not_called()
        mock_send.assert_not_called()
        assert llm.generate.call_count == 0

    def test_pushes_digest(self, config):
        data = DashboardData(financial_news=[NewsArticle("Fed hikes", "25bps", "High", "https://x")])
        client = MagicMock()

        with patch("insight_dashboard.scheduler.aggregate_dashboard", AsyncMock(return_value=data)), \
             patch("insight_dashboard.scheduler.send_webhook", AsyncMock()) as mock_send:
            sent = asyncio.run(run_scheduled_push(config, MagicMock(), client, now=NOW))

        assert sent is True
        url, payload, used_client = mock_send.call_args.args
        assert url == "https://discord.test/hook"
        assert payload["content"] == "**AI Daily Financial Insight (2024-01-15 09:00)**"
        assert used_client is client

    def test_nothing_to_send(self, config):
        with patch("insight_dashboard.scheduler.aggregate_dashboard", AsyncMock(return_value=DashboardData())), \
             patch("insight_dashboard.scheduler.send_webhook", AsyncMock()) as mock_send:
            sent = asyncio.run(run_scheduled_push(config, MagicMock(), MagicMock(), now=NOW))

        assert sent is False
        mock_send.assert_not_called()
