"""
Dashboard aggregation.

Runs every fetcher for one dashboard refresh. Independent lookups run
together in a first wave; feed summarization depends on its feed and runs
in a second wave. Each component contains its own failures, so only a feed
relay error or missing configuration can fail the whole call, and when it
does the remaining first-wave work is cancelled.
"""

import asyncio
import logging
from typing import Optional

import httpx

from .calendar_client import fetch_calendar
from .config import Config
from .crypto_analyst import analyze_asset
from .feed_client import fetch_news_text, get_source
from .llm_client import GeminiClient
from .models import DashboardData
from .summarizer import summarize_news
from .tracker import fetch_tracker


logger = logging.getLogger(__name__)


FINANCIAL_SOURCE = "financial"
CRYPTO_SOURCE = "crypto"


def build_llm(config: Config) -> GeminiClient:
    """
    Create the model client.

    Raises:
        ConfigError: If GEMINI_API_KEY is not configured.
    """
    config.require("gemini_api_key")
    return GeminiClient(config.gemini_api_key, config.gemini_model, trace=config.llm_trace_enabled)


async def _gather_or_cancel(*coroutines) -> list:
    """
    Run coroutines concurrently; if one raises, cancel the rest before re-raising.

    No task is left running once this returns or raises.
    """
    tasks = [asyncio.create_task(coroutine) for coroutine in coroutines]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def aggregate_dashboard(
    config: Config,
    llm=None,
    client: Optional[httpx.AsyncClient] = None,
) -> DashboardData:
    """
    Build one DashboardData.

    Args:
        config: Application configuration.
        llm: Model client; built from config when omitted.
        client: HTTP client for feed relays; a run-scoped one is created when omitted.

    Returns:
        The merged dashboard, with empty or error-flagged sections
        where a component failed.

    Raises:
        ConfigError: If the model credential is missing.
        FeedClientError: If a feed relay fails.
    """
    if llm is None:
        llm = build_llm(config)

    if client is None:
        async with httpx.AsyncClient(timeout=config.http_timeout, follow_redirects=True) as run_client:
            return await aggregate_dashboard(config, llm, run_client)

    language = config.output_language
    logger.info("Aggregating dashboard data...")

    financial_text, crypto_text, calendar, tracker, btc, eth = await _gather_or_cancel(
        fetch_news_text(get_source(FINANCIAL_SOURCE, config.article_limit), client),
        fetch_news_text(get_source(CRYPTO_SOURCE, config.article_limit), client),
        fetch_calendar(llm, config.calendar_timezone, language),
        fetch_tracker(llm, config.figure_timezone, language),
        analyze_asset(llm, "Bitcoin", "BTC", language),
        analyze_asset(llm, "Ethereum", "ETH", language),
    )

    financial_news, crypto_news = await asyncio.gather(
        summarize_news(llm, financial_text, language, config.news_per_source),
        summarize_news(llm, crypto_text, language, config.news_per_source),
    )

    data = DashboardData(
        financial_news=financial_news,
        crypto_news=crypto_news,
        calendar=calendar,
        tracker=tracker,
        btc=btc,
        eth=eth,
    )
    logger.info(
        f"Dashboard ready: {len(financial_news)} financial, {len(crypto_news)} crypto, "
        f"{len(calendar)} events, btc error={btc.error}, eth error={eth.error}"
    )
    return data
