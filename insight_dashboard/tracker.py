"""
Public-figure tracker.

Looks up the figure's schedule for today and tomorrow and their latest
Truth Social post using Gemini with Google Search, since both answers
depend on today's date. The two lookups fail independently.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from .llm_client import describe_error, extract_json
from .models import FigureSchedule, TopPost, TrackerReport


logger = logging.getLogger(__name__)


FIGURE_NAME = "Donald Trump"
FIGURE_HANDLE = "@realDonaldTrump"

SCHEDULE_PROMPT = """Today is {today}. Use Google Search to find {name}'s public schedule, rallies and major speeches for today ({today}) and tomorrow.
Reply in {language} with a JSON array only, in this exact shape:
[ {{ "date": "YYYY-MM-DD", "time": "HH:MM (timezone), or 'All day' if unknown", "eventDescription": "..." }} ]
If no events are found, reply with an empty array []."""

POST_PROMPT = """Today is {today}. Use Google Search to find the latest post published today by {name} on the official Truth Social account ({handle}).
Translate the post into {language} and give the direct URL of the post or of a news report about it.
Reply with a JSON object only, in this exact shape:
{{ "postContent": "...", "url": "..." }}
If no post from today is found, reply with {{ "postContent": "", "url": "" }}."""


def figure_today(timezone: str = "America/New_York", now: Optional[datetime] = None) -> date:
    """Current date in the figure's local timezone."""
    now = now or datetime.now(ZoneInfo("UTC"))
    return now.astimezone(ZoneInfo(timezone)).date()


async def fetch_schedule(llm, today: date, language: str) -> list[FigureSchedule]:
    prompt = SCHEDULE_PROMPT.format(today=today.isoformat(), name=FIGURE_NAME, language=language)
    try:
        payload = extract_json(await llm.generate(prompt, web_search=True))
    except Exception as e:
        logger.error(f"Error fetching {FIGURE_NAME} schedule: {describe_error(e)}")
        return []

    # Some replies wrap the array in {"schedule": [...]}
    if isinstance(payload, dict):
        payload = payload.get("schedule", [])
    if not isinstance(payload, list):
        logger.warning(f"Unexpected schedule payload: {type(payload).__name__}")
        return []
    return [item for item in map(FigureSchedule.from_dict, payload) if item is not None]


async def fetch_top_post(llm, today: date, language: str) -> TopPost:
    prompt = POST_PROMPT.format(today=today.isoformat(), name=FIGURE_NAME, handle=FIGURE_HANDLE, language=language)
    try:
        payload = extract_json(await llm.generate(prompt, web_search=True))
    except Exception as e:
        logger.error(f"Error fetching {FIGURE_NAME} post: {describe_error(e)}")
        return TopPost()

    if isinstance(payload, dict) and "topPost" in payload:
        payload = payload["topPost"]
    post = TopPost.from_dict(payload)
    # A post without text is the "none found" form
    if not post.post_content:
        return TopPost()
    return post


async def fetch_tracker(
    llm,
    timezone: str = "America/New_York",
    language: str = "Traditional Chinese",
    today: Optional[date] = None,
) -> TrackerReport:
    """
    Fetch the figure's schedule and latest post.

    Each lookup degrades to its empty form on failure without
    affecting the other.
    """
    today = today or figure_today(timezone)
    schedule, top_post = await asyncio.gather(
        fetch_schedule(llm, today, language),
        fetch_top_post(llm, today, language),
    )
    logger.info(f"Tracker: {len(schedule)} schedule items, post found: {bool(top_post.post_content)}")
    return TrackerReport(schedule=schedule, top_post=top_post)
