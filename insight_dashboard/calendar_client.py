"""
Economic calendar for the coming week.

There is no calendar API behind this: the model is asked for the
high-impact events itself. The prompt asks for High importance only,
but the returned list is filtered and sorted again here; the model is
trusted for shape, not for filtering.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from .llm_client import describe_error, extract_json
from .models import CalendarEvent


logger = logging.getLogger(__name__)


CALENDAR_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "date": {"type": "STRING", "description": "YYYY-MM-DD"},
            "time": {"type": "STRING", "description": "HH:MM, 24-hour, UTC+8"},
            "country": {"type": "STRING", "description": "ISO 3166-1 alpha-2 code, e.g. US, EU, CN"},
            "eventName": {"type": "STRING"},
            "importance": {"type": "STRING", "enum": ["High"]},
        },
        "required": ["date", "time", "country", "eventName", "importance"],
    },
}

PROMPT_TEMPLATE = """Today is {today}. List the most important global economic calendar events from today through {end} (the next 7 days).
For each event give:
- date (YYYY-MM-DD)
- time (HH:MM, 24-hour clock, converted to {timezone} time, UTC+8)
- country: ISO 3166-1 alpha-2 code of the country/region (e.g. US, EU, CN)
- eventName in {language}
- importance
**Only return events whose importance is 'High'.** Return JSON."""


def exchange_today(timezone: str = "Asia/Taipei", now: Optional[datetime] = None) -> date:
    """Current date in the exchange timezone."""
    now = now or datetime.now(ZoneInfo("UTC"))
    return now.astimezone(ZoneInfo(timezone)).date()


def filter_and_sort(events: list[CalendarEvent]) -> list[CalendarEvent]:
    """Keep High importance events only, ordered by (date, time)."""
    return sorted((e for e in events if e.importance == "High"), key=lambda e: e.sort_key)


async def fetch_calendar(
    llm,
    timezone: str = "Asia/Taipei",
    language: str = "Traditional Chinese",
    today: Optional[date] = None,
) -> list[CalendarEvent]:
    """
    Fetch next week's High importance events.

    Any failure is logged and yields an empty list.

    Args:
        llm: Client exposing async generate(prompt, schema=..., web_search=...).
        timezone: Exchange timezone that "today" and event times refer to.
        language: Output language for event names.
        today: Override for the current exchange date.

    Returns:
        High importance events sorted chronologically.
    """
    today = today or exchange_today(timezone)
    prompt = PROMPT_TEMPLATE.format(
        today=today.isoformat(),
        end=(today + timedelta(days=7)).isoformat(),
        timezone=timezone,
        language=language,
    )

    try:
        payload = extract_json(await llm.generate(prompt, schema=CALENDAR_SCHEMA))
        if not isinstance(payload, list):
            raise ValueError(f"Expected a JSON array of events, got {type(payload).__name__}")
        events = [event for event in map(CalendarEvent.from_dict, payload) if event is not None]
    except Exception as e:
        logger.error(f"Error fetching financial calendar: {describe_error(e)}")
        return []

    events = filter_and_sort(events)
    logger.info(f"Calendar: {len(events)} High importance events")
    return events
