"""
Digest rendering for the chat webhook.

Builds Discord embeds from the dashboard: one embed per non-empty section,
in a fixed order, with the footer and timestamp on the last one.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .models import CalendarEvent, CryptoAnalysis, DashboardData, NewsArticle, TrackerReport


MAX_EMBEDS = 10
MAX_TITLE = 256
MAX_DESCRIPTION = 4096
MAX_FIELD_VALUE = 1024
MAX_TOTAL_CHARS = 6000  # across every embed in one message
MIN_SLOT_CHARS = 80
CALENDAR_LIMIT = 10

FOOTER_TEXT = "AI Financial Insight Dashboard"

# Section display configuration with emoji icons and embed colors
SECTION_CONFIG = {
    "financial": {"title": "📰 Top Financial News", "color": 3447003},
    "crypto": {"title": "📈 Crypto News", "color": 15844367},
    "calendar": {"title": "🗓️ Economic Calendar This Week (High)", "color": 5763719},
    "tracker": {"title": "🦅 Trump Tracker", "color": 15105570},
    "BTC": {"title": "📈 BTC Technical Analysis", "color": 16098048},
    "ETH": {"title": "📈 ETH Technical Analysis", "color": 6250495},
}

IMPORTANCE_EMOJI = {"High": "🔥", "Medium": "⚠️", "Low": "✅"}


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def country_flag(code: str) -> str:
    """Regional-indicator flag for an ISO 3166-1 alpha-2 code (EU included)."""
    code = (code or "").strip().upper()
    if len(code) != 2 or not code.isascii() or not code.isalpha():
        return "🏳️"
    return "".join(chr(0x1F1E6 + ord(c) - ord("A")) for c in code)


def _news_embed(key: str, articles: list[NewsArticle]) -> dict:
    description = "\n\n".join(
        f"> **[{a.event_name}]({a.link})** ({a.importance})\n> {a.summary}" for a in articles
    )
    return {
        "title": SECTION_CONFIG[key]["title"],
        "color": SECTION_CONFIG[key]["color"],
        "description": _truncate(description, MAX_DESCRIPTION),
    }


def _calendar_embed(events: list[CalendarEvent]) -> dict:
    lines = [
        f"> **{e.date} {e.time}** {country_flag(e.country)} {e.event_name} "
        f"({IMPORTANCE_EMOJI.get(e.importance, '')} {e.importance})"
        for e in events[:CALENDAR_LIMIT]
    ]
    return {
        "title": SECTION_CONFIG["calendar"]["title"],
        "color": SECTION_CONFIG["calendar"]["color"],
        "description": _truncate("\n".join(lines), MAX_DESCRIPTION),
    }


def _tracker_embed(tracker: TrackerReport) -> Optional[dict]:
    fields = []
    if tracker.schedule:
        value = "\n".join(f"> - **{i.date} {i.time}:** {i.event_description}" for i in tracker.schedule)
        fields.append({"name": "🎤 Schedule & Speeches", "value": _truncate(value, MAX_FIELD_VALUE), "inline": False})
    if tracker.top_post.post_content:
        value = f"> [Source]({tracker.top_post.url})\n> \"{tracker.top_post.post_content}\""
        fields.append({"name": "💬 Truth Social Latest Post", "value": _truncate(value, MAX_FIELD_VALUE), "inline": False})
    if not fields:
        return None
    return {
        "title": SECTION_CONFIG["tracker"]["title"],
        "color": SECTION_CONFIG["tracker"]["color"],
        "fields": fields,
    }


def _analysis_embed(analysis: CryptoAnalysis, ticker: str, tz: ZoneInfo) -> Optional[dict]:
    """Embed for one asset; error-flagged analyses are skipped."""
    if analysis.error:
        return None

    fields = []
    if analysis.current_bias:
        emoji = "📈" if analysis.current_bias.sentiment == "Bullish" else "📉"
        fields.append({
            "name": f"Current Bias: {analysis.current_bias.sentiment} {emoji}",
            "value": f"> Target range: {analysis.current_bias.target_range}",
            "inline": False,
        })
    fields.append({"name": "Market Structure", "value": _truncate(f"> {analysis.market_structure}", MAX_FIELD_VALUE), "inline": False})

    if analysis.key_levels:
        levels = analysis.key_levels
        lines = []
        if levels.liquidity_pools:
            lines.append(f"> **Liquidity Pools:** {', '.join(levels.liquidity_pools)}")
        if levels.order_blocks:
            lines.append(f"> **Order Blocks:** {', '.join(levels.order_blocks)}")
        if levels.fair_value_gaps:
            lines.append(f"> **FVG:** {', '.join(levels.fair_value_gaps)}")
        if lines:
            fields.append({"name": "Key Levels", "value": _truncate("\n".join(lines), MAX_FIELD_VALUE), "inline": False})

    fields.append({"name": "🐂 Bullish Scenario", "value": _truncate(f"> {analysis.bullish_scenario}", MAX_FIELD_VALUE), "inline": False})
    if analysis.bearish_scenario:
        fields.append({"name": "🐻 Bearish Scenario", "value": _truncate(f"> {analysis.bearish_scenario}", MAX_FIELD_VALUE), "inline": False})

    analyzed_at = analysis.analysis_timestamp or ""
    try:
        analyzed_at = datetime.fromisoformat(analyzed_at).astimezone(tz).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        pass

    return {
        "title": SECTION_CONFIG[ticker]["title"],
        "color": SECTION_CONFIG[ticker]["color"],
        "description": f"**Data source:** {analysis.data_source or 'AI aggregate analysis'}\n**Analyzed at:** {analyzed_at}",
        "fields": fields,
    }


def embed_length(embed: dict) -> int:
    """Characters Discord counts toward the per-message total."""
    total = len(embed.get("title", "")) + len(embed.get("description", ""))
    total += len(embed.get("footer", {}).get("text", ""))
    for f in embed.get("fields", []):
        total += len(f["name"]) + len(f["value"])
    return total


def _fit_total(embeds: list[dict], budget: int) -> list[dict]:
    """
    Shrink embeds until their combined length fits the budget.

    The longest description or field value is cut first, down towards the
    next longest. Trailing embeds are dropped only once every text is
    down to MIN_SLOT_CHARS.
    """
    while embeds:
        excess = sum(embed_length(embed) for embed in embeds) - budget
        if excess <= 0:
            break

        slots = [(embed, "description") for embed in embeds if embed.get("description")]
        slots += [(f, "value") for embed in embeds for f in embed.get("fields", [])]
        slots.sort(key=lambda slot: len(slot[0][slot[1]]), reverse=True)

        if not slots or len(slots[0][0][slots[0][1]]) <= MIN_SLOT_CHARS:
            embeds = embeds[:-1]
            continue

        holder, key = slots[0]
        text = holder[key]
        runner_up = len(slots[1][0][slots[1][1]]) if len(slots) > 1 else 0
        step = len(text) - max(len(text) - excess, runner_up, MIN_SLOT_CHARS)
        if step <= 0:
            step = min(excess, len(text) - MIN_SLOT_CHARS)
        holder[key] = _truncate(text, len(text) - step)
    return embeds


def build_embeds(data: DashboardData, now: Optional[datetime] = None, tz_name: str = "Asia/Taipei") -> list[dict]:
    """
    Build digest embeds in section order.

    Order: financial news, crypto news, calendar, figure tracker, BTC, ETH.
    Empty sections are omitted and at most MAX_EMBEDS are returned, with a
    combined length within MAX_TOTAL_CHARS. The last one carries the footer
    and generated-at timestamp.
    """
    now = now or datetime.now(timezone.utc)
    tz = ZoneInfo(tz_name)

    candidates = [
        _news_embed("financial", data.financial_news) if data.financial_news else None,
        _news_embed("crypto", data.crypto_news) if data.crypto_news else None,
        _calendar_embed(data.calendar) if data.calendar else None,
        _tracker_embed(data.tracker),
        _analysis_embed(data.btc, "BTC", tz),
        _analysis_embed(data.eth, "ETH", tz),
    ]
    embeds = [embed for embed in candidates if embed is not None][:MAX_EMBEDS]

    for embed in embeds:
        embed["title"] = _truncate(embed["title"], MAX_TITLE)

    embeds = _fit_total(embeds, MAX_TOTAL_CHARS - len(FOOTER_TEXT))

    if embeds:
        embeds[-1]["footer"] = {"text": FOOTER_TEXT}
        embeds[-1]["timestamp"] = now.isoformat()
    return embeds


def build_digest(data: DashboardData, now: Optional[datetime] = None, tz_name: str = "Asia/Taipei") -> Optional[dict]:
    """
    Build the full webhook payload.

    Returns:
        {"content": header, "embeds": [...]}, or None when there is
        nothing to report.
    """
    now = now or datetime.now(timezone.utc)
    embeds = build_embeds(data, now, tz_name)
    if not embeds:
        return None

    local_time = now.astimezone(ZoneInfo(tz_name)).strftime("%Y-%m-%d %H:%M")
    return {
        "content": f"**AI Daily Financial Insight ({local_time})**",
        "embeds": embeds,
    }
