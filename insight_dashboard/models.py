"""
Dashboard data model.

Plain dataclasses for everything the pipeline produces. Each entity
serializes to the camelCase JSON the dashboard page consumes and can be
built leniently from model output, which is trusted for shape only.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Literal, Optional


Importance = Literal["High", "Medium", "Low"]
IMPORTANCE_LEVELS = ("High", "Medium", "Low")


def _text(raw: dict, key: str, default: str = "") -> str:
    """Read a string field from a model-produced dict."""
    value = raw.get(key)
    if value is None:
        return default
    return str(value).strip()


def _clock_time(value: str) -> str:
    """Zero-pad an H:MM time to HH:MM so times sort as strings."""
    match = re.fullmatch(r"(\d{1,2}):(\d{2})", value)
    if not match:
        return value
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def _text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


@dataclass
class NewsArticle:
    """A summarized news item."""

    event_name: str
    summary: str
    importance: Importance
    link: str
    publication_date: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["NewsArticle"]:
        """Build from model output; returns None for unusable entries."""
        if not isinstance(raw, dict):
            return None
        event_name = _text(raw, "eventName")
        importance = _text(raw, "importance").capitalize()
        if not event_name or importance not in IMPORTANCE_LEVELS:
            return None
        return cls(
            event_name=event_name,
            summary=_text(raw, "summary"),
            importance=importance,
            link=_text(raw, "link", "#"),
            publication_date=_text(raw, "publicationDate") or None,
        )

    def to_dict(self) -> dict:
        data = {
            "eventName": self.event_name,
            "summary": self.summary,
            "importance": self.importance,
            "link": self.link,
        }
        if self.publication_date:
            data["publicationDate"] = self.publication_date
        return data


@dataclass
class CalendarEvent:
    """An upcoming economic event (times in the exchange timezone)."""

    date: str
    time: str
    country: str
    event_name: str
    importance: Importance

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.date, self.time or "00:00")

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["CalendarEvent"]:
        if not isinstance(raw, dict):
            return None
        date = _text(raw, "date")
        event_name = _text(raw, "eventName")
        if not date or not event_name:
            return None
        return cls(
            date=date,
            time=_clock_time(_text(raw, "time")),
            country=_text(raw, "country").upper(),
            event_name=event_name,
            importance=_text(raw, "importance").capitalize(),
        )

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "time": self.time,
            "country": self.country,
            "eventName": self.event_name,
            "importance": self.importance,
        }


@dataclass
class FigureSchedule:
    """One public appearance of the tracked figure."""

    date: str
    time: str
    event_description: str

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["FigureSchedule"]:
        if not isinstance(raw, dict):
            return None
        description = _text(raw, "eventDescription")
        if not description:
            return None
        return cls(
            date=_text(raw, "date"),
            time=_text(raw, "time"),
            event_description=description,
        )

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "time": self.time,
            "eventDescription": self.event_description,
        }


@dataclass
class TopPost:
    """The figure's latest notable post. Empty strings mean none was found."""

    post_content: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, raw: Any) -> "TopPost":
        if not isinstance(raw, dict):
            return cls()
        return cls(post_content=_text(raw, "postContent"), url=_text(raw, "url"))

    def to_dict(self) -> dict:
        return {"postContent": self.post_content, "url": self.url}


@dataclass
class TrackerReport:
    """Figure tracker section of the dashboard."""

    schedule: list[FigureSchedule] = field(default_factory=list)
    top_post: TopPost = field(default_factory=TopPost)

    def to_dict(self) -> dict:
        return {
            "schedule": [item.to_dict() for item in self.schedule],
            "topPost": self.top_post.to_dict(),
        }


@dataclass
class KeyLevels:
    liquidity_pools: list[str] = field(default_factory=list)
    order_blocks: list[str] = field(default_factory=list)
    fair_value_gaps: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["KeyLevels"]:
        if not isinstance(raw, dict):
            return None
        return cls(
            liquidity_pools=_text_list(raw.get("liquidityPools")),
            order_blocks=_text_list(raw.get("orderBlocks")),
            fair_value_gaps=_text_list(raw.get("fairValueGaps")),
        )

    def to_dict(self) -> dict:
        return {
            "liquidityPools": self.liquidity_pools,
            "orderBlocks": self.order_blocks,
            "fairValueGaps": self.fair_value_gaps,
        }


@dataclass
class MarketBias:
    sentiment: Literal["Bullish", "Bearish"]
    target_range: str

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["MarketBias"]:
        if not isinstance(raw, dict):
            return None
        sentiment = _text(raw, "sentiment").capitalize()
        if sentiment not in ("Bullish", "Bearish"):
            return None
        return cls(sentiment=sentiment, target_range=_text(raw, "targetRange"))

    def to_dict(self) -> dict:
        return {"sentiment": self.sentiment, "targetRange": self.target_range}


@dataclass
class CryptoAnalysis:
    """
    Technical analysis for one asset.

    Either populated (market_structure and bullish_scenario set) or an
    error marker carrying only a message.
    """

    market_structure: Optional[str] = None
    bullish_scenario: Optional[str] = None
    bearish_scenario: Optional[str] = None
    key_levels: Optional[KeyLevels] = None
    current_bias: Optional[MarketBias] = None
    data_source: Optional[str] = None
    analysis_timestamp: Optional[str] = None
    error: bool = False
    message: Optional[str] = None

    @classmethod
    def failed(cls, message: str) -> "CryptoAnalysis":
        return cls(error=True, message=message or "Analysis unavailable")

    @classmethod
    def from_dict(cls, raw: Any, timestamp: Optional[str] = None) -> Optional["CryptoAnalysis"]:
        """
        Build a populated analysis; None if marketStructure or
        bullishScenario is missing. An error marker stays an error marker.
        """
        if not isinstance(raw, dict):
            return None
        if raw.get("error"):
            return cls.failed(_text(raw, "message"))
        market_structure = _text(raw, "marketStructure")
        bullish_scenario = _text(raw, "bullishScenario")
        if not market_structure or not bullish_scenario:
            return None
        return cls(
            market_structure=market_structure,
            bullish_scenario=bullish_scenario,
            bearish_scenario=_text(raw, "bearishScenario") or None,
            key_levels=KeyLevels.from_dict(raw.get("keyLevels")),
            current_bias=MarketBias.from_dict(raw.get("currentBias")),
            data_source=_text(raw, "dataSource") or None,
            analysis_timestamp=timestamp or _text(raw, "analysisTimestamp") or None,
        )

    def to_dict(self) -> dict:
        if self.error:
            return {"error": True, "message": self.message}
        data: dict[str, Any] = {
            "marketStructure": self.market_structure,
            "bullishScenario": self.bullish_scenario,
            "analysisTimestamp": self.analysis_timestamp,
        }
        if self.bearish_scenario:
            data["bearishScenario"] = self.bearish_scenario
        if self.key_levels:
            data["keyLevels"] = self.key_levels.to_dict()
        if self.current_bias:
            data["currentBias"] = self.current_bias.to_dict()
        if self.data_source:
            data["dataSource"] = self.data_source
        return data


@dataclass
class DashboardData:
    """Root aggregate returned to the dashboard and formatted into the digest."""

    financial_news: list[NewsArticle] = field(default_factory=list)
    crypto_news: list[NewsArticle] = field(default_factory=list)
    calendar: list[CalendarEvent] = field(default_factory=list)
    tracker: TrackerReport = field(default_factory=TrackerReport)
    btc: CryptoAnalysis = field(default_factory=lambda: CryptoAnalysis.failed("Not requested"))
    eth: CryptoAnalysis = field(default_factory=lambda: CryptoAnalysis.failed("Not requested"))

    def to_dict(self) -> dict:
        return {
            "financialNews": [a.to_dict() for a in self.financial_news],
            "cryptoNews": [a.to_dict() for a in self.crypto_news],
            "calendar": [e.to_dict() for e in self.calendar],
            "trumpTracker": self.tracker.to_dict(),
            "cryptoAnalysis": {"eth": self.eth.to_dict(), "btc": self.btc.to_dict()},
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "DashboardData":
        """Rebuild a dashboard from its JSON form (e.g. posted back by the page)."""
        if not isinstance(raw, dict):
            return cls()

        def articles(key: str) -> list[NewsArticle]:
            items = raw.get(key) if isinstance(raw.get(key), list) else []
            return [a for a in map(NewsArticle.from_dict, items) if a is not None]

        calendar = raw.get("calendar") if isinstance(raw.get("calendar"), list) else []
        tracker = raw.get("trumpTracker") if isinstance(raw.get("trumpTracker"), dict) else {}
        schedule = tracker.get("schedule") if isinstance(tracker.get("schedule"), list) else []
        analyses = raw.get("cryptoAnalysis") if isinstance(raw.get("cryptoAnalysis"), dict) else {}

        def analysis(key: str) -> CryptoAnalysis:
            return CryptoAnalysis.from_dict(analyses.get(key)) or CryptoAnalysis.failed(f"{key.upper()} analysis unavailable")

        return cls(
            financial_news=articles("financialNews"),
            crypto_news=articles("cryptoNews"),
            calendar=[e for e in map(CalendarEvent.from_dict, calendar) if e is not None],
            tracker=TrackerReport(
                schedule=[s for s in map(FigureSchedule.from_dict, schedule) if s is not None],
                top_post=TopPost.from_dict(tracker.get("topPost")),
            ),
            btc=analysis("btc"),
            eth=analysis("eth"),
        )
