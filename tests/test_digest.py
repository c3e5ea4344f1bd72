"""Tests for digest rendering."""

import json
from datetime import datetime, timezone

from insight_dashboard.digest import (
    FOOTER_TEXT,
    MAX_EMBEDS,
    MAX_TOTAL_CHARS,
    SECTION_CONFIG,
    build_digest,
    build_embeds,
    country_flag,
    embed_length,
)
from insight_dashboard.models import (
    CalendarEvent,
    CryptoAnalysis,
    DashboardData,
    FigureSchedule,
    KeyLevels,
    MarketBias,
    NewsArticle,
    TopPost,
    TrackerReport,
)


NOW = datetime(2024, 1, 15, 1, 0, tzinfo=timezone.utc)


def make_analysis() -> CryptoAnalysis:
    return CryptoAnalysis(
        market_structure="Higher highs",
        bullish_scenario="Break **70,000**",
        bearish_scenario="Lose **65,000**",
        key_levels=KeyLevels(liquidity_pools=["**72,000**"], order_blocks=["**66,000**"]),
        current_bias=MarketBias("Bullish", "70,000-72,000"),
        data_source="TradingView",
        analysis_timestamp="2024-01-15T00:30:00+00:00",
    )


def full_dashboard() -> DashboardData:
    return DashboardData(
        financial_news=[NewsArticle("Fed hikes rates", "25bps move", "High", "https://news.test/fed")],
        crypto_news=[NewsArticle("ETF inflows", "Record day", "Medium", "https://news.test/etf")],
        calendar=[CalendarEvent("2024-01-16", "21:30", "US", "CPI", "High")],
        tracker=TrackerReport(
            schedule=[FigureSchedule("2024-01-15", "19:00", "Rally")],
            top_post=TopPost("Big day!", "https://truth.test/1"),
        ),
        btc=make_analysis(),
        eth=make_analysis(),
    )


class TestCountryFlag:
    """Tests for country_flag function."""

    def test_valid_codes(self):
        assert country_flag("US") == "🇺🇸"
        assert country_flag("eu") == "🇪🇺"

    def test_invalid_code_gets_white_flag(self):
        assert country_flag("USA") == "🏳️"
        assert country_flag("") == "🏳️"


class TestBuildEmbeds:
    """Tests for build_embeds function."""

    def test_section_order(self):
        embeds = build_embeds(full_dashboard(), NOW)

        assert [e["title"] for e in embeds] == [
            SECTION_CONFIG[key]["title"] for key in ("financial", "crypto", "calendar", "tracker", "BTC", "ETH")
        ]
        assert len(embeds) <= MAX_EMBEDS

    def test_footer_and_timestamp_only_on_last(self):
        embeds = build_embeds(full_dashboard(), NOW)

        assert embeds[-1]["footer"] == {"text": FOOTER_TEXT}
        assert embeds[-1]["timestamp"] == NOW.isoformat()
        assert all("footer" not in e for e in embeds[:-1])

    def test_contains_article_and_event_details(self):
        """Test that the digest carries each article link and each event's date, time and flag."""
        article = NewsArticle("Fed hikes rates", "25bps move", "High", "https://news.test/fed")
        event = CalendarEvent("2024-01-16", "21:30", "JP", "BoJ decision", "High")
        data = DashboardData(financial_news=[article], calendar=[event])

        text = json.dumps(build_embeds(data, NOW), ensure_ascii=False)

        assert "Fed hikes rates" in text
        assert "https://news.test/fed" in text
        assert "2024-01-16 21:30" in text
        assert "🇯🇵" in text

    def test_empty_tracker_and_failed_crypto_omitted(self):
        """Test that sections with nothing to say produce no embed."""
        data = DashboardData(
            financial_news=[NewsArticle("Fed hikes rates", "25bps move", "High", "https://news.test/fed")],
            tracker=TrackerReport(),
            btc=CryptoAnalysis.failed("quota"),
            eth=CryptoAnalysis.failed("quota"),
        )

        embeds = build_embeds(data, NOW)
        text = json.dumps(embeds, ensure_ascii=False)

        assert len(embeds) == 1
        assert "Truth Social" not in text
        assert "Technical Analysis" not in text

    def test_tracker_with_post_only(self):
        data = DashboardData(tracker=TrackerReport(top_post=TopPost("Big day!", "https://truth.test/1")))

        embeds = build_embeds(data, NOW)

        assert [f["name"] for f in embeds[0]["fields"]] == ["💬 Truth Social Latest Post"]

    def test_analysis_time_in_exchange_timezone(self):
        data = DashboardData(btc=make_analysis())

        embeds = build_embeds(data, NOW, tz_name="Asia/Taipei")

        assert "2024-01-15 08:30" in embeds[0]["description"]
        names = [f["name"] for f in embeds[0]["fields"]]
        assert names[0] == "Current Bias: Bullish 📈"
        assert "🐻 Bearish Scenario" in names

    def test_long_description_truncated(self):
        articles = [NewsArticle(f"Story {i}", "x" * 300, "Low", "https://l") for i in range(30)]

        embeds = build_embeds(DashboardData(financial_news=articles), NOW)

        assert len(embeds[0]["description"]) <= 4096

    def test_busy_day_fits_one_message(self):
        """Test that a full digest with long model output stays within the per-message total."""
        long_text = "Price swept the prior high before reclaiming the range; " * 16
        analysis = make_analysis()
        analysis.market_structure = long_text
        analysis.bullish_scenario = long_text
        analysis.bearish_scenario = long_text
        data = DashboardData(
            financial_news=[
                NewsArticle(f"Central bank decision {i}", long_text[:400], "High", f"https://news.test/fin/{i}")
                for i in range(5)
            ],
            crypto_news=[
                NewsArticle(f"Exchange flows {i}", long_text[:400], "Medium", f"https://news.test/crypto/{i}")
                for i in range(5)
            ],
            calendar=[CalendarEvent("2024-01-16", f"{10 + i}:30", "US", f"Indicator {i}", "High") for i in range(10)],
            tracker=TrackerReport(
                schedule=[FigureSchedule("2024-01-15", "19:00", long_text[:200]) for _ in range(4)],
                top_post=TopPost(long_text[:600], "https://truth.test/1"),
            ),
            btc=analysis,
            eth=analysis,
        )

        embeds = build_embeds(data, NOW)

        assert sum(embed_length(e) for e in embeds) <= MAX_TOTAL_CHARS
        assert len(embeds) == 6
        assert embeds[-1]["footer"] == {"text": FOOTER_TEXT}

    def test_short_digest_not_trimmed(self):
        embeds = build_embeds(full_dashboard(), NOW)

        assert not any(e.get("description", "").endswith("…") for e in embeds)
        assert not any(f["value"].endswith("…") for e in embeds for f in e.get("fields", []))


class TestBuildDigest:
    """Tests for build_digest function."""

    def test_header_uses_local_time(self):
        payload = build_digest(full_dashboard(), NOW, tz_name="Asia/Taipei")

        assert payload["content"] == "**AI Daily Financial Insight (2024-01-15 09:00)**"
        assert len(payload["embeds"]) == 6

    def test_nothing_to_send(self):
        assert build_digest(DashboardData(), NOW) is None
