"""Tests for feed client module."""

import asyncio
from urllib.parse import unquote

import httpx
import pytest

from insight_dashboard.feed_client import (
    DESCRIPTION_LIMIT,
    ITEM_SEPARATOR,
    FeedClientError,
    FeedSource,
    _clean_html,
    _normalize_date,
    fetch_feed_items,
    fetch_news_text,
    get_source,
    parse_feed,
    source_for_url,
)


# =============================================================================
# Sample feed content for testing
# =============================================================================

SAMPLE_RSS_2_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">
    <channel>
        <title>Test Finance News</title>
        <item>
            <title>Fed Raises Interest Rates by 25bps</title>
            <link>https://example.com/fed-rates</link>
            <description><![CDATA[<p>The Federal Reserve raised rates &amp; signalled more.</p>]]></description>
            <pubDate>Mon, 15 Jan 2024 10:30:00 GMT</pubDate>
        </item>
        <item>
            <title>Apple Reports Record Q4 Earnings</title>
            <link>https://example.com/apple-earnings</link>
            <description>Apple Inc reported record earnings.</description>
            <pubDate>Tue, 16 Jan 2024 14:00:00 GMT</pubDate>
        </item>
    </channel>
</rss>"""

SAMPLE_ATOM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <title>Tech News</title>
    <entry>
        <title>NVIDIA Unveils New AI Chip</title>
        <link href="https://tech.example.com/nvidia" />
        <summary>A faster accelerator.</summary>
        <published>2024-01-15T09:00:00Z</published>
    </entry>
</feed>"""

RSS2JSON_BODY = {
    "status": "ok",
    "items": [
        {
            "title": "Oil jumps",
            "description": "<b>Brent</b> up 3%",
            "link": "https://investing.test/oil",
            "pubDate": "2024-01-15 10:30:00",
        },
        {"title": "", "description": None, "link": "", "pubDate": ""},
    ],
}

REUTERS_BODY = {
    "result": {
        "articles": [
            {
                "title": "Stocks slide",
                "description": "Wall Street fell.",
                "canonical_url": "/markets/stocks-slide-2024-01-15/",
                "published_at": "2024-01-15T21:00:00Z",
            }
        ]
    }
}


def make_client(handler) -> httpx.AsyncClient:
    """Async client whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def fetch(source: FeedSource, handler):
    async def run():
        async with make_client(handler) as client:
            return await fetch_feed_items(source, client)
    return asyncio.run(run())


class TestSources:
    """Tests for source lookup and relay routing."""

    def test_get_source_known_key(self):
        source = get_source("financial")

        assert source.relay == "rss2json"
        assert source.parser == "rss2json"

    def test_get_source_overrides_limit_without_mutating_registry(self):
        source = get_source("crypto", limit=3)

        assert source.limit == 3
        assert get_source("crypto").limit == 15

    def test_get_source_unknown_key(self):
        with pytest.raises(KeyError):
            get_source("nope")

    def test_source_for_url_registered(self):
        """Test that a registered URL keeps its own relay, whatever it contains."""
        reuters = get_source("reuters_markets")

        assert source_for_url(reuters.url).relay == "corsproxy"

    def test_source_for_url_custom(self):
        source = source_for_url("https://feeds.example.com/rss.xml", limit=4)

        assert source.key == "custom"
        assert source.relay == "allorigins"
        assert source.parser == "xml"
        assert source.limit == 4

    def test_relay_url_by_source_kind(self):
        """Test that each source kind is fetched through its own relay."""
        seen = []

        def handler(request):
            seen.append(str(request.url))
            if "rss2json" in request.url.host:
                return httpx.Response(200, json={"status": "ok", "items": []})
            if "corsproxy" in request.url.host:
                return httpx.Response(200, json={"result": {"articles": []}})
            return httpx.Response(200, text="<rss><channel></channel></rss>")

        fetch(get_source("financial"), handler)
        fetch(get_source("reuters_markets"), handler)
        fetch(get_source("cnbc"), handler)

        assert seen[0].startswith("https://api.rss2json.com/v1/api.json?rss_url=")
        assert "investing.com/rss/news_25.rss" in unquote(seen[0])
        assert seen[1].startswith("https://corsproxy.io/?")
        assert seen[2].startswith("https://api.allorigins.win/raw?url=")


class TestCleanHtml:
    """Tests for _clean_html function."""

    def test_strips_tags_and_entities(self):
        assert _clean_html("<p>Rates &amp; <b>bonds</b></p>") == "Rates & bonds"

    def test_plain_text_whitespace_normalized(self):
        assert _clean_html("  a\n\n b  ") == "a b"

    def test_empty(self):
        assert _clean_html(None) == ""


class TestNormalizeDate:
    """Tests for _normalize_date function."""

    def test_rfc822(self):
        assert _normalize_date("Mon, 15 Jan 2024 10:30:00 GMT").startswith("2024-01-15T10:30:00")

    def test_iso_zulu(self):
        assert _normalize_date("2024-01-15T09:00:00Z") == "2024-01-15T09:00:00"

    def test_unparseable_passes_through(self):
        assert _normalize_date("yesterday") == "yesterday"

    def test_empty(self):
        assert _normalize_date("") == ""


class TestParseFeed:
    """Tests for XML feed parsing."""

    def test_rss2(self):
        items = parse_feed(SAMPLE_RSS_2_FEED)

        assert len(items) == 2
        assert items[0].title == "Fed Raises Interest Rates by 25bps"
        assert items[0].description == "The Federal Reserve raised rates & signalled more."
        assert items[0].link == "https://example.com/fed-rates"

    def test_atom(self):
        items = parse_feed(SAMPLE_ATOM_FEED)

        assert len(items) == 1
        assert items[0].link == "https://tech.example.com/nvidia"
        assert items[0].description == "A faster accelerator."

    def test_malformed_xml_returns_empty(self):
        assert parse_feed("<rss><channel>") == []

    def test_unknown_root_returns_empty(self):
        assert parse_feed("<html><body/></html>") == []


class TestFetchFeedItems:
    """Tests for fetch_feed_items and fetch_news_text."""

    def test_rss2json_defaults_and_truncation(self):
        """Test missing fields get defaults and descriptions are cut."""
        body = {
            "status": "ok",
            "items": RSS2JSON_BODY["items"] + [{"title": "Long", "description": "x" * 900, "link": "https://l"}],
        }

        items = fetch(get_source("financial"), lambda request: httpx.Response(200, json=body))

        assert items[0].description == "Brent up 3%"
        assert items[1].title == "No Title"
        assert items[1].link == "#"
        assert len(items[2].description) == DESCRIPTION_LIMIT

    def test_reuters_relative_link_made_absolute(self):
        items = fetch(get_source("reuters_markets"), lambda request: httpx.Response(200, json=REUTERS_BODY))

        assert items[0].link == "https://www.reuters.com/markets/stocks-slide-2024-01-15/"

    @pytest.mark.parametrize("result", ["unavailable", ["articles"], None])
    def test_reuters_unexpected_result_is_empty(self, result):
        items = fetch(get_source("reuters_markets"), lambda request: httpx.Response(200, json={"result": result}))

        assert items == []

    @pytest.mark.parametrize("canonical_url", [None, 42, {"path": "/markets/"}])
    def test_reuters_non_string_link_gets_placeholder(self, canonical_url):
        body = {"result": {"articles": [{"title": "Stocks slide", "canonical_url": canonical_url}]}}

        items = fetch(get_source("reuters_markets"), lambda request: httpx.Response(200, json=body))

        assert items[0].title == "Stocks slide"
        assert items[0].link == "#"

    def test_limit_applied(self):
        body = {"status": "ok", "items": [{"title": f"Item {i}", "link": "#"} for i in range(20)]}

        items = fetch(get_source("financial", limit=15), lambda request: httpx.Response(200, json=body))

        assert len(items) == 15

    def test_rss2json_not_ok_is_empty_not_error(self):
        """Test that a relay answering with no items yields an empty feed."""
        items = fetch(get_source("financial"), lambda request: httpx.Response(200, json={"status": "error"}))

        assert items == []

    def test_non_success_status_raises(self):
        with pytest.raises(FeedClientError) as exc_info:
            fetch(get_source("financial"), lambda request: httpx.Response(503))

        assert "503" in str(exc_info.value)

    def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FeedClientError):
            fetch(get_source("cnbc"), handler)

    def test_fetch_news_text_format(self):
        async def run():
            async with make_client(lambda request: httpx.Response(200, text=SAMPLE_RSS_2_FEED)) as client:
                return await fetch_news_text(get_source("cnbc"), client)

        text = asyncio.run(run())

        blocks = text.split(ITEM_SEPARATOR)
        assert len(blocks) == 2
        assert blocks[0].startswith("Title: Fed Raises Interest Rates by 25bps\nDescription: ")
        assert "\nLink: https://example.com/fed-rates\nPublishedAt: 2024-01-15T10:30:00" in blocks[0]

    def test_fetch_news_text_empty_feed(self):
        async def run():
            async with make_client(lambda request: httpx.Response(200, json={"status": "ok", "items": []})) as client:
                return await fetch_news_text(get_source("crypto"), client)

        assert asyncio.run(run()) == ""
