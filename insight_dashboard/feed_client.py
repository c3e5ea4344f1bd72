"""
Feed client for fetching news items through public relays.

The dashboard runs where it cannot fetch feeds cross-origin, so every feed
is read through a relay. Each source is an explicit record naming its relay
and response shape; routing never depends on sniffing the URL.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Literal, Optional
from urllib.parse import quote, urljoin
from xml.etree import ElementTree

import httpx
from bs4 import BeautifulSoup


logger = logging.getLogger(__name__)


RelayKind = Literal["rss2json", "corsproxy", "allorigins"]
ParserKind = Literal["rss2json", "reuters_json", "xml"]

RELAY_URLS: dict[str, str] = {
    "rss2json": "https://api.rss2json.com/v1/api.json?rss_url={url}",
    "corsproxy": "https://corsproxy.io/?{url}",
    "allorigins": "https://api.allorigins.win/raw?url={url}",
}

# Common RSS namespaces
NAMESPACES = {
    "content": "http://purl.org/rss/1.0/modules/content/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "atom": "http://www.w3.org/2005/Atom",
}

DESCRIPTION_LIMIT = 500
ITEM_SEPARATOR = "\n\n---\n\n"


class FeedClientError(Exception):
    """Raised when a relay cannot be reached or answers with an error status."""
    pass


@dataclass
class FeedSource:
    """Configuration for a single news source."""

    key: str  # Stable identity used for routing (e.g., "financial")
    name: str  # Display name (e.g., "Investing.com - Economy")
    url: str
    relay: RelayKind = "rss2json"
    parser: ParserKind = "rss2json"
    limit: int = 15  # Max items handed to the summarizer


@dataclass
class FeedItem:
    """One normalized feed entry."""

    title: str
    description: str
    link: str
    published_at: str


SOURCES: dict[str, FeedSource] = {
    source.key: source
    for source in [
        FeedSource(
            key="financial",
            name="Investing.com - Economy",
            url="https://www.investing.com/rss/news_25.rss",
        ),
        FeedSource(
            key="crypto",
            name="Investing.com - Cryptocurrency",
            url="https://www.investing.com/rss/news_301.rss",
        ),
        FeedSource(
            key="reuters_markets",
            name="Reuters - Markets",
            url=(
                "https://www.reuters.com/pf/api/v3/content/fetch/articles-by-section-id-v1"
                "?query=%7B%22section_id%22%3A%22%2Fmarkets%2F%22%2C%22size%22%3A10%2C"
                "%22website%22%3A%22reuters%22%7D&_website=reuters"
            ),
            relay="corsproxy",
            parser="reuters_json",
        ),
        FeedSource(
            key="cnbc",
            name="CNBC - Top News",
            url="https://www.cnbc.com/id/100003114/device/rss/rss.html",
            relay="allorigins",
            parser="xml",
        ),
        FeedSource(
            key="wsj_markets",
            name="WSJ - Markets",
            url="https://feeds.a.dj.com/rss/RSSMarketsMain.xml",
            relay="allorigins",
            parser="xml",
        ),
    ]
}


def get_source(key: str, limit: Optional[int] = None) -> FeedSource:
    """
    Look up a registered source by key.

    Raises:
        KeyError: If the key is unknown.
    """
    source = SOURCES[key]
    if limit is not None:
        source = FeedSource(source.key, source.name, source.url, source.relay, source.parser, limit)
    return source


def source_for_url(url: str, limit: int = 15) -> FeedSource:
    """
    Resolve an arbitrary feed URL.

    A URL registered as a source uses that source's record; any other URL
    is treated as a raw XML feed read through the allorigins relay.
    """
    for source in SOURCES.values():
        if source.url == url:
            return get_source(source.key, limit)
    return FeedSource(key="custom", name="Custom Feed", url=url, relay="allorigins", parser="xml", limit=limit)


def _clean_html(text: Optional[str]) -> str:
    """Remove HTML tags and entities from text content."""
    if not text:
        return ""
    if "<" in text or "&" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def _normalize_date(date_string: Optional[str]) -> str:
    """
    Normalize a feed date to ISO 8601 where possible.

    Handles RFC 822 (RSS 2.0) and the common ISO variants; anything else
    is passed through untouched so the model can still read it.
    """
    if not date_string:
        return ""
    date_string = date_string.strip()

    try:
        return parsedate_to_datetime(date_string).isoformat()
    except (TypeError, ValueError):
        pass

    for fmt in ("%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ", "%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(date_string, fmt).isoformat()
        except ValueError:
            continue

    logger.debug(f"Could not parse feed date: {date_string}")
    return date_string


def _make_item(title: Any, description: Any, link: Any, published: Any) -> FeedItem:
    return FeedItem(
        title=_clean_html(str(title or "")) or "No Title",
        description=_clean_html(str(description or ""))[:DESCRIPTION_LIMIT],
        link=str(link or "").strip() or "#",
        published_at=_normalize_date(str(published or "")),
    )


def _items_from_rss2json(data: Any) -> list[FeedItem]:
    """Parse the rss2json response shape: {status: "ok", items: [...]}."""
    if not isinstance(data, dict) or data.get("status") != "ok":
        return []
    items = data.get("items")
    if not isinstance(items, list):
        return []
    return [
        _make_item(item.get("title"), item.get("description"), item.get("link"), item.get("pubDate"))
        for item in items
        if isinstance(item, dict)
    ]


def _items_from_reuters(data: Any) -> list[FeedItem]:
    """Parse the Reuters section API shape: {result: {articles: [...]}}."""
    if not isinstance(data, dict) or not isinstance(data.get("result"), dict):
        return []
    articles = data["result"].get("articles")
    if not isinstance(articles, list):
        return []

    items = []
    for article in articles:
        if not isinstance(article, dict):
            continue
        link = article.get("canonical_url")
        link = link if isinstance(link, str) else ""
        if link.startswith("/"):
            link = urljoin("https://www.reuters.com", link)
        items.append(_make_item(article.get("title"), article.get("description"), link, article.get("published_at")))
    return items


def _find_text(element: ElementTree.Element, *paths: str) -> str:
    """Return the text of the first matching child, trying each path in turn."""
    for path in paths:
        found = element.find(path, NAMESPACES)
        if found is not None and found.text:
            return found.text
    return ""


def _parse_atom_entry(entry: ElementTree.Element) -> FeedItem:
    link = ""
    link_elem = entry.find("atom:link", NAMESPACES)
    if link_elem is not None:
        link = link_elem.get("href", "") or (link_elem.text or "")
    return _make_item(
        _find_text(entry, "atom:title"),
        _find_text(entry, "atom:summary", "atom:content"),
        link,
        _find_text(entry, "atom:published", "atom:updated"),
    )


def parse_feed(xml_content: str) -> list[FeedItem]:
    """
    Parse RSS 2.0, RSS 1.0 or Atom XML into feed items.

    Malformed XML yields an empty list: a broken feed means nothing
    to report, not a failed fetch.
    """
    try:
        root = ElementTree.fromstring(xml_content)
    except ElementTree.ParseError as e:
        logger.warning(f"Failed to parse feed XML: {e}")
        return []

    tag = root.tag.split("}")[-1].lower()

    if tag == "feed":
        entries = root.findall("atom:entry", NAMESPACES)
        return [_parse_atom_entry(entry) for entry in entries]

    if tag == "rss":
        channel = root.find("channel")
        rss_items = channel.findall("item") if channel is not None else []
    elif tag == "rdf":
        rss_items = root.findall("item") or root.findall("{http://purl.org/rss/1.0/}item")
    else:
        logger.warning(f"Unknown feed type for root tag: {root.tag}")
        return []

    return [
        _make_item(
            _find_text(item, "title", "{http://purl.org/rss/1.0/}title"),
            _find_text(item, "description", "content:encoded", "{http://purl.org/rss/1.0/}description"),
            _find_text(item, "link", "{http://purl.org/rss/1.0/}link"),
            _find_text(item, "pubDate", "dc:date"),
        )
        for item in rss_items
    ]


def _parse_response(source: FeedSource, response: httpx.Response) -> list[FeedItem]:
    if source.parser == "xml":
        return parse_feed(response.text)

    try:
        data = response.json()
    except ValueError:
        logger.warning(f"{source.name}: relay returned non-JSON body")
        return []

    if source.parser == "reuters_json":
        return _items_from_reuters(data)
    return _items_from_rss2json(data)


def format_items(items: list[FeedItem]) -> str:
    """Render items as the text block handed to the summarizer."""
    return ITEM_SEPARATOR.join(
        f"Title: {item.title}\nDescription: {item.description}\nLink: {item.link}\nPublishedAt: {item.published_at}"
        for item in items
    )


async def fetch_feed_items(source: FeedSource, client: httpx.AsyncClient) -> list[FeedItem]:
    """
    Fetch and normalize items for a source through its relay.

    Args:
        source: Source record selecting relay and parser.
        client: Shared async HTTP client.

    Returns:
        Up to source.limit items; empty if the feed has nothing parseable.

    Raises:
        FeedClientError: If the relay is unreachable or returns a non-success status.
    """
    relay_url = RELAY_URLS[source.relay].format(url=quote(source.url, safe=""))
    logger.info(f"Fetching feed: {source.name} via {source.relay}")

    try:
        response = await client.get(relay_url)
    except httpx.TimeoutException:
        raise FeedClientError(f"Feed request timed out: {source.name}")
    except httpx.HTTPError as e:
        raise FeedClientError(f"Failed to fetch {source.name} from {source.relay}: {e}")

    if response.is_error:
        raise FeedClientError(f"Failed to fetch {source.name} from {source.relay}. Status: {response.status_code}")

    items = _parse_response(source, response)[: source.limit]
    logger.info(f"Fetched {len(items)} items from {source.name}")
    return items


async def fetch_news_text(source: FeedSource, client: httpx.AsyncClient) -> str:
    """Fetch a source and return its items as one text block ("" when empty)."""
    return format_items(await fetch_feed_items(source, client))
