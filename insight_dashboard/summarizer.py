"""
News summarization using Gemini.

Picks the most market-relevant items from a feed text block and rewrites
them in the configured output language.
"""

import logging

from .llm_client import describe_error, extract_json
from .models import IMPORTANCE_LEVELS, NewsArticle


logger = logging.getLogger(__name__)


NEWS_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "eventName": {"type": "STRING", "description": "The main event, concisely titled."},
            "summary": {"type": "STRING", "description": "A brief, neutral summary (2-3 sentences)."},
            "importance": {
                "type": "STRING",
                "enum": list(IMPORTANCE_LEVELS),
                "description": "Potential market impact.",
            },
            "link": {"type": "STRING", "description": "The original URL of the article."},
            "publicationDate": {"type": "STRING", "description": "Publication date as ISO 8601."},
        },
        "required": ["eventName", "summary", "importance", "link"],
    },
}

PROMPT_TEMPLATE = """From the financial news list below, select the {limit} most important stories. For those stories:
1. Rewrite eventName and summary in natural, conversational {language}.
2. Assess importance (High, Medium or Low) by likely market impact.
3. Keep the original link unchanged and give the publication date as ISO 8601 when known.
4. Return a JSON array ordered from most to least important, strictly following the schema.
If fewer than {limit} stories are provided, process all of them.

News list:

{content}"""


class SummarizerError(Exception):
    """Raised when the model output is not a list of articles."""
    pass


def parse_articles(payload, limit: int) -> list[NewsArticle]:
    """
    Turn decoded model output into NewsArticle objects.

    Raises:
        SummarizerError: If the payload is not a JSON array.
    """
    if not isinstance(payload, list):
        raise SummarizerError(f"Expected a JSON array of articles, got {type(payload).__name__}")

    articles = []
    for raw in payload:
        article = NewsArticle.from_dict(raw)
        if article is None:
            logger.debug(f"Dropped unusable article entry: {raw!r}")
            continue
        articles.append(article)
    return articles[:limit]


async def summarize_news(llm, news_text: str, language: str = "Traditional Chinese", limit: int = 5) -> list[NewsArticle]:
    """
    Summarize a feed text block into at most `limit` articles.

    Empty input returns [] without calling the model. Model, decoding
    and shape failures are logged and also yield [], so one bad source
    never blanks the rest of the dashboard.

    Args:
        llm: Client exposing async generate(prompt, schema=..., web_search=...).
        news_text: Text block from the feed client.
        language: Output language for names and summaries.
        limit: Maximum number of articles.

    Returns:
        Articles ordered most important first.
    """
    if not news_text or not news_text.strip():
        return []

    prompt = PROMPT_TEMPLATE.format(limit=limit, language=language, content=news_text)

    try:
        text = await llm.generate(prompt, schema=NEWS_SCHEMA)
        articles = parse_articles(extract_json(text), limit)
    except Exception as e:
        logger.error(f"News summarization failed: {describe_error(e)}")
        return []

    logger.info(f"Summarized {len(articles)} articles")
    return articles
