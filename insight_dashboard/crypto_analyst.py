"""
Crypto technical analysis using Gemini with Google Search.

Produces a smart-money-concepts style read of one asset: market structure,
key levels, bullish and bearish scenarios and an optional directional bias.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from .llm_client import MalformedResponseError, describe_error, extract_json
from .models import CryptoAnalysis


logger = logging.getLogger(__name__)


PROMPT_TEMPLATE = """Use Google Search to get the latest price action and market data for {name} ({ticker}), then write a professional technical analysis in {language}.
Reply with a JSON object only, in this exact shape:
{{
  "dataSource": "where the price data came from",
  "marketStructure": "current market structure on the higher timeframes",
  "keyLevels": {{
    "liquidityPools": ["price level and description", ...],
    "orderBlocks": ["price zone and description", ...],
    "fairValueGaps": ["price zone and description", ...]
  }},
  "bullishScenario": "what must happen for upside and the targets",
  "bearishScenario": "what must happen for downside and the targets",
  "currentBias": {{ "sentiment": "Bullish or Bearish", "targetRange": "price range" }}
}}
Use **bold** for key prices. Omit currentBias if there is no clear bias."""


def parse_analysis(payload, timestamp: str) -> CryptoAnalysis:
    """
    Build a populated analysis from decoded model output.

    Raises:
        MalformedResponseError: If marketStructure or bullishScenario is missing.
    """
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Expected a JSON object, got {type(payload).__name__}")

    analysis = CryptoAnalysis.from_dict(payload, timestamp)
    if analysis is None or analysis.error:
        raise MalformedResponseError("Analysis is missing marketStructure or bullishScenario")
    return analysis


async def analyze_asset(
    llm,
    name: str,
    ticker: str,
    language: str = "Traditional Chinese",
    now: Optional[datetime] = None,
) -> CryptoAnalysis:
    """
    Analyze one asset.

    Never raises: any failure is logged and returned as an
    error-flagged analysis carrying the reason.
    """
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    prompt = PROMPT_TEMPLATE.format(name=name, ticker=ticker, language=language)

    try:
        payload = extract_json(await llm.generate(prompt, web_search=True))
        analysis = parse_analysis(payload, timestamp)
    except Exception as e:
        message = describe_error(e)
        logger.error(f"Error analyzing {ticker}: {message}")
        return CryptoAnalysis.failed(f"Could not load {ticker} analysis: {message}")

    logger.info(f"{ticker} analysis ready (bias: {analysis.current_bias.sentiment if analysis.current_bias else 'none'})")
    return analysis
