"""
Gemini client used by every analysis step.

Two request modes: schema-constrained JSON for extraction tasks, and
Google Search grounding for date-sensitive lookups. Search mode cannot be
combined with a response schema, so its replies are decoded with
extract_json(), which tolerates markdown code fences.
"""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types


logger = logging.getLogger(__name__)


QUOTA_MARKERS = ("429", "RESOURCE_EXHAUSTED", "QUOTA")
RATE_LIMIT_MESSAGE = "The AI service quota is exhausted. Please try again in a minute."

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?")


class LLMError(Exception):
    """Raised when the model request fails or returns nothing."""
    pass


class MalformedResponseError(LLMError):
    """Raised when model output cannot be decoded into the expected shape."""
    pass


def extract_json(text: Optional[str]) -> Any:
    """
    Decode a JSON payload from a possibly fenced model reply.

    Strips markdown code fences, then falls back to the outermost
    object/array if the model wrapped the JSON in prose.

    Raises:
        MalformedResponseError: If no JSON can be decoded.
    """
    if not text or not text.strip():
        raise MalformedResponseError("Model returned empty response")

    cleaned = _FENCE_PATTERN.sub("", text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i != -1]
    end = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if starts and end > min(starts):
        try:
            return json.loads(cleaned[min(starts):end + 1])
        except json.JSONDecodeError:
            pass

    raise MalformedResponseError(f"Could not decode JSON from model response: {cleaned[:120]!r}")


def is_quota_error(error: Any) -> bool:
    """Check whether an error (or message) signals upstream quota exhaustion."""
    text = str(error).upper()
    return any(marker in text for marker in QUOTA_MARKERS)


def describe_error(error: Any) -> str:
    """User-facing message for an error, rewriting model quota failures."""
    if isinstance(error, LLMError) and is_quota_error(error):
        return RATE_LIMIT_MESSAGE
    return str(error) or error.__class__.__name__


# Trace logger for detailed LLM I/O logging
_trace_logger: Optional[logging.Logger] = None


def _get_trace_logger(model_name: str) -> logging.Logger:
    """
    Get or create a trace logger that writes to a timestamped file.

    Creates a file: logs/{model_name}_trace_{date}_{time}.log
    """
    global _trace_logger

    if _trace_logger is not None:
        return _trace_logger

    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    safe_model_name = model_name.replace("/", "_").replace(":", "_")
    log_path = logs_dir / f"{safe_model_name}_trace_{timestamp}.log"

    _trace_logger = logging.getLogger(f"llm_trace.{safe_model_name}")
    _trace_logger.setLevel(logging.DEBUG)
    _trace_logger.propagate = False

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s]\n%(message)s\n", datefmt="%Y-%m-%d %H:%M:%S"))
    _trace_logger.addHandler(file_handler)

    logger.info(f"LLM trace logging to: {log_path}")
    return _trace_logger


def _log_llm_call(
    trace_logger: logging.Logger,
    prompt: str,
    response: str,
    model: str,
    duration_ms: float,
    web_search: bool,
) -> None:
    """Log a complete LLM call with input and output."""
    separator = "=" * 80
    trace_logger.debug(
        f"\n{separator}\nMODEL: {model}\nMODE: {'web search' if web_search else 'json schema'}\n"
        f"DURATION: {duration_ms:.0f}ms\n{separator}\n\n"
        f">>> INPUT PROMPT >>>\n{prompt}\n\n<<< OUTPUT RESPONSE <<<\n{response}\n\n{separator}\n"
    )


class GeminiClient:
    """Async wrapper around google-genai generate_content."""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", trace: bool = False):
        self.model = model
        self.trace = trace
        self._client = genai.Client(api_key=api_key)

    def _build_config(self, schema: Optional[dict], web_search: bool) -> types.GenerateContentConfig:
        if web_search:
            return types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())],
                temperature=0.2,
            )
        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            temperature=0.2,
        )

    async def generate(self, prompt: str, schema: Optional[dict] = None, web_search: bool = False) -> str:
        """
        Run one generate_content request.

        Args:
            prompt: Full instruction text.
            schema: Response schema for JSON mode (ignored with web_search).
            web_search: Ground the answer with live Google Search.

        Returns:
            The stripped response text.

        Raises:
            LLMError: If the API call fails or returns no text.
        """
        start_time = datetime.now()
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=self._build_config(schema, web_search),
            )
        except genai_errors.APIError as e:
            raise LLMError(f"Gemini API error {e.code}: {e.message or e.status}")
        except httpx.HTTPError as e:
            raise LLMError(f"Failed to reach Gemini: {e}")

        text = (response.text or "").strip()
        duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        logger.debug(f"Gemini call finished in {duration_ms:.0f}ms ({len(text)} chars)")

        if self.trace:
            _log_llm_call(_get_trace_logger(self.model), prompt, text, self.model, duration_ms, web_search)

        if not text:
            raise LLMError("Gemini returned empty response")
        return text
