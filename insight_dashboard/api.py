"""
HTTP API for the insight dashboard.

FastAPI app serving the dashboard page and the JSON endpoints it calls,
plus the cron-triggered scheduled push. Every error is returned as
{"error": "..."} with an appropriate status code.
"""

import logging
from typing import Any, Callable, Optional

import httpx
from fastapi import Body, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel, model_validator

from . import __version__
from .aggregator import aggregate_dashboard, build_llm
from .config import Config, ConfigError, load_config
from .digest import build_digest
from .feed_client import FeedClientError, fetch_news_text, get_source, source_for_url
from .llm_client import RATE_LIMIT_MESSAGE, LLMError, describe_error, is_quota_error
from .models import DashboardData
from .scheduler import AuthorizationError, authorize, run_scheduled_push
from .summarizer import summarize_news
from .ui import render_dashboard_page
from .webhook import WebhookError, embeds_payload, message_payload, send_webhook


logger = logging.getLogger(__name__)


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, x-cron-secret",
}


class SendToWebhookRequest(BaseModel):
    """Body of POST /send-to-webhook: a plain message or a list of embeds."""

    message: Optional[str] = None
    embeds: Optional[list[dict[str, Any]]] = None

    @model_validator(mode="after")
    def require_content(self):
        if not (self.message and self.message.strip()) and not self.embeds:
            raise ValueError("Body must contain a non-empty 'message' string or 'embeds' list.")
        return self


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body."
    message = str(errors[0].get("msg", "Invalid request body."))
    return message.removeprefix("Value error, ")


def _is_model_quota_error(error: Exception) -> bool:
    return isinstance(error, LLMError) and is_quota_error(error)


def _default_client(config: Config) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=config.http_timeout, follow_redirects=True)


def create_app(
    config_loader: Callable[[], Config] = load_config,
    llm_factory: Callable = build_llm,
    client_factory: Optional[Callable[[Config], httpx.AsyncClient]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config_loader: Returns the Config for each request, so secrets
                       changed in the environment are picked up.
        llm_factory: Builds the model client from a Config.
        client_factory: Builds the outbound HTTP client from a Config.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="AI Financial Insight Dashboard",
        description="Financial and crypto news, economic calendar and market analysis by Gemini",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config_loader = config_loader
    app.state.llm_factory = llm_factory
    app.state.client_factory = client_factory or _default_client

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        """Report malformed request bodies as {error} with status 400."""
        return _error(400, _validation_message(exc))

    @app.options("/{path:path}")
    async def preflight(path: str):
        """Answer CORS preflight for every path."""
        return Response(status_code=200, headers=CORS_HEADERS)

    @app.get("/", response_class=HTMLResponse)
    async def index():
        try:
            config = app.state.config_loader()
        except ConfigError as e:
            return _error(500, str(e))
        return HTMLResponse(render_dashboard_page(config.refresh_interval_minutes))

    @app.get("/dashboard-data")
    async def dashboard_data():
        """Aggregate every dashboard section."""
        try:
            config = app.state.config_loader()
            llm = app.state.llm_factory(config)
            async with app.state.client_factory(config) as client:
                data = await aggregate_dashboard(config, llm, client)
        except ConfigError as e:
            logger.error(f"Configuration error: {e}")
            return _error(500, str(e))
        except Exception as e:
            if _is_model_quota_error(e):
                logger.warning(f"Dashboard refresh hit the model quota: {e}")
                return _error(429, RATE_LIMIT_MESSAGE)
            logger.error(f"Error in /dashboard-data: {e}")
            return _error(500, f"Failed to load dashboard data: {describe_error(e)}")

        return data.to_dict()

    @app.get("/news")
    async def news(feedUrl: Optional[str] = None, source: Optional[str] = None):
        """Summarize a single feed, by registered source key or raw URL."""
        if not feedUrl and not source:
            return _error(400, "Missing feedUrl or source query parameter.")

        try:
            config = app.state.config_loader()
            if source:
                try:
                    feed = get_source(source, config.article_limit)
                except KeyError:
                    return _error(404, f"Unknown news source: {source}")
            else:
                feed = source_for_url(feedUrl, config.article_limit)

            llm = app.state.llm_factory(config)
            async with app.state.client_factory(config) as client:
                news_text = await fetch_news_text(feed, client)
            articles = await summarize_news(llm, news_text, config.output_language, config.news_per_source)
        except ConfigError as e:
            return _error(500, str(e))
        except FeedClientError as e:
            logger.error(f"Error in /news: {e}")
            return _error(502, str(e))
        except Exception as e:
            logger.error(f"Error in /news: {e}")
            return _error(500, f"Internal Server Error: {describe_error(e)}")

        return [article.to_dict() for article in articles]

    async def _deliver(config: Config, payload: dict) -> JSONResponse:
        try:
            async with app.state.client_factory(config) as client:
                await send_webhook(config.webhook_url, payload, client)
        except WebhookError as e:
            logger.error(f"Webhook delivery failed: {e}")
            return _error(502, str(e))
        return JSONResponse({"success": True, "message": "Message sent to Discord."})

    @app.post("/send-to-webhook")
    async def send_to_webhook(body: SendToWebhookRequest):
        """Forward a plain message or a list of embeds to the webhook."""
        try:
            config = app.state.config_loader()
            config.require("webhook_url")
        except ConfigError as e:
            logger.error(f"Configuration error: {e}")
            return _error(500, str(e))

        if body.message and body.message.strip():
            payload = message_payload(body.message)
        else:
            payload = embeds_payload(body.embeds)
        return await _deliver(config, payload)

    @app.post("/push-digest")
    async def push_digest(body: dict[str, Any] = Body(...)):
        """Format dashboard data posted by the page into a digest and push it."""
        try:
            config = app.state.config_loader()
            config.require("webhook_url")
        except ConfigError as e:
            return _error(500, str(e))

        payload = build_digest(DashboardData.from_dict(body), tz_name=config.calendar_timezone)
        if payload is None:
            return _error(400, "There is no dashboard data to push.")
        return await _deliver(config, payload)

    @app.api_route("/scheduled-push", methods=["GET", "POST"])
    async def scheduled_push(x_cron_secret: Optional[str] = Header(default=None)):
        """Cron entry point: aggregate, format and push the digest."""
        try:
            config = app.state.config_loader()
            authorize(config, x_cron_secret)
            config.require("gemini_api_key", "webhook_url")
        except ConfigError as e:
            logger.error(f"Configuration error: {e}")
            return _error(500, str(e))
        except AuthorizationError as e:
            logger.warning("Rejected scheduled push with a bad cron secret")
            return _error(401, str(e))

        try:
            llm = app.state.llm_factory(config)
            async with app.state.client_factory(config) as client:
                sent = await run_scheduled_push(config, llm, client)
        except WebhookError as e:
            logger.error(f"Scheduled push delivery failed: {e}")
            return _error(502, str(e))
        except Exception as e:
            if _is_model_quota_error(e):
                return _error(429, RATE_LIMIT_MESSAGE)
            logger.error(f"Error in scheduled push: {e}")
            return _error(500, f"Scheduled push failed: {describe_error(e)}")

        if not sent:
            return JSONResponse({"success": True, "message": "No data to send."})
        return JSONResponse({"success": True, "message": "Scheduled push completed successfully."})

    return app


app = create_app()
