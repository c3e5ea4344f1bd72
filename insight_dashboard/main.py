#!/usr/bin/env python3
"""
Main entry point for the AI financial insight dashboard.

Commands:
    serve   Run the HTTP server (dashboard page + API).
    fetch   Aggregate the dashboard once and print it as JSON.
    push    Aggregate, format and push the digest to the webhook once.
    watch   Keep refreshing the dashboard on an interval and log each result.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from .aggregator import aggregate_dashboard
from .config import ConfigError, load_config
from .feed_client import FeedClientError
from .refresher import RefreshLoop
from .scheduler import run_scheduled_push
from .webhook import WebhookError


logger = logging.getLogger(__name__)


def _setup_logging() -> Path:
    """
    Configure logging to both console and file.

    Creates a timestamped log file in the logs/ directory.

    Returns:
        Path to the log file.
    """
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"run_{timestamp}.log"

    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    # Console handler (stderr, so `fetch` output stays pipeable)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(log_format, date_format))
    root_logger.addHandler(console_handler)

    # File handler
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter(log_format, date_format))
    root_logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return log_file


def run_serve(host: str, port: int) -> None:
    """Run the API server."""
    import uvicorn

    logger.info(f"Starting dashboard server on http://{host}:{port}")
    uvicorn.run("insight_dashboard.api:app", host=host, port=port)


def run_fetch() -> None:
    """Aggregate once and print the dashboard JSON to stdout."""
    config = load_config()
    data = asyncio.run(aggregate_dashboard(config))
    print(json.dumps(data.to_dict(), ensure_ascii=False, indent=2))


def run_push() -> None:
    """Run the scheduled push once."""
    logger.info("Starting digest push...")
    config = load_config()
    sent = asyncio.run(run_scheduled_push(config))
    if sent:
        logger.info("Digest push completed successfully!")
    else:
        logger.warning("Nothing was pushed")


async def _watch(config) -> None:
    def on_update(data) -> None:
        logger.info(
            f"Dashboard refreshed: {len(data.financial_news)} financial, "
            f"{len(data.crypto_news)} crypto, {len(data.calendar)} events"
        )

    loop = RefreshLoop(
        lambda: aggregate_dashboard(config),
        interval_seconds=config.refresh_interval_minutes * 60,
        on_update=on_update,
    )
    async with loop:
        # Runs until cancelled (Ctrl+C)
        await asyncio.Event().wait()


def run_watch() -> None:
    """Refresh the dashboard on the configured interval until interrupted."""
    config = load_config()
    config.require("gemini_api_key")
    asyncio.run(_watch(config))


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="AI Financial Insight Dashboard")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the dashboard server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    subparsers.add_parser("fetch", help="Aggregate once and print JSON")
    subparsers.add_parser("push", help="Push the digest to the webhook once")
    subparsers.add_parser("watch", help="Refresh the dashboard on an interval")

    args = parser.parse_args()

    log_file = _setup_logging()
    logger.info(f"Log file: {log_file.absolute()}")

    try:
        if args.command == "serve":
            run_serve(args.host, args.port)
        elif args.command == "fetch":
            run_fetch()
        elif args.command == "push":
            run_push()
        elif args.command == "watch":
            run_watch()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except FeedClientError as e:
        logger.error(f"Failed to fetch news: {e}")
        sys.exit(1)
    except WebhookError as e:
        logger.error(f"Failed to send digest: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
