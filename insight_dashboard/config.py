"""
Configuration management for the insight dashboard.

Loads settings from environment variables / .env file and provides
typed accessors with validation.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when configuration is invalid or missing required values."""
    pass


# Config attribute -> environment variable, used for error messages
ENV_NAMES = {
    "gemini_api_key": "GEMINI_API_KEY",
    "webhook_url": "DISCORD_WEBHOOK_URL",
    "cron_secret": "CRON_SECRET",
}


@dataclass
class Config:
    """Application configuration container."""

    # Secrets (checked at use, since each endpoint needs a different subset)
    gemini_api_key: Optional[str] = None
    webhook_url: Optional[str] = None
    cron_secret: Optional[str] = None

    # Gemini settings
    gemini_model: str = "gemini-2.5-flash"
    output_language: str = "Traditional Chinese"
    llm_trace_enabled: bool = False

    # Feed settings
    article_limit: int = 15
    news_per_source: int = 5
    http_timeout: float = 30.0

    # Dashboard settings
    refresh_interval_minutes: float = 5.0
    calendar_timezone: str = "Asia/Taipei"
    figure_timezone: str = "America/New_York"

    def require(self, *fields: str) -> None:
        """
        Ensure the given settings are present.

        Raises:
            ConfigError: Naming every missing environment variable.
        """
        missing = [ENV_NAMES.get(name, name.upper()) for name in fields if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Server configuration error: missing {', '.join(missing)}")


def _get_optional_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get an optional environment variable with a default. Empty counts as unset."""
    value = os.environ.get(key)
    return value if value else default


def _get_bool_env(key: str, default: bool = True) -> bool:
    """Get a boolean environment variable. Accepts true/false/1/0/yes/no."""
    value = os.environ.get(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_int_env(key: str, default: int) -> int:
    """Get a positive integer environment variable or raise ConfigError."""
    raw = _get_optional_env(key, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got: {raw}")
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got: {value}")
    return value


def _get_float_env(key: str, default: float) -> float:
    """Get a positive number environment variable or raise ConfigError."""
    raw = _get_optional_env(key, str(default))
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got: {raw}")
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got: {value}")
    return value


def load_config(env_path: Optional[Path] = None) -> Config:
    """
    Load configuration from environment variables.

    Secrets are optional at load time; callers use Config.require()
    for the subset they need.

    Args:
        env_path: Optional path to .env file. If not provided,
                  searches for .env in current and parent directories.

    Returns:
        Config object with all settings populated.

    Raises:
        ConfigError: If a numeric setting is malformed.
    """
    # Load .env file if it exists
    if env_path:
        load_dotenv(env_path)
    else:
        load_dotenv()

    return Config(
        # API_KEY is the name used by the serverless deployment
        gemini_api_key=_get_optional_env("GEMINI_API_KEY") or _get_optional_env("API_KEY"),
        webhook_url=_get_optional_env("DISCORD_WEBHOOK_URL"),
        cron_secret=_get_optional_env("CRON_SECRET"),
        gemini_model=_get_optional_env("GEMINI_MODEL", "gemini-2.5-flash"),
        output_language=_get_optional_env("OUTPUT_LANGUAGE", "Traditional Chinese"),
        llm_trace_enabled=_get_bool_env("LLM_TRACE_ENABLED", False),
        article_limit=_get_int_env("ARTICLE_LIMIT", 15),
        news_per_source=_get_int_env("NEWS_PER_SOURCE", 5),
        http_timeout=_get_float_env("HTTP_TIMEOUT_SECONDS", 30.0),
        refresh_interval_minutes=_get_float_env("REFRESH_INTERVAL_MINUTES", 5.0),
        calendar_timezone=_get_optional_env("CALENDAR_TIMEZONE", "Asia/Taipei"),
        figure_timezone=_get_optional_env("FIGURE_TIMEZONE", "America/New_York"),
    )
