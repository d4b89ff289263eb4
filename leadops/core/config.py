"""Configuration module for the LeadOps monitoring service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from leadops.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None or not value.strip():
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}.") from None


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    WORKFLOW_WEBHOOK_LINKEDIN_URL: str | None
    WORKFLOW_WEBHOOK_APOLLO_URL: str | None
    WEBHOOK_TIMEOUT_SECONDS: int
    RECENT_ERROR_WINDOW_MINUTES: int
    ACTIVITY_FEED_SIZE: int
    METRICS_MAX_WORKERS: int
    CORS_ALLOW_ORIGINS: tuple[str, ...]
    API_HOST: str
    API_PORT: int
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))

    config = Config(
        APP_NAME="LeadOps",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./leadops.db"),
        WORKFLOW_WEBHOOK_LINKEDIN_URL=os.getenv("WORKFLOW_WEBHOOK_LINKEDIN_URL") or None,
        WORKFLOW_WEBHOOK_APOLLO_URL=os.getenv("WORKFLOW_WEBHOOK_APOLLO_URL") or None,
        WEBHOOK_TIMEOUT_SECONDS=_as_int("WEBHOOK_TIMEOUT_SECONDS", 30),
        RECENT_ERROR_WINDOW_MINUTES=_as_int("RECENT_ERROR_WINDOW_MINUTES", 60),
        ACTIVITY_FEED_SIZE=_as_int("ACTIVITY_FEED_SIZE", 10),
        METRICS_MAX_WORKERS=_as_int("METRICS_MAX_WORKERS", 5),
        CORS_ALLOW_ORIGINS=_as_list(os.getenv("CORS_ALLOW_ORIGINS"), default=("*",)),
        API_HOST=os.getenv("API_HOST", "0.0.0.0"),
        API_PORT=_as_int("API_PORT", 8000),
        API_PREFIX=os.getenv("API_PREFIX", "/api/v1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_webhook_url(name: str, url: str | None) -> None:
    if url is None:
        return
    if urlparse(url).scheme not in {"http", "https"}:
        raise ConfigurationError(f"{name} must be an http(s) URL.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)
    _validate_webhook_url("WORKFLOW_WEBHOOK_LINKEDIN_URL", config.WORKFLOW_WEBHOOK_LINKEDIN_URL)
    _validate_webhook_url("WORKFLOW_WEBHOOK_APOLLO_URL", config.WORKFLOW_WEBHOOK_APOLLO_URL)

    if config.WEBHOOK_TIMEOUT_SECONDS < 1:
        raise ConfigurationError("WEBHOOK_TIMEOUT_SECONDS must be >= 1.")
    if config.RECENT_ERROR_WINDOW_MINUTES < 1:
        raise ConfigurationError("RECENT_ERROR_WINDOW_MINUTES must be >= 1.")
    if config.ACTIVITY_FEED_SIZE < 1:
        raise ConfigurationError("ACTIVITY_FEED_SIZE must be >= 1.")
    if config.METRICS_MAX_WORKERS < 1:
        raise ConfigurationError("METRICS_MAX_WORKERS must be >= 1.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    if config.is_production and "change_me" in config.DATABASE_URL.lower():
        raise ConfigurationError("Production DATABASE_URL uses placeholder credentials.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
