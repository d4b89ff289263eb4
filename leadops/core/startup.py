"""Startup validation and bootstrap helpers."""

from __future__ import annotations

import logging

from leadops.core.config import get_config
from leadops.core.logging_config import configure_logging
from leadops.database.db import get_active_database_url, verify_database_connection
from leadops.database.init_db import init_db

logger = logging.getLogger(__name__)


def validate_startup_config() -> bool:
    """Validate configuration and probe the database; returns whether it answered."""
    config = get_config()
    database_ok = verify_database_connection()
    active_database_url = get_active_database_url()
    if not database_ok:
        logger.warning(
            "startup.database.unreachable",
            extra={"event": "startup.database.unreachable"},
        )

    if not (config.WORKFLOW_WEBHOOK_LINKEDIN_URL or config.WORKFLOW_WEBHOOK_APOLLO_URL):
        logger.warning(
            "startup.webhooks.not_configured",
            extra={"event": "startup.webhooks.not_configured"},
        )

    logger.info(
        "startup.config.validated",
        extra={
            "event": "startup.config.validated",
            "env": config.ENV,
            "database_url_scheme": active_database_url.split("://", 1)[0],
        },
    )
    return database_ok


def bootstrap() -> None:
    """Initialize logging, validate configuration and ensure tables exist."""
    configure_logging()
    if validate_startup_config():
        init_db()
