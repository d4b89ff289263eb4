"""Database connection and session management.

The engine and session factory are built once per process from configuration
and handed to services explicitly; nothing below keeps per-request state.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from leadops.core.config import get_config

logger = logging.getLogger(__name__)

config = get_config()
DATABASE_URL = config.DATABASE_URL


def _build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=config.DEBUG)
    return create_engine(
        database_url,
        echo=config.DEBUG,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_size=10,
        max_overflow=20,
    )


def _configure_engine(database_url: str) -> None:
    global DATABASE_URL, engine, SessionLocal
    DATABASE_URL = database_url
    engine = _build_engine(database_url)
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


_configure_engine(DATABASE_URL)


def get_engine() -> Engine:
    """Return the active SQLAlchemy engine."""
    return engine


def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory."""
    return SessionLocal


def get_active_database_url() -> str:
    """Return the currently bound database URL."""
    return DATABASE_URL


def reset_engine(database_url: str | None = None) -> None:
    """Rebind engine/sessionmaker to the given URL (or current active URL)."""
    _configure_engine(database_url or DATABASE_URL)


def get_db() -> Generator[Session, None, None]:
    """Yield a session for dependency injection contexts."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context-manager wrapper for safe DB session lifecycle."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def verify_database_connection() -> bool:
    """Verify DB connectivity with a trivial round-trip."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.error(
            "database.connection_failed",
            extra={"event": "database.connection_failed", "error": str(exc)},
        )
        return False
