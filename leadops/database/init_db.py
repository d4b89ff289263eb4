"""Create the monitoring tables on the configured database."""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

import leadops.database.db as db_module
from leadops.models import Base

logger = logging.getLogger(__name__)


def init_db(engine: Engine | None = None) -> None:
    """Create any missing tables; existing tables are left untouched."""
    target = engine or db_module.get_engine()
    Base.metadata.create_all(bind=target)
    logger.info(
        "database.tables.ensured",
        extra={"event": "database.tables.ensured", "tables": sorted(Base.metadata.tables)},
    )


if __name__ == "__main__":
    from leadops.core.startup import bootstrap

    bootstrap()
