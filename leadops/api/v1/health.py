"""Health endpoints for API v1."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadops.core.config import Config
from leadops.core.dependencies import get_db_session, get_settings
from leadops.schemas import error_body, ok

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db_session), cfg: Config = Depends(get_settings)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("health.database.unreachable", extra={"event": "health.database.unreachable", "error": str(exc)})
        return JSONResponse(status_code=503, content=error_body("Service unhealthy", {"database": "unreachable"}))
    return ok({"status": "healthy", "service": cfg.APP_NAME, "version": cfg.APP_VERSION, "database": "ok"})
