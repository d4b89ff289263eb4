"""Root API router for v1 endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from leadops.api.v1 import health, leads, metrics, retry, sync
from leadops.core.config import get_config


def get_api_router() -> APIRouter:
    api_router = APIRouter(prefix=get_config().API_PREFIX)
    api_router.include_router(health.router)
    api_router.include_router(leads.router)
    api_router.include_router(retry.router)
    api_router.include_router(sync.router)
    api_router.include_router(metrics.router)
    return api_router
