"""Dependency providers for API handlers."""

from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from leadops.core.config import Config, get_config
from leadops.database.db import get_db
from leadops.services.lead_monitoring_service import LeadMonitoringService
from leadops.services.metrics_service import MetricsAggregationService
from leadops.services.retry_service import RetryOrchestrator
from leadops.services.sync_service import SyncReconciliationService
from leadops.services.workflow_webhook import WorkflowWebhookClient


def get_settings() -> Config:
    """Return validated application configuration."""
    return get_config()


def get_db_session() -> Generator[Session, None, None]:
    """Yield SQLAlchemy session for dependency injection."""
    yield from get_db()


def get_webhook_client(settings: Config = Depends(get_settings)) -> WorkflowWebhookClient:
    return WorkflowWebhookClient(settings)


def get_retry_orchestrator(
    db: Session = Depends(get_db_session),
    webhook: WorkflowWebhookClient = Depends(get_webhook_client),
    settings: Config = Depends(get_settings),
) -> RetryOrchestrator:
    return RetryOrchestrator(db=db, webhook=webhook, config=settings)


def get_sync_service(db: Session = Depends(get_db_session)) -> SyncReconciliationService:
    return SyncReconciliationService(db=db)


def get_lead_monitoring_service(
    db: Session = Depends(get_db_session),
    settings: Config = Depends(get_settings),
) -> LeadMonitoringService:
    return LeadMonitoringService(db=db, config=settings)


def get_metrics_service(settings: Config = Depends(get_settings)) -> MetricsAggregationService:
    """Metrics rollups open their own sessions, one per concurrent query."""
    return MetricsAggregationService(config=settings)
