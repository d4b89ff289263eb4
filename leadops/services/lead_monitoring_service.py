"""Lead list and detail views over the processing-status table."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from leadops.core.config import Config, get_config
from leadops.core.enums import PIPELINE_ORDER, LeadSource, OverallStatus
from leadops.core.exceptions import NotFoundError, ValidationError
from leadops.models import Lead, LeadProcessingStatus, WorkflowError, WorkflowExecution
from leadops.models.base import isoformat, utcnow
from leadops.orchestration.status import (
    StageStatuses,
    active_stage,
    derive_overall_status,
    failed_stage,
    stage_duration_seconds,
)
from leadops.services.base_service import BaseService
from leadops.services.sync_service import SyncReconciliationService

logger = logging.getLogger(__name__)


class RecentErrorIndex:
    """Error timestamps inside the recency window, keyed by lead.

    Errors logged without a source apply to the lead id under either source.
    """

    def __init__(self, rows: Iterable[tuple[int, str | None, datetime]]) -> None:
        self._by_key: dict[tuple[int, str | None], list[datetime]] = defaultdict(list)
        for lead_id, lead_source, occurred_at in rows:
            self._by_key[(lead_id, lead_source)].append(occurred_at)

    @classmethod
    def load(cls, db: Session, lead_ids: Iterable[int], since: datetime) -> "RecentErrorIndex":
        ids = list(set(lead_ids))
        if not ids:
            return cls(())
        rows = db.execute(
            select(WorkflowError.lead_id, WorkflowError.lead_source, WorkflowError.occurred_at).where(
                WorkflowError.lead_id.in_(ids),
                WorkflowError.occurred_at >= since,
            )
        ).all()
        return cls(rows)

    def times_for(self, lead_id: int, lead_source: str) -> list[datetime]:
        return self._by_key.get((lead_id, lead_source), []) + self._by_key.get((lead_id, None), [])


def recent_error_window(config: Config | None = None) -> timedelta:
    return timedelta(minutes=(config or get_config()).RECENT_ERROR_WINDOW_MINUTES)


def derive_row_statuses(
    db: Session,
    rows: list[LeadProcessingStatus],
    now: datetime,
    window: timedelta,
) -> list[OverallStatus]:
    """Overall status for each processing row, with one error lookup for the batch."""
    errors = RecentErrorIndex.load(db, (row.lead_id for row in rows), since=now - window)
    return [
        derive_overall_status(
            StageStatuses.from_row(row),
            errors.times_for(row.lead_id, row.lead_source),
            now=now,
            window=window,
        )
        for row in rows
    ]


def _stage_view(row: Any, stage_prefix: str) -> dict[str, Any]:
    started = getattr(row, f"{stage_prefix}_started_at", None) if row is not None else None
    completed = getattr(row, f"{stage_prefix}_completed_at", None) if row is not None else None
    return {
        "status": (getattr(row, f"{stage_prefix}_status", None) if row is not None else None) or "pending",
        "started_at": isoformat(started),
        "completed_at": isoformat(completed),
        "duration_seconds": stage_duration_seconds(started, completed),
        "error": getattr(row, f"{stage_prefix}_error", None) if row is not None else None,
    }


def _execution_view(execution: WorkflowExecution | None) -> dict[str, Any] | None:
    if execution is None:
        return None
    return {
        "id": execution.id,
        "workflow_name": execution.workflow_name,
        "campaign_name": execution.campaign_name,
        "status": execution.status,
        "started_at": isoformat(execution.started_at),
        "completed_at": isoformat(execution.completed_at),
    }


def _parse_source(source: Any) -> LeadSource:
    try:
        return LeadSource(source)
    except ValueError:
        raise ValidationError('Invalid source. Must be "linkedin" or "apollo"') from None


class LeadMonitoringService(BaseService):
    """Read-only lead views that all report the same derived status."""

    def __init__(self, db: Session | None = None, config: Config | None = None) -> None:
        super().__init__(db)
        self.config = config or get_config()

    def list_leads(
        self,
        status: str | None = None,
        source: str | None = None,
        limit: int = 50,
        offset: int = 0,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        now = now or utcnow()
        source_filter = _parse_source(source) if source else None
        status_filter: OverallStatus | None = None
        if status:
            try:
                status_filter = OverallStatus(status)
            except ValueError:
                raise ValidationError(
                    "Invalid status",
                    details={"allowed": [member.value for member in OverallStatus]},
                ) from None

        query = (
            select(LeadProcessingStatus)
            .options(selectinload(LeadProcessingStatus.execution))
            .order_by(LeadProcessingStatus.updated_at.desc(), LeadProcessingStatus.id.desc())
        )
        if source_filter is not None:
            query = query.where(LeadProcessingStatus.lead_source == source_filter.value)
        rows = list(self.db.scalars(query).all())

        statuses = derive_row_statuses(self.db, rows, now=now, window=recent_error_window(self.config))
        stats = self._stats(rows, statuses)

        matching = [
            (row, derived)
            for row, derived in zip(rows, statuses)
            if status_filter is None or derived is status_filter
        ]
        page = matching[offset : offset + limit]
        leads = self._leads_by_key(row for row, _ in page)

        return {
            "leads": [self._list_item(row, derived, leads.get((row.lead_id, row.lead_source))) for row, derived in page],
            "stats": stats,
            "pagination": {
                "limit": limit,
                "offset": offset,
                "total": len(matching),
                "has_more": offset + limit < len(matching),
            },
        }

    def get_lead_detail(self, lead_id: int, source: str, now: datetime | None = None) -> dict[str, Any]:
        now = now or utcnow()
        lead_source = _parse_source(source)
        lead = self.db.scalars(
            select(Lead).where(Lead.id == lead_id, Lead.lead_source == lead_source.value)
        ).first()
        if lead is None:
            raise NotFoundError("Lead not found")

        processing = self.db.scalars(
            select(LeadProcessingStatus)
            .options(selectinload(LeadProcessingStatus.execution))
            .where(
                LeadProcessingStatus.lead_id == lead_id,
                LeadProcessingStatus.lead_source == lead_source.value,
            )
        ).first()
        errors = self.db.scalars(
            select(WorkflowError)
            .where(
                WorkflowError.lead_id == lead_id,
                or_(WorkflowError.lead_source == lead_source.value, WorkflowError.lead_source.is_(None)),
            )
            .order_by(WorkflowError.occurred_at.desc())
        ).all()

        stages = StageStatuses.from_row(processing)
        overall = derive_overall_status(
            stages,
            (error.occurred_at for error in errors),
            now=now,
            window=recent_error_window(self.config),
        )
        active = active_stage(stages)
        failed = failed_stage(stages)

        sync = SyncReconciliationService(db=self.db).check_sync([lead.email]) if lead.email else {}

        return {
            "lead": {
                "id": lead.id,
                "name": lead.full_name,
                "email": lead.email,
                "company": lead.company,
                "title": lead.title,
                "niche": lead.niche,
                "tags": list(lead.tags or []),
                "source": lead.lead_source,
                "processed": lead.processed,
                "created_at": isoformat(lead.created_at),
            },
            "processing": {
                "status": overall.value,
                "active_stage": active.value if active else None,
                "failed_stage": failed.value if failed else None,
                **{stage.value: _stage_view(processing, stage.value) for stage in PIPELINE_ORDER},
            },
            "errors": [
                {
                    "id": error.id,
                    "node": error.node_name,
                    "type": error.error_type,
                    "severity": error.severity,
                    "message": error.error_message,
                    "occurred_at": isoformat(error.occurred_at),
                }
                for error in errors
            ],
            "execution": _execution_view(processing.execution if processing else None),
            "metrics": {
                "processing_time_seconds": processing.processing_time_seconds if processing else None,
                "error_count": processing.error_count if processing else 0,
                "retry_count": processing.retry_count if processing else 0,
                "last_retry_at": isoformat(processing.last_retry_at) if processing else None,
                "last_updated": isoformat(processing.updated_at) if processing else None,
            },
            "sync": sync[lead.email].to_dict() if lead.email else None,
        }

    def _leads_by_key(self, rows: Iterable[LeadProcessingStatus]) -> dict[tuple[int, str], Lead]:
        rows = list(rows)
        if not rows:
            return {}
        leads = self.db.scalars(select(Lead).where(Lead.id.in_({row.lead_id for row in rows}))).all()
        return {(lead.id, lead.lead_source): lead for lead in leads}

    @staticmethod
    def _stats(rows: list[LeadProcessingStatus], statuses: list[OverallStatus]) -> dict[str, dict[str, int]]:
        counters: dict[str, Counter] = {source.value: Counter() for source in LeadSource}
        for row, derived in zip(rows, statuses):
            counter = counters.setdefault(row.lead_source, Counter())
            counter["total"] += 1
            counter[derived.value] += 1
        return {
            source: {"total": counter["total"], **{status.value: counter[status.value] for status in OverallStatus}}
            for source, counter in counters.items()
        }

    @staticmethod
    def _list_item(row: LeadProcessingStatus, derived: OverallStatus, lead: Lead | None) -> dict[str, Any]:
        stages = StageStatuses.from_row(row)
        active = active_stage(stages)
        return {
            "id": row.id,
            "lead_id": row.lead_id,
            "lead_source": row.lead_source,
            "lead_name": lead.full_name if lead else None,
            "lead_email": lead.email if lead else None,
            "lead_company": lead.company if lead else None,
            "lead_title": lead.title if lead else None,
            "overall_status": derived.value,
            "active_stage": active.value if active else None,
            "processing": {stage.value: _stage_view(row, stage.value) for stage in PIPELINE_ORDER},
            "workflow": _execution_view(row.execution),
            "metrics": {
                "error_count": row.error_count or 0,
                "retry_count": row.retry_count or 0,
                "last_error": row.last_error,
                "last_error_node": row.last_error_node,
                "processing_time_seconds": row.processing_time_seconds,
            },
            "timestamps": {
                "created_at": isoformat(row.created_at),
                "updated_at": isoformat(row.updated_at),
            },
        }
