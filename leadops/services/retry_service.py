"""Retry orchestration for failed or stuck leads.

A retry is a sequence of independently committed steps. Validation happens
up front and is all-or-nothing; after that, a failing step is reported in
the result without undoing the steps that already committed. Every step is
safe to repeat: the status row is upserted, the audit log is append-only and
the webhook payload names explicit lead ids.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadops.core.config import Config, get_config
from leadops.core.enums import LeadSource, RetryAttemptStatus, RetryType
from leadops.core.exceptions import ServiceError, ValidationError
from leadops.models import Lead, LeadProcessingStatus, RetryAttempt
from leadops.models.base import utcnow
from leadops.orchestration.retry_policy import reset_fields
from leadops.orchestration.status import StageStatuses, derive_overall_status
from leadops.services.base_service import BaseService
from leadops.services.lead_monitoring_service import RecentErrorIndex, recent_error_window
from leadops.services.sync_service import SyncReconciliationService
from leadops.services.workflow_webhook import WorkflowWebhookClient

logger = logging.getLogger(__name__)


@dataclass
class RetryRequest:
    lead_ids: list[int]
    source: LeadSource
    workflow_name: str
    retry_type: RetryType


@dataclass
class RetryResult:
    request: RetryRequest
    previous_status: dict[int, str] = field(default_factory=dict)
    already_synced: list[int] = field(default_factory=list)
    step_errors: list[dict[str, str]] = field(default_factory=list)
    webhook: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def queued(self) -> int:
        return len(self.request.lead_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "queued": self.queued,
            "message": f"{self.queued} leads queued for retry",
            "lead_ids": list(self.request.lead_ids),
            "source": self.request.source.value,
            "workflow_name": self.request.workflow_name,
            "retry_type": self.request.retry_type.value,
            "previous_status": {str(k): v for k, v in self.previous_status.items()},
            "already_synced": list(self.already_synced),
            "step_errors": list(self.step_errors),
            "webhook": dict(self.webhook),
            "timestamp": self.timestamp.isoformat(),
        }


def _dedupe(ids: Iterable[int]) -> list[int]:
    seen: dict[int, None] = {}
    for lead_id in ids:
        seen.setdefault(lead_id, None)
    return list(seen)


def _dialect_insert(session: Session) -> Callable:
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise ServiceError(f"Upsert is not supported on dialect {dialect!r}.")
    return insert


class RetryOrchestrator(BaseService):
    """Validate, reset and re-queue a batch of leads from one source."""

    def __init__(
        self,
        db: Session | None = None,
        webhook: WorkflowWebhookClient | None = None,
        config: Config | None = None,
    ) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.webhook = webhook or WorkflowWebhookClient(self.config)
        self.sync = SyncReconciliationService(db=self.db)

    def validate(
        self,
        lead_ids: Any,
        source: Any,
        workflow_name: Any,
        retry_type: Any = RetryType.FULL,
    ) -> RetryRequest:
        """Check every precondition before anything is written."""
        if not isinstance(lead_ids, (list, tuple, set)) or not lead_ids:
            raise ValidationError("leadIds must be a non-empty array")
        if any(isinstance(lead_id, bool) or not isinstance(lead_id, int) for lead_id in lead_ids):
            raise ValidationError("leadIds must contain integer ids")
        try:
            resolved_source = LeadSource(source)
        except ValueError:
            raise ValidationError('Invalid source. Must be "linkedin" or "apollo"') from None
        if not isinstance(workflow_name, str) or not workflow_name.strip():
            raise ValidationError("workflowName is required")
        try:
            resolved_type = RetryType(retry_type)
        except ValueError:
            raise ValidationError(
                "Invalid retryType",
                details={"allowed": [member.value for member in RetryType]},
            ) from None

        ids = _dedupe(lead_ids)
        existing = set(
            self.db.scalars(
                select(Lead.id).where(Lead.lead_source == resolved_source.value, Lead.id.in_(ids))
            ).all()
        )
        missing = [lead_id for lead_id in ids if lead_id not in existing]
        if missing:
            raise ValidationError("Some leads not found", details={"missing_lead_ids": missing})

        return RetryRequest(
            lead_ids=ids,
            source=resolved_source,
            workflow_name=workflow_name.strip(),
            retry_type=resolved_type,
        )

    def current_statuses(self, lead_ids: list[int], source: LeadSource, now: datetime | None = None) -> dict[int, str]:
        """Derived overall status per lead, as the dashboards would show it."""
        now = now or utcnow()
        window = recent_error_window(self.config)
        rows = {
            row.lead_id: row
            for row in self.db.scalars(
                select(LeadProcessingStatus).where(
                    LeadProcessingStatus.lead_source == source.value,
                    LeadProcessingStatus.lead_id.in_(lead_ids),
                )
            ).all()
        }
        errors = RecentErrorIndex.load(self.db, lead_ids, since=now - window)
        return {
            lead_id: derive_overall_status(
                StageStatuses.from_row(rows.get(lead_id)),
                errors.times_for(lead_id, source.value),
                now=now,
                window=window,
            ).value
            for lead_id in lead_ids
        }

    def retry(
        self,
        lead_ids: Any,
        source: Any,
        workflow_name: Any,
        retry_type: Any = RetryType.FULL,
    ) -> RetryResult:
        request = self.validate(lead_ids, source, workflow_name, retry_type)
        result = RetryResult(request=request)
        now = result.timestamp

        logger.info(
            "retry.requested",
            extra={
                "event": "retry.requested",
                "lead_count": len(request.lead_ids),
                "source": request.source.value,
                "workflow_name": request.workflow_name,
                "retry_type": request.retry_type.value,
            },
        )

        result.previous_status = self.current_statuses(request.lead_ids, request.source, now=now)
        result.already_synced = (
            self._run_step("check_sync", result, lambda: self.sync.synced_lead_ids(request.lead_ids, request.source))
            or []
        )
        if result.already_synced:
            logger.warning(
                "retry.leads_already_synced",
                extra={"event": "retry.leads_already_synced", "lead_ids": result.already_synced},
            )

        self._run_step("reset_leads", result, lambda: self._reset_leads(request))
        self._run_step("upsert_processing_status", result, lambda: self._upsert_processing_status(request, now))
        self._run_step("record_attempts", result, lambda: self._record_attempts(request, now))

        result.webhook = self.webhook.trigger_retry(
            request.workflow_name,
            request.lead_ids,
            request.retry_type,
            already_synced=result.already_synced,
        )

        logger.info(
            "retry.completed",
            extra={
                "event": "retry.completed",
                "queued": result.queued,
                "step_errors": len(result.step_errors),
                "webhook_triggered": result.webhook.get("triggered", False),
            },
        )
        return result

    def _run_step(self, name: str, result: RetryResult, step: Callable[[], Any]) -> Any:
        try:
            value = step()
            self.commit()
            return value
        except SQLAlchemyError as exc:
            self.rollback()
            logger.error(
                "retry.step.failed",
                extra={"event": "retry.step.failed", "step": name, "error": str(exc)},
            )
            result.step_errors.append({"step": name, "error": str(exc)})

    def _reset_leads(self, request: RetryRequest) -> None:
        values = dict(reset_fields(request.retry_type))
        values["processed"] = False
        values["retry_count"] = Lead.retry_count + 1
        self.db.execute(
            update(Lead)
            .where(Lead.lead_source == request.source.value, Lead.id.in_(request.lead_ids))
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    def _upsert_processing_status(self, request: RetryRequest, now: datetime) -> None:
        fields = reset_fields(request.retry_type)
        rows = [
            {
                "lead_id": lead_id,
                "lead_source": request.source.value,
                **fields,
                "retry_count": 1,
                "last_retry_at": now,
                "created_at": now,
                "updated_at": now,
            }
            for lead_id in request.lead_ids
        ]
        insert = _dialect_insert(self.db)
        table = LeadProcessingStatus.__table__
        stmt = insert(table).values(rows)
        assignments = {name: stmt.excluded[name] for name in (*fields, "last_retry_at", "updated_at")}
        # Increment in the database so concurrent retries cannot lose a count.
        assignments["retry_count"] = table.c.retry_count + 1
        self.db.execute(
            stmt.on_conflict_do_update(index_elements=["lead_id", "lead_source"], set_=assignments)
        )

    def _record_attempts(self, request: RetryRequest, now: datetime) -> None:
        self.db.add_all(
            [
                RetryAttempt(
                    lead_id=lead_id,
                    lead_source=request.source.value,
                    workflow_name=request.workflow_name,
                    retry_type=request.retry_type.value,
                    requested_at=now,
                    status=RetryAttemptStatus.QUEUED.value,
                )
                for lead_id in request.lead_ids
            ]
        )
