"""Dashboard and cost rollups over executions, errors and API usage.

Each rollup is a read-only query against one table family. The dashboard
fans its rollups out across a thread pool, one session per rollup, and a
rollup that fails degrades to its empty shape instead of failing the whole
response.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from leadops.core.config import Config, get_config
from leadops.core.enums import ErrorSeverity, ExecutionStatus, LeadSource, OverallStatus
from leadops.database.db import get_session_factory
from leadops.models import ApiUsage, LeadProcessingStatus, WorkflowError, WorkflowExecution
from leadops.models.base import as_utc, isoformat, utcnow
from leadops.services.lead_monitoring_service import derive_row_statuses, recent_error_window

logger = logging.getLogger(__name__)

TIME_RANGE_HOURS = {"24h": 24, "7d": 168, "30d": 720, "90d": 2160}
DEFAULT_TIME_RANGE = "24h"
GROUP_BY_FORMATS = {"day": "%Y-%m-%d", "hour": "%Y-%m-%dT%H:00:00Z"}
DEFAULT_GROUP_BY = "day"
RECENT_ERRORS_LIMIT = 10


@dataclass(frozen=True)
class TimeWindow:
    time_range: str
    hours: int
    start: datetime
    end: datetime


def resolve_window(time_range: str | None, now: datetime | None = None) -> TimeWindow:
    """Map a ``timeRange`` token to an explicit window; unknown tokens mean 24h."""
    label = time_range if time_range in TIME_RANGE_HOURS else DEFAULT_TIME_RANGE
    end = as_utc(now) or utcnow()
    hours = TIME_RANGE_HOURS[label]
    return TimeWindow(time_range=label, hours=hours, start=end - timedelta(hours=hours), end=end)


def percentage(numerator: float, denominator: float) -> int:
    if not denominator:
        return 0
    return int(math.floor(numerator / denominator * 100 + 0.5))


def round_cost(value: float) -> float:
    return round(value, 2)


def bucket_key(timestamp: datetime, group_by: str) -> str:
    return as_utc(timestamp).strftime(GROUP_BY_FORMATS.get(group_by, GROUP_BY_FORMATS[DEFAULT_GROUP_BY]))


def workflow_family(workflow_name: str | None) -> LeadSource:
    return LeadSource.LINKEDIN if "LinkedIn" in (workflow_name or "") else LeadSource.APOLLO


def health_status(score: int) -> str:
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "healthy"
    if score >= 50:
        return "warning"
    return "critical"


def _empty_health() -> dict[str, Any]:
    return {
        family.value: {
            "score": 0,
            "status": "unknown",
            "last_execution": None,
            "total_executions": 0,
            "successful_executions": 0,
            "critical_errors": 0,
        }
        for family in LeadSource
    }


def _empty_executions() -> dict[str, Any]:
    return {"total": 0, "completed": 0, "failed": 0, "running": 0, "success_rate": 0}


def _empty_leads() -> dict[str, Any]:
    return {
        "total": 0,
        "by_status": {status.value: 0 for status in OverallStatus},
        "retried": 0,
        "completion_rate": 0,
        "average_processing_seconds": 0,
    }


def _empty_errors() -> dict[str, Any]:
    return {
        "total": 0,
        "by_severity": {severity.value: 0 for severity in ErrorSeverity},
        "by_node": {},
        "by_type": {},
    }


def _empty_usage() -> dict[str, Any]:
    return {"services": {}, "total_calls": 0, "total_tokens": 0, "total_cost": 0.0}


def _empty_summary() -> dict[str, Any]:
    return {
        "total_cost": 0.0,
        "total_tokens": 0,
        "total_calls": 0,
        "avg_cost_per_call": 0.0,
        "avg_cost_per_1k_tokens": 0.0,
    }


def _empty_page() -> dict[str, Any]:
    return {"items": [], "total": 0, "has_more": False, "completed": 0, "avg_execution_seconds": 0}


def _summarize_leads(rows: list[LeadProcessingStatus], statuses: list[OverallStatus]) -> dict[str, Any]:
    stats = _empty_leads()
    stats["total"] = len(rows)
    for derived in statuses:
        stats["by_status"][derived.value] += 1
    stats["retried"] = sum(1 for row in rows if row.retry_count)
    stats["completion_rate"] = percentage(stats["by_status"][OverallStatus.COMPLETED.value], len(rows))
    timings = [row.processing_time_seconds for row in rows if row.processing_time_seconds]
    if timings:
        stats["average_processing_seconds"] = round(sum(timings) / len(timings), 2)
    return stats


class MetricsAggregationService:
    """Read-only rollups for the monitoring dashboard."""

    def __init__(self, session_factory: sessionmaker | None = None, config: Config | None = None) -> None:
        self.session_factory = session_factory or get_session_factory()
        self.config = config or get_config()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    def _guarded(self, name: str, rollup: Callable[[], Any], default: Callable[[], Any]) -> Any:
        try:
            return rollup()
        except Exception as exc:
            logger.error(
                "metrics.rollup.failed",
                extra={"event": "metrics.rollup.failed", "rollup": name, "error": str(exc)},
                exc_info=True,
            )
            return default()

    def _gather(self, rollups: dict[str, tuple[Callable[[], Any], Callable[[], Any]]]) -> dict[str, Any]:
        """Run independent rollups concurrently and join them by name."""
        workers = max(1, min(len(rollups), self.config.METRICS_MAX_WORKERS))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="metrics") as pool:
            futures = {
                name: pool.submit(self._guarded, name, rollup, default)
                for name, (rollup, default) in rollups.items()
            }
            return {name: future.result() for name, future in futures.items()}

    # Dashboard

    def dashboard(self, time_range: str | None = DEFAULT_TIME_RANGE, now: datetime | None = None) -> dict[str, Any]:
        window = resolve_window(time_range, now)
        feed_size = self.config.ACTIVITY_FEED_SIZE
        sections = self._gather(
            {
                "health": (lambda: self.workflow_health(window), _empty_health),
                "executions": (lambda: self.execution_stats(window), _empty_executions),
                "leads": (lambda: self.lead_stats(window), _empty_leads),
                "errors": (lambda: self.error_summary(window), _empty_errors),
                "api_usage": (lambda: self.api_usage_summary(window), _empty_usage),
                "recent_activity": (
                    lambda: self.recent_activity(window.start, per_source=feed_size, page_size=feed_size),
                    list,
                ),
            }
        )
        logger.info(
            "metrics.dashboard.built",
            extra={"event": "metrics.dashboard.built", "time_range": window.time_range},
        )
        return {**sections, "timestamp": window.end.isoformat(), "time_range": window.time_range}

    def workflow_health(self, window: TimeWindow) -> dict[str, Any]:
        with self._session() as db:
            executions = db.execute(
                select(WorkflowExecution.workflow_name, WorkflowExecution.status, WorkflowExecution.started_at)
                .where(WorkflowExecution.started_at >= window.start)
                .order_by(WorkflowExecution.started_at.desc())
            ).all()
            critical = db.execute(
                select(WorkflowError.workflow_name, func.count(WorkflowError.id))
                .where(
                    WorkflowError.occurred_at >= window.start,
                    WorkflowError.severity == ErrorSeverity.CRITICAL.value,
                )
                .group_by(WorkflowError.workflow_name)
            ).all()

        health = _empty_health()
        critical_by_family: Counter = Counter()
        for workflow_name, count in critical:
            critical_by_family[workflow_family(workflow_name).value] += count

        for workflow_name, status, started_at in executions:
            entry = health[workflow_family(workflow_name).value]
            if entry["last_execution"] is None:
                entry["last_execution"] = isoformat(started_at)
            entry["total_executions"] += 1
            if status == ExecutionStatus.COMPLETED.value:
                entry["successful_executions"] += 1

        for family, entry in health.items():
            entry["critical_errors"] = critical_by_family[family]
            if entry["total_executions"]:
                success = entry["successful_executions"] / entry["total_executions"] * 100
                entry["score"] = max(0, int(math.floor(success - 10 * entry["critical_errors"] + 0.5)))
                entry["status"] = health_status(entry["score"])
        return health

    def execution_stats(self, window: TimeWindow) -> dict[str, Any]:
        with self._session() as db:
            counts = dict(
                db.execute(
                    select(WorkflowExecution.status, func.count(WorkflowExecution.id))
                    .where(WorkflowExecution.started_at >= window.start)
                    .group_by(WorkflowExecution.status)
                ).all()
            )
        total = sum(counts.values())
        completed = counts.get(ExecutionStatus.COMPLETED.value, 0)
        return {
            "total": total,
            "completed": completed,
            "failed": counts.get(ExecutionStatus.FAILED.value, 0),
            "running": counts.get(ExecutionStatus.STARTED.value, 0),
            "success_rate": percentage(completed, total),
        }

    def lead_stats(self, window: TimeWindow) -> dict[str, Any]:
        with self._session() as db:
            rows = list(
                db.scalars(
                    select(LeadProcessingStatus).where(LeadProcessingStatus.created_at >= window.start)
                ).all()
            )
            statuses = derive_row_statuses(db, rows, now=window.end, window=recent_error_window(self.config))

        return _summarize_leads(rows, statuses)

    def error_summary(self, window: TimeWindow, workflow_name: str | None = None) -> dict[str, Any]:
        query = select(WorkflowError).where(WorkflowError.occurred_at >= window.start)
        if workflow_name:
            query = query.where(WorkflowError.workflow_name == workflow_name)
        with self._session() as db:
            errors = db.scalars(query.order_by(WorkflowError.occurred_at.desc())).all()

        summary = _empty_errors()
        summary["total"] = len(errors)
        by_node: Counter = Counter()
        by_type: Counter = Counter()
        for error in errors:
            summary["by_severity"][error.severity] = summary["by_severity"].get(error.severity, 0) + 1
            by_node[error.node_name] += 1
            by_type[error.error_type] += 1
        summary["by_node"] = dict(by_node)
        summary["by_type"] = dict(by_type)
        if workflow_name:
            summary["recent"] = [
                {
                    "id": error.id,
                    "node": error.node_name,
                    "type": error.error_type,
                    "severity": error.severity,
                    "message": error.error_message,
                    "lead_id": error.lead_id,
                    "occurred_at": isoformat(error.occurred_at),
                }
                for error in errors[:RECENT_ERRORS_LIMIT]
            ]
        return summary

    def api_usage_summary(self, window: TimeWindow) -> dict[str, Any]:
        with self._session() as db:
            rows = db.execute(
                select(ApiUsage.api_service, ApiUsage.total_tokens, ApiUsage.total_cost).where(
                    ApiUsage.called_at >= window.start
                )
            ).all()

        services: dict[str, dict[str, Any]] = defaultdict(lambda: {"calls": 0, "tokens": 0, "cost": 0.0})
        for service, tokens, cost in rows:
            entry = services[service]
            entry["calls"] += 1
            entry["tokens"] += tokens or 0
            entry["cost"] += cost or 0.0

        total_cost = sum(entry["cost"] for entry in services.values())
        return {
            "services": {
                name: {**entry, "cost": round_cost(entry["cost"])} for name, entry in sorted(services.items())
            },
            "total_calls": len(rows),
            "total_tokens": sum(entry["tokens"] for entry in services.values()),
            "total_cost": round_cost(total_cost),
        }

    def recent_activity(self, start: datetime, per_source: int = 10, page_size: int = 10) -> list[dict[str, Any]]:
        """Newest executions and errors merged into one feed.

        Each table contributes at most ``per_source`` rows before the merge, and
        the merged feed is cut to ``page_size``.
        """
        with self._session() as db:
            executions = db.scalars(
                select(WorkflowExecution)
                .where(WorkflowExecution.started_at >= start)
                .order_by(WorkflowExecution.started_at.desc())
                .limit(per_source)
            ).all()
            errors = db.scalars(
                select(WorkflowError)
                .where(WorkflowError.occurred_at >= start)
                .order_by(WorkflowError.occurred_at.desc())
                .limit(per_source)
            ).all()

        items: list[tuple[datetime, dict[str, Any]]] = []
        for execution in executions:
            items.append(
                (
                    as_utc(execution.started_at),
                    {
                        "type": "execution",
                        "id": execution.id,
                        "workflow_name": execution.workflow_name,
                        "timestamp": isoformat(execution.started_at),
                        "status": execution.status,
                        "message": f"{execution.workflow_name} {execution.status}",
                    },
                )
            )
        for error in errors:
            items.append(
                (
                    as_utc(error.occurred_at),
                    {
                        "type": "error",
                        "id": error.id,
                        "workflow_name": error.workflow_name,
                        "timestamp": isoformat(error.occurred_at),
                        "severity": error.severity,
                        "message": error.error_message or error.error_type,
                    },
                )
            )
        items.sort(key=lambda item: item[0], reverse=True)
        return [item for _, item in items[:page_size]]

    # Costs

    def cost_analytics(
        self,
        time_range: str | None = "30d",
        group_by: str | None = DEFAULT_GROUP_BY,
        model: str | None = None,
        service: str | None = None,
        workflow: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        window = resolve_window(time_range, now)
        grouping = group_by if group_by in GROUP_BY_FORMATS else DEFAULT_GROUP_BY
        filters = {"model": model, "service": service, "workflow": workflow}

        sections = self._gather(
            {
                "summary": (lambda: self.cost_summary(window, filters), _empty_summary),
                "trends": (lambda: self.cost_trends(window, filters, grouping), list),
                "by_model": (lambda: self.cost_breakdown(window, filters, ApiUsage.model_name, "model"), list),
                "by_service": (lambda: self.cost_breakdown(window, filters, ApiUsage.api_service, "service"), list),
                "by_workflow": (lambda: self.cost_breakdown(window, filters, ApiUsage.workflow_name, "workflow"), list),
            }
        )
        return {
            "summary": sections["summary"],
            "trends": sections["trends"],
            "breakdowns": {
                "by_model": sections["by_model"],
                "by_service": sections["by_service"],
                "by_workflow": sections["by_workflow"],
            },
            "filters": {
                "time_range": window.time_range,
                "group_by": grouping,
                **filters,
                "start": window.start.isoformat(),
                "end": window.end.isoformat(),
            },
        }

    def _usage_rows(self, window: TimeWindow, filters: dict[str, str | None], *columns: Any) -> list[Any]:
        query = select(*columns).where(
            ApiUsage.called_at >= window.start,
            ApiUsage.called_at <= window.end,
            ApiUsage.total_cost.is_not(None),
        )
        if filters.get("model"):
            query = query.where(ApiUsage.model_name == filters["model"])
        if filters.get("service"):
            query = query.where(ApiUsage.api_service == filters["service"])
        if filters.get("workflow"):
            query = query.where(ApiUsage.workflow_name == filters["workflow"])
        with self._session() as db:
            return list(db.execute(query).all())

    def cost_summary(self, window: TimeWindow, filters: dict[str, str | None]) -> dict[str, Any]:
        rows = self._usage_rows(window, filters, ApiUsage.total_cost, ApiUsage.total_tokens)
        total_cost = sum(cost for cost, _ in rows)
        total_tokens = sum(tokens or 0 for _, tokens in rows)
        return {
            "total_cost": round_cost(total_cost),
            "total_tokens": total_tokens,
            "total_calls": len(rows),
            "avg_cost_per_call": round(total_cost / len(rows), 4) if rows else 0.0,
            "avg_cost_per_1k_tokens": round(total_cost / total_tokens * 1000, 4) if total_tokens else 0.0,
        }

    def cost_trends(self, window: TimeWindow, filters: dict[str, str | None], group_by: str) -> list[dict[str, Any]]:
        """Cost per UTC day or hour; buckets without records are left out."""
        rows = self._usage_rows(window, filters, ApiUsage.called_at, ApiUsage.total_cost, ApiUsage.total_tokens)
        buckets: dict[str, dict[str, Any]] = {}
        for called_at, cost, tokens in rows:
            key = bucket_key(called_at, group_by)
            bucket = buckets.setdefault(key, {"bucket": key, "cost": 0.0, "tokens": 0, "calls": 0})
            bucket["cost"] += cost
            bucket["tokens"] += tokens or 0
            bucket["calls"] += 1
        return [{**bucket, "cost": round_cost(bucket["cost"])} for _, bucket in sorted(buckets.items())]

    def cost_breakdown(
        self,
        window: TimeWindow,
        filters: dict[str, str | None],
        column: Any,
        label: str,
    ) -> list[dict[str, Any]]:
        """Cost grouped by one column, with shares of this grouping's own total."""
        rows = self._usage_rows(window, filters, column, ApiUsage.total_cost, ApiUsage.total_tokens)
        groups: dict[str, dict[str, Any]] = {}
        for key, cost, tokens in rows:
            if key is None:
                if label == "workflow":
                    continue
                key = "unknown"
            group = groups.setdefault(key, {label: key, "cost": 0.0, "tokens": 0, "calls": 0})
            group["cost"] += cost
            group["tokens"] += tokens or 0
            group["calls"] += 1

        total_cost = sum(group["cost"] for group in groups.values())
        ordered = sorted(groups.values(), key=lambda group: group["cost"], reverse=True)
        return [
            {
                **group,
                "cost": round_cost(group["cost"]),
                "percentage": percentage(group["cost"], total_cost),
                "avg_cost_per_call": round(group["cost"] / group["calls"], 4),
            }
            for group in ordered
        ]

    # Workflow drill-down

    def workflow_details(
        self,
        workflow_name: str,
        time_range: str | None = DEFAULT_TIME_RANGE,
        limit: int = 50,
        offset: int = 0,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        window = resolve_window(time_range, now)
        sections = self._gather(
            {
                "executions": (lambda: self._workflow_executions(workflow_name, window, limit, offset), _empty_page),
                "errors": (lambda: self.error_summary(window, workflow_name=workflow_name), _empty_errors),
                "api_usage": (
                    lambda: self.cost_breakdown(window, {"workflow": workflow_name}, ApiUsage.model_name, "model"),
                    list,
                ),
                "leads": (lambda: self._workflow_leads(workflow_name, window), _empty_leads),
            }
        )
        executions = sections["executions"]
        return {
            "workflow_name": workflow_name,
            "time_range": window.time_range,
            "summary": {
                "total_executions": executions["total"],
                "success_rate": percentage(executions["completed"], executions["total"]),
                "avg_execution_seconds": executions["avg_execution_seconds"],
                "total_errors": sections["errors"]["total"],
                "total_api_cost": round_cost(sum(group["cost"] for group in sections["api_usage"])),
            },
            "executions": {
                "items": executions["items"],
                "total": executions["total"],
                "has_more": executions["has_more"],
                "limit": limit,
                "offset": offset,
            },
            "errors": sections["errors"],
            "api_usage": {"by_model": sections["api_usage"]},
            "leads": sections["leads"],
        }

    def _workflow_executions(
        self, workflow_name: str, window: TimeWindow, limit: int, offset: int
    ) -> dict[str, Any]:
        scope = (
            WorkflowExecution.workflow_name == workflow_name,
            WorkflowExecution.started_at >= window.start,
        )
        with self._session() as db:
            all_runs = db.execute(
                select(WorkflowExecution.status, WorkflowExecution.started_at, WorkflowExecution.completed_at).where(
                    *scope
                )
            ).all()
            page = db.scalars(
                select(WorkflowExecution)
                .where(*scope)
                .order_by(WorkflowExecution.started_at.desc(), WorkflowExecution.id.desc())
                .offset(offset)
                .limit(limit)
            ).all()

        durations = [
            (as_utc(completed) - as_utc(started)).total_seconds()
            for _, started, completed in all_runs
            if started is not None and completed is not None
        ]
        return {
            "items": [
                {
                    "id": execution.id,
                    "campaign_name": execution.campaign_name,
                    "status": execution.status,
                    "started_at": isoformat(execution.started_at),
                    "completed_at": isoformat(execution.completed_at),
                    "leads_processed": execution.leads_processed,
                    "error_summary": execution.error_summary,
                }
                for execution in page
            ],
            "total": len(all_runs),
            "has_more": offset + limit < len(all_runs),
            "completed": sum(1 for status, _, _ in all_runs if status == ExecutionStatus.COMPLETED.value),
            "avg_execution_seconds": round(sum(durations) / len(durations), 2) if durations else 0,
        }

    def _workflow_leads(self, workflow_name: str, window: TimeWindow) -> dict[str, Any]:
        with self._session() as db:
            rows = list(
                db.scalars(
                    select(LeadProcessingStatus)
                    .join(WorkflowExecution, LeadProcessingStatus.execution_id == WorkflowExecution.id)
                    .where(
                        WorkflowExecution.workflow_name == workflow_name,
                        WorkflowExecution.started_at >= window.start,
                    )
                ).all()
            )
            statuses = derive_row_statuses(db, rows, now=window.end, window=recent_error_window(self.config))

        return _summarize_leads(rows, statuses)
