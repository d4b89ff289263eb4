"""Dashboard, cost and workflow metrics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from leadops.core.dependencies import get_metrics_service
from leadops.schemas import ok
from leadops.services.metrics_service import MetricsAggregationService

router = APIRouter(prefix="/monitoring", tags=["metrics"])


@router.get("/dashboard")
def dashboard(
    time_range: str = Query(default="24h", alias="timeRange"),
    service: MetricsAggregationService = Depends(get_metrics_service),
) -> dict:
    return ok(service.dashboard(time_range))


@router.get("/costs")
def costs(
    time_range: str = Query(default="30d", alias="timeRange"),
    group_by: str = Query(default="day", alias="groupBy"),
    model: str | None = Query(default=None),
    service_name: str | None = Query(default=None, alias="service"),
    workflow: str | None = Query(default=None),
    service: MetricsAggregationService = Depends(get_metrics_service),
) -> dict:
    return ok(
        service.cost_analytics(
            time_range=time_range,
            group_by=group_by,
            model=model,
            service=service_name,
            workflow=workflow,
        )
    )


@router.get("/workflows/{workflow}")
def workflow_details(
    workflow: str,
    time_range: str = Query(default="24h", alias="timeRange"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    service: MetricsAggregationService = Depends(get_metrics_service),
) -> dict:
    return ok(service.workflow_details(workflow, time_range=time_range, limit=limit, offset=offset))
