"""Lead monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from leadops.core.dependencies import get_lead_monitoring_service
from leadops.schemas import ok
from leadops.services.lead_monitoring_service import LeadMonitoringService

router = APIRouter(prefix="/monitoring/leads", tags=["leads"])


@router.get("")
def list_leads(
    status: str | None = Query(default=None),
    source: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    service: LeadMonitoringService = Depends(get_lead_monitoring_service),
) -> dict:
    return ok(service.list_leads(status=status, source=source, limit=limit, offset=offset))


@router.get("/{lead_id}")
def get_lead(
    lead_id: int,
    source: str = Query(...),
    service: LeadMonitoringService = Depends(get_lead_monitoring_service),
) -> dict:
    return ok(service.get_lead_detail(lead_id, source))
