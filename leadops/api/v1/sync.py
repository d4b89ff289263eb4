"""Delivery sync check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from leadops.core.dependencies import get_sync_service
from leadops.schemas import SyncCheckRequest, ok
from leadops.services.sync_service import SyncReconciliationService

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/check")
def check_sync(
    body: SyncCheckRequest,
    service: SyncReconciliationService = Depends(get_sync_service),
) -> dict:
    statuses = service.check_sync(body.emails)
    return ok({email: status.to_dict() for email, status in statuses.items()})
