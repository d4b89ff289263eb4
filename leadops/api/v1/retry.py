"""Retry endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from leadops.core.dependencies import get_retry_orchestrator
from leadops.schemas import RetryRequestBody, ok
from leadops.services.retry_service import RetryOrchestrator

router = APIRouter(prefix="/monitoring", tags=["retry"])


@router.post("/retry")
def retry_leads(
    body: RetryRequestBody,
    orchestrator: RetryOrchestrator = Depends(get_retry_orchestrator),
) -> dict:
    result = orchestrator.retry(
        lead_ids=body.lead_ids,
        source=body.source,
        workflow_name=body.workflow_name,
        retry_type=body.retry_type,
    )
    return ok(result.to_dict())
