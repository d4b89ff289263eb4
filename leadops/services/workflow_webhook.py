"""Trigger the external workflow engine for re-queued leads."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import requests

from leadops.core.config import Config, get_config
from leadops.core.enums import LeadSource, RetryType
from leadops.core.exceptions import WebhookError
from leadops.models.base import utcnow

logger = logging.getLogger(__name__)

USER_AGENT = "LeadOps-Monitoring/1.0"
WEBHOOK_SOURCE_TAG = "monitoring_api"


def target_for_workflow(workflow_name: str) -> LeadSource:
    """LinkedIn workflows are matched by name; everything else goes to Apollo."""
    return LeadSource.LINKEDIN if "LinkedIn" in workflow_name else LeadSource.APOLLO


class WorkflowWebhookClient:
    """POSTs retry requests to the workflow engine; never raises to the caller."""

    def __init__(self, config: Config | None = None, session: Any = None) -> None:
        self.config = config or get_config()
        # The requests module itself: no pooled session outlives a call.
        self.http = session or requests

    def url_for(self, target: LeadSource) -> str | None:
        if target is LeadSource.LINKEDIN:
            return self.config.WORKFLOW_WEBHOOK_LINKEDIN_URL
        return self.config.WORKFLOW_WEBHOOK_APOLLO_URL

    @staticmethod
    def build_payload(
        workflow_name: str,
        lead_ids: Sequence[int],
        retry_type: RetryType,
        already_synced: Sequence[int] = (),
        now: datetime | None = None,
    ) -> dict[str, Any]:
        return {
            "action": "retry",
            "leadIds": list(lead_ids),
            "retryType": RetryType(retry_type).value,
            "timestamp": (now or utcnow()).isoformat(),
            "source": WEBHOOK_SOURCE_TAG,
            "workflowName": workflow_name,
            "alreadySyncedLeadIds": list(already_synced),
        }

    def _post(self, url: str, payload: dict[str, Any]) -> int:
        try:
            response = self.http.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
                timeout=self.config.WEBHOOK_TIMEOUT_SECONDS,
            )
        except requests.exceptions.Timeout as exc:
            raise WebhookError(f"Webhook timed out after {self.config.WEBHOOK_TIMEOUT_SECONDS}s") from exc
        except requests.exceptions.RequestException as exc:
            raise WebhookError(f"Webhook request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise WebhookError(
                f"Webhook failed with status {response.status_code}: {response.reason}",
                status_code=response.status_code,
            )
        return response.status_code

    def trigger_retry(
        self,
        workflow_name: str,
        lead_ids: Sequence[int],
        retry_type: RetryType,
        already_synced: Sequence[int] = (),
    ) -> dict[str, Any]:
        """Fire exactly one webhook call and describe the outcome."""
        target = target_for_workflow(workflow_name)
        url = self.url_for(target)
        if not url:
            logger.warning(
                "retry.webhook.not_configured",
                extra={"event": "retry.webhook.not_configured", "workflow_name": workflow_name, "target": target.value},
            )
            return {
                "triggered": False,
                "target": target.value,
                "reason": "No webhook URL configured",
                "timestamp": utcnow().isoformat(),
            }

        payload = self.build_payload(workflow_name, lead_ids, retry_type, already_synced)
        try:
            status_code = self._post(url, payload)
        except WebhookError as exc:
            logger.error(
                "retry.webhook.failed",
                extra={
                    "event": "retry.webhook.failed",
                    "workflow_name": workflow_name,
                    "target": target.value,
                    "status_code": exc.status_code,
                    "error": str(exc),
                },
            )
            outcome: dict[str, Any] = {
                "triggered": False,
                "target": target.value,
                "reason": str(exc),
                "timestamp": utcnow().isoformat(),
            }
            if exc.status_code is not None:
                outcome["status"] = exc.status_code
            return outcome

        logger.info(
            "retry.webhook.triggered",
            extra={
                "event": "retry.webhook.triggered",
                "workflow_name": workflow_name,
                "target": target.value,
                "lead_count": len(lead_ids),
            },
        )
        return {
            "triggered": True,
            "target": target.value,
            "status": status_code,
            "timestamp": utcnow().isoformat(),
        }
