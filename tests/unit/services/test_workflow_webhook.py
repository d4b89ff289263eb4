from __future__ import annotations

from dataclasses import replace

import requests

from leadops.core.enums import LeadSource, RetryType
from leadops.services.workflow_webhook import USER_AGENT, WorkflowWebhookClient, target_for_workflow


def test_target_is_chosen_by_workflow_name():
    assert target_for_workflow("LeadGenOS (LinkedIn)") is LeadSource.LINKEDIN
    assert target_for_workflow("LeadGenOS (Apollo)") is LeadSource.APOLLO
    assert target_for_workflow("nightly sweep") is LeadSource.APOLLO


def test_successful_trigger_posts_payload_once(config, fake_http):
    http = fake_http()
    outcome = WorkflowWebhookClient(config, session=http).trigger_retry(
        "LeadGenOS (Apollo)", [4, 5], RetryType.OUTREACH_ONLY, already_synced=[5]
    )

    assert outcome["triggered"] is True
    assert outcome["target"] == "apollo"
    assert len(http.calls) == 1
    call = http.calls[0]
    assert call["url"] == config.WORKFLOW_WEBHOOK_APOLLO_URL
    assert call["timeout"] == config.WEBHOOK_TIMEOUT_SECONDS
    assert call["headers"]["User-Agent"] == USER_AGENT
    assert call["json"]["retryType"] == "outreach_only"
    assert call["json"]["source"] == "monitoring_api"
    assert call["json"]["alreadySyncedLeadIds"] == [5]


def test_missing_url_is_reported_not_raised(config, fake_http):
    http = fake_http()
    unconfigured = replace(config, WORKFLOW_WEBHOOK_APOLLO_URL=None)

    outcome = WorkflowWebhookClient(unconfigured, session=http).trigger_retry("LeadGenOS (Apollo)", [1], "full")

    assert outcome["triggered"] is False
    assert outcome["reason"] == "No webhook URL configured"
    assert http.calls == []


def test_non_2xx_response_is_reported_with_status(config, fake_http):
    outcome = WorkflowWebhookClient(config, session=fake_http(status_code=502)).trigger_retry(
        "LeadGenOS (LinkedIn)", [1], "full"
    )

    assert outcome["triggered"] is False
    assert outcome["status"] == 502
    assert outcome["target"] == "linkedin"


def test_connection_error_is_reported(config, fake_http):
    http = fake_http(exc=requests.exceptions.ConnectionError("refused"))

    outcome = WorkflowWebhookClient(config, session=http).trigger_retry("LeadGenOS (Apollo)", [1], "full")

    assert outcome["triggered"] is False
    assert "refused" in outcome["reason"]
    assert "status" not in outcome


def test_default_transport_is_module_level_requests(config, monkeypatch):
    calls = []

    def _post(url, **kwargs):
        calls.append(url)
        response = requests.Response()
        response.status_code = 202
        return response

    monkeypatch.setattr(requests, "post", _post)
    client = WorkflowWebhookClient(config)

    outcome = client.trigger_retry("LeadGenOS (Apollo)", [1], "full")

    assert client.http is requests
    assert outcome["triggered"] is True
    assert calls == [config.WORKFLOW_WEBHOOK_APOLLO_URL]
