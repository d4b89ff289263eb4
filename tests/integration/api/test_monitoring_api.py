from __future__ import annotations

from dataclasses import replace

import pytest
import requests
from fastapi.testclient import TestClient

from leadops.core.dependencies import get_db_session, get_metrics_service, get_settings, get_sync_service
from leadops.main import create_app
from leadops.services.metrics_service import MetricsAggregationService

API = "/api/v1"


@pytest.fixture
def app(session_factory, config):
    application = create_app()

    def _db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db_session] = _db
    application.dependency_overrides[get_settings] = lambda: config
    application.dependency_overrides[get_metrics_service] = lambda: MetricsAggregationService(
        session_factory=session_factory, config=config
    )
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def webhook_calls(monkeypatch, fake_http):
    http = fake_http()
    monkeypatch.setattr(requests, "post", http.post)
    return http.calls


def test_health_reports_database(client):
    response = client.get(f"{API}/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["database"] == "ok"


def test_bare_options_request_is_answered(client):
    response = client.options(f"{API}/monitoring/retry")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]


def test_bare_options_omits_origin_header_for_foreign_origin(monkeypatch, config):
    restricted = replace(config, CORS_ALLOW_ORIGINS=("https://app.example.com",))
    monkeypatch.setattr("leadops.main.get_config", lambda: restricted)
    client = TestClient(create_app())

    foreign = client.options(f"{API}/monitoring/retry", headers={"Origin": "https://evil.example.com"})
    listed = client.options(f"{API}/monitoring/retry", headers={"Origin": "https://app.example.com"})

    assert foreign.status_code == 200
    assert "access-control-allow-origin" not in foreign.headers
    assert "POST" in foreign.headers["access-control-allow-methods"]
    assert listed.headers["access-control-allow-origin"] == "https://app.example.com"


def test_cors_preflight_is_answered(client):
    response = client.options(
        f"{API}/monitoring/dashboard",
        headers={"Origin": "https://dashboard.example.com", "Access-Control-Request-Method": "GET"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] in {"*", "https://dashboard.example.com"}


def test_unsupported_method_is_405(client):
    response = client.put(f"{API}/monitoring/retry", json={})

    assert response.status_code == 405
    assert response.json() == {"success": False, "error": "Method not allowed"}


def test_retry_rejects_missing_leads(client, make_lead, webhook_calls):
    lead = make_lead()

    response = client.post(
        f"{API}/monitoring/retry",
        json={"leadIds": [lead.id, 424242], "source": "apollo", "workflowName": "LeadGenOS (Apollo)"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Some leads not found"
    assert body["details"]["missing_lead_ids"] == [424242]
    assert webhook_calls == []


def test_retry_queues_leads(client, make_lead, make_status, webhook_calls):
    lead = make_lead()
    make_status(lead, research_status="failed")

    response = client.post(
        f"{API}/monitoring/retry",
        json={"leadIds": [lead.id], "source": "apollo", "workflowName": "LeadGenOS (Apollo)", "retryType": "research_only"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["queued"] == 1
    assert data["retry_type"] == "research_only"
    assert data["previous_status"] == {str(lead.id): "failed"}
    assert data["webhook"]["triggered"] is True
    assert len(webhook_calls) == 1


def test_lead_list_and_detail(client, make_lead, make_status):
    lead = make_lead(source="linkedin")
    make_status(lead, research_status="in_progress")

    listing = client.get(f"{API}/monitoring/leads", params={"source": "linkedin", "limit": 10})
    detail = client.get(f"{API}/monitoring/leads/{lead.id}", params={"source": "linkedin"})

    assert listing.status_code == 200
    assert listing.json()["data"]["pagination"]["total"] == 1
    assert detail.status_code == 200
    assert detail.json()["data"]["processing"]["status"] == "processing"


def test_lead_detail_not_found(client):
    response = client.get(f"{API}/monitoring/leads/999", params={"source": "apollo"})

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Lead not found"}


def test_query_validation_errors_are_400(client):
    assert client.get(f"{API}/monitoring/leads", params={"limit": 0}).status_code == 400
    assert client.get(f"{API}/monitoring/leads/7").status_code == 400
    assert client.get(f"{API}/monitoring/leads", params={"status": "stuck"}).status_code == 400


def test_sync_check(client, make_lead):
    make_lead(source="apollo", email="synced@example.com", instantly_synced=True)

    response = client.post(f"{API}/sync/check", json={"emails": ["synced@example.com", "missing@example.com"]})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["synced@example.com"]["overallSynced"] is True
    assert data["missing@example.com"]["lead_source"] is None
    assert client.post(f"{API}/sync/check", json={"emails": []}).status_code == 400


def test_dashboard_and_costs(client, make_usage):
    make_usage(total_cost=1.25)

    dashboard = client.get(f"{API}/monitoring/dashboard", params={"timeRange": "7d"})
    costs = client.get(f"{API}/monitoring/costs", params={"timeRange": "7d", "service": "perplexity"})

    assert dashboard.status_code == 200
    assert set(dashboard.json()["data"]) >= {"health", "executions", "leads", "errors", "api_usage", "recent_activity"}
    assert dashboard.json()["data"]["time_range"] == "7d"
    assert costs.status_code == 200
    assert costs.json()["data"]["summary"]["total_cost"] == 1.25
    assert costs.json()["data"]["breakdowns"]["by_service"][0]["percentage"] == 100


def test_workflow_details(client, make_execution):
    make_execution(workflow_name="LeadGenOS (LinkedIn)")

    response = client.get(f"{API}/monitoring/workflows/LeadGenOS (LinkedIn)")

    assert response.status_code == 200
    assert response.json()["data"]["executions"]["total"] == 1


def test_unexpected_errors_become_500(app):
    def _broken():
        raise RuntimeError("pool exhausted")

    app.dependency_overrides[get_sync_service] = _broken
    client = TestClient(app, raise_server_exceptions=False)

    response = client.post(f"{API}/sync/check", json={"emails": ["a@example.com"]})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Internal server error"
