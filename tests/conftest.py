from __future__ import annotations

from dataclasses import replace
from itertools import count

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from leadops.core.config import get_config
from leadops.models import ApiUsage, Base, Lead, LeadProcessingStatus, WorkflowError, WorkflowExecution
from leadops.models.base import utcnow

LINKEDIN_HOOK = "https://hooks.example.com/linkedin"
APOLLO_HOOK = "https://hooks.example.com/apollo"


class FakeHttp:
    """Stands in for ``requests.Session``; records posts and replays a canned outcome."""

    def __init__(self, status_code: int = 200, exc: Exception | None = None) -> None:
        self.status_code = status_code
        self.exc = exc
        self.calls: list[dict] = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        response = requests.Response()
        response.status_code = self.status_code
        response.reason = "OK" if self.status_code < 400 else "Bad Gateway"
        return response


@pytest.fixture
def session_factory(tmp_path):
    # File-backed so sessions opened from worker threads see the same data.
    engine = create_engine(f"sqlite:///{tmp_path / 'leadops_test.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def config():
    return replace(
        get_config(),
        ENV="test",
        WORKFLOW_WEBHOOK_LINKEDIN_URL=LINKEDIN_HOOK,
        WORKFLOW_WEBHOOK_APOLLO_URL=APOLLO_HOOK,
    )


@pytest.fixture
def make_lead(db_session):
    seq = count(1)

    def _make(source: str = "apollo", **fields) -> Lead:
        n = next(seq)
        values = {
            "full_name": f"Lead {n}",
            "email": f"lead{n}@example.com",
            "company": "Acme",
            "title": "VP Sales",
            **fields,
        }
        lead = Lead(lead_source=source, **values)
        db_session.add(lead)
        db_session.commit()
        return lead

    return _make


@pytest.fixture
def make_status(db_session):
    def _make(lead: Lead, **fields) -> LeadProcessingStatus:
        row = LeadProcessingStatus(lead_id=lead.id, lead_source=lead.lead_source, **fields)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def make_error(db_session):
    def _make(**fields) -> WorkflowError:
        values = {
            "workflow_name": "LeadGenOS (Apollo)",
            "node_name": "Research",
            "error_type": "timeout",
            "severity": "medium",
            "error_message": "Research step timed out",
            "occurred_at": utcnow(),
            **fields,
        }
        error = WorkflowError(**values)
        db_session.add(error)
        db_session.commit()
        return error

    return _make


@pytest.fixture
def make_execution(db_session):
    def _make(**fields) -> WorkflowExecution:
        values = {"workflow_name": "LeadGenOS (Apollo)", "status": "completed", "started_at": utcnow(), **fields}
        execution = WorkflowExecution(**values)
        db_session.add(execution)
        db_session.commit()
        return execution

    return _make


@pytest.fixture
def make_usage(db_session):
    def _make(**fields) -> ApiUsage:
        values = {
            "model_name": "sonar",
            "api_service": "perplexity",
            "workflow_name": "LeadGenOS (Apollo)",
            "total_tokens": 1000,
            "total_cost": 0.5,
            "called_at": utcnow(),
            **fields,
        }
        usage = ApiUsage(**values)
        db_session.add(usage)
        db_session.commit()
        return usage

    return _make


@pytest.fixture
def fake_http():
    return FakeHttp
