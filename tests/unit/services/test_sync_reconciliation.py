from __future__ import annotations

import logging

from sqlalchemy.exc import OperationalError

from leadops.models.base import utcnow
from leadops.services.sync_service import SyncReconciliationService


def test_apollo_lead_never_reports_heyreach_synced(db_session, make_lead):
    make_lead(source="apollo", email="stale@example.com", heyreach_synced=True, heyreach_synced_at=utcnow())

    status = SyncReconciliationService(db=db_session).check_sync(["stale@example.com"])["stale@example.com"]

    assert status.heyreach.synced is False
    assert status.instantly.synced is False
    assert status.overall_synced is False
    assert status.lead_source == "apollo"


def test_cross_platform_flag_is_logged(db_session, make_lead, caplog):
    make_lead(source="linkedin", email="mixed@example.com", instantly_synced=True)

    with caplog.at_level(logging.WARNING):
        SyncReconciliationService(db=db_session).check_sync(["mixed@example.com"])

    assert any(record.getMessage() == "sync.cross_platform_flag_ignored" for record in caplog.records)


def test_source_platform_flag_is_reported(db_session, make_lead):
    synced_at = utcnow()
    make_lead(source="apollo", email="done@example.com", instantly_synced=True, instantly_synced_at=synced_at)

    payload = SyncReconciliationService(db=db_session).check_sync(["done@example.com"])["done@example.com"].to_dict()

    assert payload["instantly"]["synced"] is True
    assert payload["instantly"]["synced_at"] is not None
    assert payload["heyreach"] == {"synced": False, "synced_at": None}
    assert payload["overallSynced"] is True


def test_matching_ignores_case_and_whitespace_and_keeps_input_keys(db_session, make_lead):
    make_lead(source="linkedin", email="Person@Example.com", heyreach_synced=True)

    result = SyncReconciliationService(db=db_session).check_sync(["  person@example.COM "])

    assert list(result) == ["  person@example.COM "]
    assert result["  person@example.COM "].heyreach.synced is True


def test_unknown_email_gets_empty_status(db_session):
    result = SyncReconciliationService(db=db_session).check_sync(["nobody@example.com"])

    status = result["nobody@example.com"]
    assert status.lead_source is None
    assert status.overall_synced is False


def test_same_email_under_both_sources_fills_each_platform(db_session, make_lead):
    make_lead(source="apollo", email="both@example.com", instantly_synced=True)
    make_lead(source="linkedin", email="both@example.com", heyreach_synced=False)

    status = SyncReconciliationService(db=db_session).check_sync(["both@example.com"])["both@example.com"]

    assert status.instantly.synced is True
    assert status.heyreach.synced is False
    assert status.overall_synced is True


def test_synced_lead_ids_only_reads_source_platform(db_session, make_lead):
    delivered = make_lead(source="apollo", instantly_synced=True)
    wrong_flag = make_lead(source="apollo", heyreach_synced=True)
    untouched = make_lead(source="apollo")

    ids = SyncReconciliationService(db=db_session).synced_lead_ids(
        [untouched.id, wrong_flag.id, delivered.id], "apollo"
    )

    assert ids == [delivered.id]


def test_store_failure_degrades_to_error_per_email(db_session, make_lead, caplog, monkeypatch):
    lead = make_lead(source="apollo", instantly_synced=True)
    service = SyncReconciliationService(db=db_session)

    def _unavailable(*args, **kwargs):
        raise OperationalError("SELECT leads", {}, Exception("db down"))

    monkeypatch.setattr(service.db, "scalars", _unavailable)
    with caplog.at_level(logging.ERROR):
        result = service.check_sync([lead.email, "other@example.com"])

    assert list(result) == [lead.email, "other@example.com"]
    for status in result.values():
        assert status.overall_synced is False
        assert status.error == "Failed to check sync status"
        assert status.to_dict()["error"] == "Failed to check sync status"
    assert any(record.getMessage() == "sync.lookup.failed" for record in caplog.records)
