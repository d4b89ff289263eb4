from __future__ import annotations

import leadops.core.startup as startup_module


def test_unreachable_database_only_warns(monkeypatch, config, caplog):
    monkeypatch.setattr(startup_module, "get_config", lambda: config)
    monkeypatch.setattr(startup_module, "verify_database_connection", lambda: False)

    assert startup_module.validate_startup_config() is False
    assert any(record.getMessage() == "startup.database.unreachable" for record in caplog.records)


def test_bootstrap_creates_tables_when_database_answers(monkeypatch, config):
    calls = []
    monkeypatch.setattr(startup_module, "configure_logging", lambda: calls.append("logging"))
    monkeypatch.setattr(startup_module, "get_config", lambda: config)
    monkeypatch.setattr(startup_module, "verify_database_connection", lambda: True)
    monkeypatch.setattr(startup_module, "init_db", lambda: calls.append("init_db"))

    startup_module.bootstrap()

    assert calls == ["logging", "init_db"]


def test_bootstrap_skips_tables_when_database_is_down(monkeypatch, config):
    calls = []
    monkeypatch.setattr(startup_module, "configure_logging", lambda: None)
    monkeypatch.setattr(startup_module, "get_config", lambda: config)
    monkeypatch.setattr(startup_module, "verify_database_connection", lambda: False)
    monkeypatch.setattr(startup_module, "init_db", lambda: calls.append("init_db"))

    startup_module.bootstrap()

    assert calls == []
