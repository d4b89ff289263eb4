from __future__ import annotations

import json
import logging

from leadops.core.logging_config import JsonFormatter


def test_extra_fields_are_emitted():
    record = logging.makeLogRecord(
        {"name": "leadops.test", "levelname": "INFO", "msg": "retry.requested", "event": "retry.requested", "lead_count": 3}
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "retry.requested"
    assert payload["event"] == "retry.requested"
    assert payload["lead_count"] == 3
    assert payload["logger"] == "leadops.test"
