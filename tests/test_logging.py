"""
Log formatter tests — domain context in readable and JSON output.
"""

import json
import logging

from cith.middleware.logging_config import JSONFormatter, ReadableFormatter


def _record(**extra):
    record = logging.LogRecord("cith.services.report_lifecycle", logging.INFO, __file__, 1,
                               "Report %s approved", (7,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestReadableFormatter:
    def test_carries_actor_and_report(self):
        line = ReadableFormatter().format(
            _record(actor_id=3, report_id=7, event_type="report_approve_area", request_id=""),
        )
        assert "Report 7 approved (report_approve_area) [actor=3 report=7]" in line
        assert "req=" not in line

    def test_no_context_block_without_extras(self):
        line = ReadableFormatter().format(_record())
        assert line.endswith("Report 7 approved")

    def test_deny_reason_shown(self):
        line = ReadableFormatter().format(_record(actor_id=5, deny_reason="scope"))
        assert "[actor=5 deny=scope]" in line


class TestJSONFormatter:
    def test_extras_in_payload(self):
        entry = json.loads(JSONFormatter().format(_record(actor_id=3, report_id=7)))
        assert entry["message"] == "Report 7 approved"
        assert entry["actor_id"] == 3
        assert entry["report_id"] == 7
        assert "deny_reason" not in entry
