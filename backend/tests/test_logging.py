"""
SafeWave - Logging Tests

Tests for log masking, formatters and context propagation.

Run with: pytest tests/test_logging.py -v
"""

import json
import logging

from fastapi.testclient import TestClient

from safewave.core.logging import (
    HumanReadableFormatter,
    LogContext,
    StructuredFormatter,
    alert_id_var,
    correlation_id_var,
    mask_sensitive_data,
)


def make_record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("safewave.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestMasking:

    def test_masks_nested_contact_fields(self):
        masked = mask_sensitive_data({
            "phone": "+919876543210",
            "contact": {"email": "asha@example.com", "name": "Asha"},
            "attempt": 2,
        })

        assert masked["phone"] == "***10"
        assert masked["contact"]["email"] == "***om"
        assert masked["contact"]["name"] == "Asha"
        assert masked["attempt"] == 2

    def test_non_string_secret_is_redacted(self):
        assert mask_sensitive_data({"recipients": ["a", "b"]})["recipients"] == "[REDACTED]"


class TestFormatters:

    def test_structured_includes_context_and_masks_data(self):
        with LogContext(correlation_id="req-1", alert_id="0123456789abcdef"):
            line = StructuredFormatter().format(make_record(data={"to": "+15550000001"}))

        entry = json.loads(line)
        assert entry["message"] == "hello"
        assert entry["correlation_id"] == "req-1"
        assert entry["alert_id"] == "01234567"
        assert entry["data"] == {"to": "***01"}

    def test_human_readable_shows_alert(self):
        with LogContext(alert_id="0123456789abcdef"):
            line = HumanReadableFormatter().format(make_record())

        assert "[alert=01234567]" in line
        assert line.endswith("| hello")

    def test_human_readable_shows_request_and_alert(self):
        with LogContext(correlation_id="req-1", alert_id="0123456789abcdef"):
            line = HumanReadableFormatter().format(make_record())

        assert "[req=req-1, alert=01234567]" in line

    def test_structured_without_context(self):
        entry = json.loads(StructuredFormatter().format(make_record(data={"sent": 2})))

        assert "correlation_id" not in entry
        assert "alert_id" not in entry
        assert entry["data"] == {"sent": 2}


class TestLogContext:

    def test_resets_on_exit(self):
        with LogContext(correlation_id="outer"):
            with LogContext(correlation_id="inner", alert_id="a1"):
                assert correlation_id_var.get() == "inner"
            assert correlation_id_var.get() == "outer"
            assert alert_id_var.get() is None
        assert correlation_id_var.get() is None

    def test_request_id_is_echoed(self, client: TestClient):
        response = client.get("/api/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
