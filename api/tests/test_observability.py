"""
Tests for structured logging and the request logging middleware.
"""

import json
import sys
import logging
from unittest.mock import patch

from observability.config import StructuredFormatter


def make_record(message, **extra):
    record = logging.LogRecord("routes.donations", logging.INFO, __file__, 10, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:

    def test_extra_fields_are_top_level(self):
        line = StructuredFormatter().format(make_record("Donation claimed", donation_id="d1", user_id="u1"))

        entry = json.loads(line)
        assert entry["message"] == "Donation claimed"
        assert entry["logger"] == "routes.donations"
        assert entry["level"] == "INFO"
        assert entry["donation_id"] == "d1"
        assert entry["user_id"] == "u1"
        assert "args" not in entry
        assert "trace_id" not in entry

    def test_non_json_values_are_stringified(self):
        entry = json.loads(StructuredFormatter().format(make_record("Ready", balance=object)))
        assert entry["balance"].startswith("<class")

    def test_exception_is_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("services", logging.ERROR, __file__, 1, "failed", (), None)
            record.exc_info = sys.exc_info()

        entry = json.loads(StructuredFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


class TestRequestLogging:

    def test_access_log_line(self, client, services, caplog):
        with caplog.at_level(logging.INFO, logger="observability.middleware"):
            client.get('/api/banners')

        record = next(r for r in caplog.records if r.name == "observability.middleware")
        assert record.getMessage() == "GET /api/banners 200"
        assert record.status_code == 200
        assert record.user_id is None

    def test_health_probe_is_quiet(self, app, client, services, caplog):
        with patch.object(app.health_service, "get_comprehensive_health", return_value={"status": "healthy"}), \
                caplog.at_level(logging.INFO, logger="observability.middleware"):
            client.get('/api/healthz')

        assert not [r for r in caplog.records if r.name == "observability.middleware"]
