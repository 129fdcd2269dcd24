"""
Unit tests for structured JSON logging.
"""

import json
import logging

from mongosession.middleware.request_id import request_id_var
from mongosession.telemetry.service import JSONFormatter, TelemetryService, initialize_telemetry, get_telemetry_service


def _record(message="Session saved", extra_data=None, level=logging.INFO):
    record = logging.LogRecord(
        name="mongosession.session.mongo_record_store",
        level=level,
        pathname=__file__,
        lineno=42,
        msg=message,
        args=(),
        exc_info=None,
    )
    if extra_data is not None:
        record.extra_data = extra_data
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_formats_core_fields(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["message"] == "Session saved"
        assert data["level"] == "INFO"
        assert data["logger"] == "mongosession.session.mongo_record_store"
        assert data["timestamp"].endswith("Z")
        assert data["line"] == 42

    def test_merges_extra_data(self):
        data = json.loads(JSONFormatter().format(_record(extra_data={"session_id": "65f1c0ff..."})))

        assert data["session_id"] == "65f1c0ff..."

    def test_includes_current_request_id(self):
        token = request_id_var.set("req-abc")
        try:
            data = json.loads(JSONFormatter().format(_record()))
        finally:
            request_id_var.reset(token)

        assert data["request_id"] == "req-abc"

    def test_non_json_values_are_stringified(self):
        data = json.loads(JSONFormatter().format(_record(extra_data={"obj": object()})))

        assert data["obj"].startswith("<object object")


class TestTelemetryService:
    """Tests for TelemetryService setup."""

    def test_installs_single_json_handler_at_configured_level(self):
        class _Settings:
            log_level = "WARNING"

        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            TelemetryService(_Settings())
            TelemetryService(_Settings())

            assert root.level == logging.WARNING
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_initialize_telemetry_sets_global_service(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            service = initialize_telemetry()
            assert get_telemetry_service() is service
            assert service.get_logger("x").name == "x"
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
