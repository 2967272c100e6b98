"""
Unit tests for the telemetry service.

Covers the JSON log formatter, session correlation through the
session_ref context variable, audit events and the no-op span used when
tracing is disabled.
"""

import json
import logging
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from telemetry.service import (
    JSONFormatter,
    TelemetryService,
    _NoOpSpanContextManager,
    get_telemetry_service,
    initialize_telemetry,
    reset_telemetry,
    session_ref,
    session_ref_var,
)


@pytest.fixture(autouse=True)
def restore_logging():
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)
    reset_telemetry()


def _record(message="hello", extra_data=None):
    record = logging.LogRecord(
        name="session.manager",
        level=logging.INFO,
        pathname=__file__,
        lineno=42,
        msg=message,
        args=(),
        exc_info=None,
    )
    if extra_data is not None:
        record.extra_data = extra_data
    return record


class TestSessionRef:

    def test_truncates_identifier(self):
        assert session_ref("3f2b8c1a-9d4e-4f6a-b7c8-0123456789ab") == "3f2b8c1a"

    def test_empty_identifier(self):
        assert session_ref(None) == ""
        assert session_ref("") == ""


class TestJSONFormatter:

    def test_formats_as_json(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "session.manager"
        assert data["line"] == 42
        assert data["timestamp"].endswith("Z")
        assert data["session_ref"] == ""

    def test_includes_extra_data(self):
        data = json.loads(JSONFormatter().format(_record(extra_data={"reclaimed": 3})))

        assert data["reclaimed"] == 3

    def test_includes_session_ref_from_context(self):
        token = session_ref_var.set("3f2b8c1a")
        try:
            data = json.loads(JSONFormatter().format(_record()))
        finally:
            session_ref_var.reset(token)

        assert data["session_ref"] == "3f2b8c1a"

    def test_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestTelemetryService:

    def test_configures_root_logger(self):
        service = TelemetryService(SimpleNamespace(log_level="DEBUG", otel_endpoint=None))

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, JSONFormatter)
        assert service.tracer is None

    def test_audit_event_logs_only_session_reference(self):
        service = TelemetryService()
        service._logger = MagicMock()

        service.log_audit_event(
            event_type="session_rotation",
            action="regenerate",
            session_id="3f2b8c1a-9d4e-4f6a-b7c8-0123456789ab",
            details={"deleted_old": True},
        )

        extra_data = service._logger.info.call_args.kwargs["extra"]["extra_data"]
        assert extra_data == {
            "audit_event": True,
            "event_type": "session_rotation",
            "action": "regenerate",
            "resource_type": "session",
            "resource_ref": "3f2b8c1a",
            "details": {"deleted_old": True},
        }

    def test_record_metric(self):
        service = TelemetryService()
        service._logger = MagicMock()

        service.record_metric("session.gc.reclaimed", 2, tags={"store": "FileSessionStore"})

        extra_data = service._logger.debug.call_args.kwargs["extra"]["extra_data"]
        assert extra_data == {
            "metric_name": "session.gc.reclaimed",
            "metric_value": 2,
            "tags": {"store": "FileSessionStore"},
        }

    def test_span_is_noop_without_tracer(self):
        span = TelemetryService().create_span("session.gc", {"store": "memory"})

        assert isinstance(span, _NoOpSpanContextManager)
        with span as active:
            active.set_attribute("reclaimed", 1)

    def test_span_with_tracer_sets_attributes(self):
        service = TelemetryService()
        service.tracer = MagicMock()
        inner = MagicMock()
        service.tracer.start_as_current_span.return_value.__enter__.return_value = inner

        with service.create_span("session.gc", {"store": "memory"}):
            pass

        service.tracer.start_as_current_span.assert_called_once_with("session.gc")
        inner.set_attribute.assert_called_once_with("store", "memory")


class TestGlobalTelemetry:

    def test_not_initialized_by_default(self):
        assert get_telemetry_service() is None

    def test_initialize_and_reset(self):
        service = initialize_telemetry()

        assert get_telemetry_service() is service

        reset_telemetry()
        assert get_telemetry_service() is None
