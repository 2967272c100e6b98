"""
Telemetry service for structured logging and observability.

This module provides structured JSON logging correlated by session,
optional OpenTelemetry integration for tracing, and custom metrics
recording.
"""

import logging
import json
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional, Dict

# Short, non-secret reference to the session bound to the current request.
# Set by the session middleware; the full identifier is a bearer credential
# and never goes to the logs.
session_ref_var: ContextVar[str] = ContextVar("session_ref", default="")

SESSION_REF_LENGTH = 8


def session_ref(session_id: Optional[str]) -> str:
    """Return the loggable reference for a session identifier."""
    if not session_id:
        return ""
    return session_id[:SESSION_REF_LENGTH]


class JSONFormatter(logging.Formatter):
    """
    Custom log formatter that outputs logs in JSON format.

    Each log entry contains:
    - timestamp: ISO 8601 formatted UTC timestamp
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - message: The log message
    - logger: Name of the logger that produced the entry
    - session_ref: Short reference of the session bound to the request

    Additional fields can be included via the 'extra_data' attribute
    on the log record.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record as a JSON string.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted string containing the log entry
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "session_ref": session_ref_var.get(""),
        }

        if record.module:
            log_data["module"] = record.module
        if record.funcName and record.funcName != "<module>":
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        if hasattr(record, "extra_data") and record.extra_data:
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_trace"] = record.stack_info

        return json.dumps(log_data, default=str)


class TelemetryService:
    """
    Centralized telemetry service for logging, metrics, and tracing.

    This service provides:
    - Structured JSON logging with session correlation
    - OpenTelemetry integration for distributed tracing
    - Custom metrics recording (GC reclamation, store failures)
    - Audit logging for session rotation and destruction
    """

    def __init__(self, settings: Optional[Any] = None):
        """
        Initialize the telemetry service.

        Args:
            settings: Application settings containing log_level, otel_endpoint,
                     and otel_service_name configuration
        """
        self.settings = settings
        self.tracer = None
        self._logger = None
        self._setup_logging()
        self._setup_tracing()

    def _setup_logging(self) -> None:
        """
        Configure structured JSON logging on the root logger.
        """
        log_level_str = "INFO"
        if self.settings and hasattr(self.settings, "log_level"):
            log_level_str = self.settings.log_level

        log_level = getattr(logging, log_level_str.upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        # Remove existing handlers to avoid duplicate logs
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(log_level)
        stdout_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(stdout_handler)

        self._logger = logging.getLogger("telemetry")
        self._logger.info("Telemetry service initialized", extra={
            "extra_data": {"log_level": log_level_str}
        })

    def _setup_tracing(self) -> None:
        """
        Configure OpenTelemetry tracing when an OTLP endpoint is set.
        """
        if not self.settings:
            return

        otel_endpoint = getattr(self.settings, "otel_endpoint", None)
        if not otel_endpoint:
            self._logger.debug("OpenTelemetry endpoint not configured, tracing disabled")
            return

        try:
            from opentelemetry import trace
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
            from opentelemetry.sdk.resources import Resource, SERVICE_NAME

            service_name = getattr(self.settings, "otel_service_name", "session-service")

            provider = TracerProvider(resource=Resource(attributes={
                SERVICE_NAME: service_name
            }))
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_endpoint)))
            trace.set_tracer_provider(provider)

            self.tracer = trace.get_tracer(service_name)

            self._logger.info("OpenTelemetry tracing configured", extra={
                "extra_data": {
                    "otel_endpoint": otel_endpoint,
                    "service_name": service_name
                }
            })
        except ImportError as e:
            self._logger.warning(
                "OpenTelemetry exporter not installed, tracing disabled",
                extra={"extra_data": {"error": str(e)}}
            )

    def log_audit_event(
        self,
        event_type: str,
        action: str,
        session_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log an audit event for a security-relevant session operation.

        Args:
            event_type: Type of audit event (e.g., "session_rotation")
            action: Action being performed (e.g., "regenerate", "destroy")
            session_id: Identifier of the affected session; only its
                short reference is logged
            details: Additional details about the event
        """
        audit_data = {
            "audit_event": True,
            "event_type": event_type,
            "action": action,
            "resource_type": "session",
            "resource_ref": session_ref(session_id),
        }

        if details:
            audit_data["details"] = details

        self._logger.info(
            f"Audit: {event_type} - {action} on session",
            extra={"extra_data": audit_data}
        )

    def record_metric(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Record a custom metric.

        Args:
            name: Name of the metric
            value: Metric value
            tags: Optional tags for metric dimensions
        """
        metric_data = {
            "metric_name": name,
            "metric_value": value,
        }

        if tags:
            metric_data["tags"] = tags

        self._logger.debug(
            f"Metric: {name}={value}",
            extra={"extra_data": metric_data}
        )

    def create_span(self, name: str, attributes: Optional[Dict[str, Any]] = None):
        """
        Create an OpenTelemetry span for tracing.

        Args:
            name: Name of the span
            attributes: Optional attributes to add to the span

        Returns:
            OpenTelemetry span context manager, or a no-op context manager
            if tracing is not configured
        """
        if self.tracer:
            span = self.tracer.start_as_current_span(name)
            if attributes:
                return _SpanContextManager(span, attributes)
            return span
        return _NoOpSpanContextManager()


class _SpanContextManager:
    """
    Context manager wrapper that adds attributes to a span after entering.
    """

    def __init__(self, span_context, attributes: Dict[str, Any]):
        self._span_context = span_context
        self._attributes = attributes
        self._span = None

    def __enter__(self):
        self._span = self._span_context.__enter__()
        if self._span and hasattr(self._span, 'set_attribute'):
            for key, value in self._attributes.items():
                self._span.set_attribute(key, value)
        return self._span

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self._span_context.__exit__(exc_type, exc_val, exc_tb)


class _NoOpSpanContextManager:
    """
    No-op context manager for when tracing is not configured.
    """

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key: str, value: Any) -> None:
        pass


# Global telemetry service instance
_telemetry_service: Optional[TelemetryService] = None


def get_telemetry_service() -> Optional[TelemetryService]:
    """
    Get the global telemetry service instance.

    Returns:
        The telemetry service instance, or None if not initialized
    """
    return _telemetry_service


def initialize_telemetry(settings: Optional[Any] = None) -> TelemetryService:
    """
    Initialize the global telemetry service.

    Args:
        settings: Application settings for configuration

    Returns:
        The initialized telemetry service
    """
    global _telemetry_service
    _telemetry_service = TelemetryService(settings)
    return _telemetry_service


def reset_telemetry() -> None:
    """Drop the global telemetry service (used by tests)."""
    global _telemetry_service
    _telemetry_service = None
