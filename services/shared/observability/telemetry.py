"""
Telemetry bootstrap utilities for the notification service.

`setup_telemetry` wires JSON logging and, when `ENABLE_TELEMETRY` is set,
OpenTelemetry tracing with FastAPI/httpx instrumentation. Every log record is
stamped with the inbound request ID and, while a scheduled check runs, the
monitor name; `monitor_check` also opens a span around that check.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Iterator
from uuid import uuid4

from fastapi import FastAPI, Request
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from pythonjsonlogger import jsonlogger

CORRELATION_ID_HEADER = "x-request-id"
DEFAULT_OTLP_ENDPOINT = "http://localhost:4318/v1/traces"
LOG_FIELDS = (
    "asctime",
    "levelname",
    "name",
    "message",
    "service_name",
    "request_id",
    "monitor",
    "trace_id",
    "span_id",
)

RequestContextToken = Token

_request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_monitor_ctx_var: ContextVar[str | None] = ContextVar("monitor", default=None)
_logging_configured = False
_httpx_instrumented = False


@dataclass(frozen=True)
class TelemetryConfig:
    service_name: str
    traces_enabled: bool = False
    console_export: bool = False
    otlp_endpoint: str = DEFAULT_OTLP_ENDPOINT
    log_level: str = "INFO"


def load_telemetry_config(service_name: str) -> TelemetryConfig:
    return TelemetryConfig(
        service_name=os.getenv("OTEL_SERVICE_NAME", service_name),
        traces_enabled=_parse_bool(os.getenv("ENABLE_TELEMETRY", "false")),
        console_export=_parse_bool(os.getenv("OTEL_CONSOLE_EXPORT", "false")),
        otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def setup_telemetry(app: FastAPI, service_name: str) -> TelemetryConfig:
    """
    Configure logging (always) and tracing (opt-in) for the provided FastAPI app.

    Args:
        app: FastAPI app instance that should emit spans/logs.
        service_name: Logical service identifier used for log records and OTLP resources.
    """

    config = load_telemetry_config(service_name)
    _configure_logging(config)

    if config.traces_enabled:
        _configure_tracing(config)
        FastAPIInstrumentor.instrument_app(app)
        _instrument_httpx()
        LoggingInstrumentor().instrument(set_logging_format=False)
    return config


def ensure_request_id(request: Request | None, header_name: str = CORRELATION_ID_HEADER) -> str:
    """Return the inbound x-request-id (or one already set on the request), else a new UUID4."""

    if request is not None:
        existing = request.headers.get(header_name) or getattr(request.state, "request_id", None)
        if existing:
            request.state.request_id = existing
            return existing

    request_id = os.getenv("REQUEST_ID_PREFIX", "") + str(uuid4())
    if request is not None:
        request.state.request_id = request_id
    return request_id


def bind_request_context(request_id: str | None) -> RequestContextToken:
    return _request_id_ctx_var.set(request_id)


def reset_request_context(token: RequestContextToken | None) -> None:
    if token is not None:
        _request_id_ctx_var.reset(token)


@contextmanager
def monitor_check(monitor_name: str) -> Iterator[None]:
    """
    Scope one scheduled monitor check.

    Log records emitted inside carry `monitor`; with tracing enabled the check is
    recorded as a `monitor.check` span.
    """

    token = _monitor_ctx_var.set(monitor_name)
    try:
        with trace.get_tracer(__name__).start_as_current_span(
            "monitor.check", attributes={"monitor.name": monitor_name}
        ):
            yield
    finally:
        _monitor_ctx_var.reset(token)


def current_monitor() -> str | None:
    return _monitor_ctx_var.get()


def _configure_logging(config: TelemetryConfig) -> None:
    global _logging_configured
    if _logging_configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(" ".join(f"%({field})s" for field in LOG_FIELDS)))
    handler.addFilter(ContextLogFilter(config.service_name, config.traces_enabled))

    logging.basicConfig(level=config.log_level, handlers=[handler], force=True)
    _logging_configured = True


def _configure_tracing(config: TelemetryConfig) -> None:
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        return

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: config.service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_endpoint)))
    if config.console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)


def _instrument_httpx() -> None:
    global _httpx_instrumented
    if not _httpx_instrumented:
        HTTPXClientInstrumentor().instrument()
        _httpx_instrumented = True


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class ContextLogFilter(logging.Filter):
    """Stamps service, request, monitor and (when tracing) span identifiers on each record."""

    def __init__(self, service_name: str, traces_enabled: bool) -> None:
        super().__init__()
        self._service_name = service_name
        self._traces_enabled = traces_enabled

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self._service_name
        record.request_id = _request_id_ctx_var.get()
        record.monitor = _monitor_ctx_var.get()
        record.trace_id = None
        record.span_id = None

        if self._traces_enabled:
            span_context = trace.get_current_span().get_span_context()
            if span_context.is_valid:
                record.trace_id = format(span_context.trace_id, "032x")
                record.span_id = format(span_context.span_id, "016x")
        return True
