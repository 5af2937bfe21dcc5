"""
Shared observability helpers (telemetry, privacy utilities, etc.).

Service code imports from this package so every log line is JSON, carries the
request/monitor context, and never includes raw user identifiers.
"""

from .privacy import hash_payload, redact_fields, user_fingerprint
from .telemetry import (
    CORRELATION_ID_HEADER,
    ContextLogFilter,
    RequestContextToken,
    TelemetryConfig,
    bind_request_context,
    current_monitor,
    ensure_request_id,
    load_telemetry_config,
    monitor_check,
    reset_request_context,
    setup_telemetry,
)

__all__ = [
    "hash_payload",
    "redact_fields",
    "user_fingerprint",
    "CORRELATION_ID_HEADER",
    "ContextLogFilter",
    "RequestContextToken",
    "TelemetryConfig",
    "bind_request_context",
    "current_monitor",
    "ensure_request_id",
    "load_telemetry_config",
    "monitor_check",
    "reset_request_context",
    "setup_telemetry",
]
