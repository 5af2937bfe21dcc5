"""Helpers that keep user identifiers and notification contents out of log output."""

import hashlib
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "[REDACTED]"
USER_FINGERPRINT_LENGTH = 12


def hash_payload(value: str | bytes) -> str:
    """Stable SHA-256 hex digest of an identifier; strings are hashed as UTF-8."""

    raw = value if isinstance(value, bytes) else value.encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def user_fingerprint(user_id: str | None) -> str | None:
    """Short, stable stand-in for a user id so log lines can be correlated per user."""

    if not user_id:
        return None
    return hash_payload(user_id)[:USER_FINGERPRINT_LENGTH]


def redact_fields(payload: Mapping[str, Any], allowed_keys: Iterable[str]) -> dict[str, Any]:
    """
    Copy of a notification's data mapping where only `allowed_keys` keep their values.

    Titles, amounts and goal names stay out of the logs; the routing `type` is
    usually the only key worth keeping.
    """

    keep = frozenset(allowed_keys)
    return {key: value if key in keep else REDACTED for key, value in payload.items()}
