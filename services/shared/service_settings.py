"""
Environment-driven configuration for the notification service.

The monitors, the dispatch gateway and the HTTP host all need to agree on which
backend the user data comes from, where notifications are delivered, and whether
alert ledgers survive a restart. Loading and validating those values in one place
keeps the wiring in `main.py` and the tests free of ad-hoc `os.getenv` parsing.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

SUPPORTED_DATA_PROVIDERS = frozenset({"memory", "supabase"})
SUPPORTED_SINKS = frozenset({"memory", "expo"})
REQUIRED_SUPABASE_ENV_VARS = ("SUPABASE_URL", "SUPABASE_ANON_KEY")
REQUIRED_EXPO_ENV_VARS = ("EXPO_PUSH_TOKEN",)
DEFAULT_EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


class ServiceSettingsError(RuntimeError):
    """Raised when service configuration cannot be constructed."""


@dataclass(frozen=True, slots=True)
class SupabaseConfig:
    url: str
    api_key: str


@dataclass(frozen=True, slots=True)
class ExpoConfig:
    push_token: str
    push_url: str = DEFAULT_EXPO_PUSH_URL


@dataclass(frozen=True, slots=True)
class ServiceSettings:
    data_provider: str
    sink: str
    timeout_seconds: float
    persist_ledgers: bool
    ledger_db_url: Optional[str] = None
    supabase: Optional[SupabaseConfig] = None
    expo: Optional[ExpoConfig] = None


def load_service_settings(
    *,
    data_provider_env: str = "NOTIFICATION_DATA_PROVIDER",
    sink_env: str = "NOTIFICATION_SINK",
    timeout_env: str = "NOTIFICATION_PROVIDER_TIMEOUT_SECONDS",
    persist_env: str = "NOTIFICATION_PERSIST_LEDGERS",
    ledger_url_env: str = "NOTIFICATION_LEDGER_DB_URL",
    default_data_provider: str = "memory",
    default_sink: str = "memory",
    default_timeout: float = 15.0,
) -> ServiceSettings:
    """
    Construct ServiceSettings from the process environment.

    Args:
        data_provider_env: Env var selecting where budgets/goals/transactions come from.
        sink_env: Env var selecting the notification sink implementation.
        timeout_env: Env var overriding outbound backend request timeouts.
        persist_env: Env var toggling SQL-backed cooldown/milestone ledgers.
        ledger_url_env: Env var with the SQLAlchemy URL for persisted ledgers.
        default_*: Fallback values when the env var is unset/empty.
    """

    data_provider = _normalize_choice(
        os.getenv(data_provider_env), default_data_provider, SUPPORTED_DATA_PROVIDERS, data_provider_env
    )
    sink = _normalize_choice(os.getenv(sink_env), default_sink, SUPPORTED_SINKS, sink_env)
    timeout_seconds = _parse_float(os.getenv(timeout_env), default_timeout, timeout_env)
    persist_ledgers = _parse_bool(os.getenv(persist_env), False, persist_env)
    ledger_db_url = (os.getenv(ledger_url_env) or "").strip() or None

    supabase_config: Optional[SupabaseConfig] = None
    if data_provider == "supabase":
        supabase_config = _build_supabase_config(data_provider_env)

    expo_config: Optional[ExpoConfig] = None
    if sink == "expo":
        expo_config = _build_expo_config(sink_env)

    return ServiceSettings(
        data_provider=data_provider,
        sink=sink,
        timeout_seconds=timeout_seconds,
        persist_ledgers=persist_ledgers,
        ledger_db_url=ledger_db_url,
        supabase=supabase_config,
        expo=expo_config,
    )


def _normalize_choice(raw_value: Optional[str], default: str, supported: frozenset[str], env_key: str) -> str:
    candidate = (raw_value or "").strip().lower()
    if not candidate:
        candidate = default

    if candidate not in supported:
        raise ServiceSettingsError(f"Unsupported value for {env_key}: '{candidate}'")
    return candidate


def _parse_float(raw_value: Optional[str], default: float, env_key: str) -> float:
    if raw_value is None or raw_value.strip() == "":
        return default

    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ServiceSettingsError(f"{env_key} must be numeric (received '{raw_value}')") from exc

    if value <= 0:
        raise ServiceSettingsError(f"{env_key} must be positive (received '{raw_value}')")
    return value


def _parse_bool(raw_value: Optional[str], default: bool, env_key: str) -> bool:
    if raw_value is None or raw_value.strip() == "":
        return default

    normalized = raw_value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ServiceSettingsError(f"{env_key} must be a boolean flag (received '{raw_value}')")


def _build_supabase_config(data_provider_env: str) -> SupabaseConfig:
    missing = [env_key for env_key in REQUIRED_SUPABASE_ENV_VARS if not os.getenv(env_key)]
    if missing:
        formatted_missing = ", ".join(missing)
        raise ServiceSettingsError(
            f"{data_provider_env}=supabase requires the following env vars: {formatted_missing}"
        )

    # A service-role key lets the monitor read every user's rows; fall back to the anon key.
    api_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.environ["SUPABASE_ANON_KEY"]
    return SupabaseConfig(
        url=os.environ["SUPABASE_URL"].strip().rstrip("/"),
        api_key=api_key.strip(),
    )


def _build_expo_config(sink_env: str) -> ExpoConfig:
    missing = [env_key for env_key in REQUIRED_EXPO_ENV_VARS if not os.getenv(env_key)]
    if missing:
        formatted_missing = ", ".join(missing)
        raise ServiceSettingsError(f"{sink_env}=expo requires the following env vars: {formatted_missing}")

    return ExpoConfig(
        push_token=os.environ["EXPO_PUSH_TOKEN"].strip(),
        push_url=(os.getenv("EXPO_PUSH_URL") or DEFAULT_EXPO_PUSH_URL).strip(),
    )
