"""
Shared utilities for the notification service.

This package contains code used by the service and its host integration:
- service_settings: Environment-driven configuration for providers, sinks and ledgers
- observability: Telemetry, logging, and privacy utilities
"""

from .service_settings import (
    REQUIRED_EXPO_ENV_VARS,
    REQUIRED_SUPABASE_ENV_VARS,
    SUPPORTED_DATA_PROVIDERS,
    SUPPORTED_SINKS,
    ExpoConfig,
    ServiceSettings,
    ServiceSettingsError,
    SupabaseConfig,
    load_service_settings,
)

__all__ = [
    "REQUIRED_EXPO_ENV_VARS",
    "REQUIRED_SUPABASE_ENV_VARS",
    "SUPPORTED_DATA_PROVIDERS",
    "SUPPORTED_SINKS",
    "ExpoConfig",
    "ServiceSettings",
    "ServiceSettingsError",
    "SupabaseConfig",
    "load_service_settings",
]
