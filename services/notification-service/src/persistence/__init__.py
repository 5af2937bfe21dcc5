"""Persistence primitives for the notification service's alert ledgers."""

from .database import (
    DB_URL_ENV_VAR,
    DEFAULT_DB_FILENAME,
    DEFAULT_DB_PATH,
    create_ledger_engine,
    get_database_url,
    get_engine,
    get_session_factory,
    init_db,
)
from .models import AlertCooldown, Base, NotifiedMilestone
from .repository import LedgerRepository

__all__ = [
    "AlertCooldown",
    "Base",
    "DB_URL_ENV_VAR",
    "DEFAULT_DB_FILENAME",
    "DEFAULT_DB_PATH",
    "LedgerRepository",
    "NotifiedMilestone",
    "create_ledger_engine",
    "get_database_url",
    "get_engine",
    "get_session_factory",
    "init_db",
]
