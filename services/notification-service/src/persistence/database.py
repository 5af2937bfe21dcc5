"""Database configuration helpers for the persisted alert ledgers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.orm import Session, sessionmaker

DEFAULT_DB_FILENAME = "notification_ledgers.db"
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "data" / DEFAULT_DB_FILENAME
DB_URL_ENV_VAR = "NOTIFICATION_LEDGER_DB_URL"

_engine: Engine | None = None
_session_factory: Optional[sessionmaker[Session]] = None


def get_database_url() -> str:
    """Return the configured database URL (defaults to a SQLite file)."""
    env_url = os.getenv(DB_URL_ENV_VAR)
    if env_url:
        return env_url
    return f"sqlite:///{DEFAULT_DB_PATH}"


def _prepare_sqlite_path(url: URL) -> None:
    """Ensure on-disk SQLite paths exist before engine creation."""
    database = url.database
    if not database or database == ":memory:":
        return

    db_path = Path(database)
    if not db_path.is_absolute():
        db_path = (Path.cwd() / db_path).resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)


def create_ledger_engine(database_url: str) -> Engine:
    parsed_url = make_url(database_url)
    if parsed_url.drivername.startswith("sqlite"):
        _prepare_sqlite_path(parsed_url)
        connect_args = {"check_same_thread": False}
    else:
        connect_args = {}
    return create_engine(database_url, future=True, connect_args=connect_args)


def get_engine(database_url: str | None = None) -> Engine:
    """
    Create (or return) the global SQLAlchemy engine.

    Passing a URL different from the current engine's replaces it, which is
    how settings loaded at startup take precedence over the env default.
    """
    global _engine, _session_factory
    wanted = database_url or get_database_url()
    if _engine is None or str(_engine.url) != str(make_url(wanted)):
        if _engine is not None:
            _engine.dispose()
        _engine = create_ledger_engine(wanted)
        _session_factory = None
    return _engine


def get_session_factory(database_url: str | None = None) -> sessionmaker[Session]:
    global _session_factory
    engine = get_engine(database_url)
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            future=True,
        )
    return _session_factory


def init_db(database_url: str | None = None) -> None:
    """Create tables if they are missing."""
    from . import models  # noqa: WPS433 (import inside function)

    models.Base.metadata.create_all(bind=get_engine(database_url))
