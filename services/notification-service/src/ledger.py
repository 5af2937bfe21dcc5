"""
Per-monitor memory of what was already alerted.

`CooldownLedger` maps a budget (or category) id to the last time an alert went
out; `MilestoneLedger` maps a goal id to the milestones already notified. Both
only grow except through an explicit `reset`. The in-memory ledgers are the
default; the SQL ledgers keep the same state across restarts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, FrozenSet, Optional, Protocol, Set, runtime_checkable

from sqlalchemy.orm import Session

from .persistence.repository import LedgerRepository

SessionFactory = Callable[[], Session]


@runtime_checkable
class CooldownLedger(Protocol):
    def get(self, key: str) -> Optional[datetime]:
        ...

    def stamp(self, key: str, moment: datetime) -> None:
        ...

    def reset(self, key: str) -> None:
        ...


@runtime_checkable
class MilestoneLedger(Protocol):
    def notified(self, goal_id: str) -> FrozenSet[int]:
        ...

    def add(self, goal_id: str, milestone: int, moment: datetime) -> None:
        ...

    def reset(self, goal_id: str) -> None:
        ...


class InMemoryCooldownLedger:
    def __init__(self) -> None:
        self._last_alert: Dict[str, datetime] = {}

    def get(self, key: str) -> Optional[datetime]:
        return self._last_alert.get(key)

    def stamp(self, key: str, moment: datetime) -> None:
        self._last_alert[key] = moment

    def reset(self, key: str) -> None:
        self._last_alert.pop(key, None)


class InMemoryMilestoneLedger:
    def __init__(self) -> None:
        self._notified: Dict[str, Set[int]] = {}

    def notified(self, goal_id: str) -> FrozenSet[int]:
        return frozenset(self._notified.get(goal_id, ()))

    def add(self, goal_id: str, milestone: int, moment: datetime) -> None:
        self._notified.setdefault(goal_id, set()).add(milestone)

    def reset(self, goal_id: str) -> None:
        self._notified.pop(goal_id, None)


class SqlCooldownLedger:
    """Cooldown ledger stored in the `alert_cooldowns` table. Reads come back in UTC."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[datetime]:
        with self._session_factory() as session:
            return LedgerRepository(session).get_last_alert(key)

    def stamp(self, key: str, moment: datetime) -> None:
        with self._session_factory() as session:
            LedgerRepository(session).stamp_alert(key, moment)

    def reset(self, key: str) -> None:
        with self._session_factory() as session:
            LedgerRepository(session).clear_alert(key)


class SqlMilestoneLedger:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def notified(self, goal_id: str) -> FrozenSet[int]:
        with self._session_factory() as session:
            return LedgerRepository(session).notified_milestones(goal_id)

    def add(self, goal_id: str, milestone: int, moment: datetime) -> None:
        with self._session_factory() as session:
            LedgerRepository(session).add_milestone(goal_id, milestone, moment)

    def reset(self, goal_id: str) -> None:
        with self._session_factory() as session:
            LedgerRepository(session).clear_milestones(goal_id)
