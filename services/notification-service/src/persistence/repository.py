"""Ledger data access helpers."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .models import AlertCooldown, NotifiedMilestone


def _to_storage(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _from_storage(stored: datetime) -> datetime:
    return stored.replace(tzinfo=timezone.utc)


class LedgerRepository:
    """Thin repository that encapsulates ledger persistence operations."""

    def __init__(self, db: Session):
        self._db = db

    def get_last_alert(self, budget_id: str) -> datetime | None:
        record = self._db.get(AlertCooldown, budget_id)
        if record is None:
            return None
        return _from_storage(record.last_alert_at)

    def stamp_alert(self, budget_id: str, moment: datetime) -> AlertCooldown:
        record = self._db.get(AlertCooldown, budget_id)
        if record is None:
            record = AlertCooldown(budget_id=budget_id, last_alert_at=_to_storage(moment))
        else:
            record.last_alert_at = _to_storage(moment)
        self._db.add(record)
        self._db.commit()
        return record

    def clear_alert(self, budget_id: str) -> None:
        self._db.execute(delete(AlertCooldown).where(AlertCooldown.budget_id == budget_id))
        self._db.commit()

    def notified_milestones(self, goal_id: str) -> frozenset[int]:
        rows = self._db.scalars(select(NotifiedMilestone.milestone).where(NotifiedMilestone.goal_id == goal_id))
        return frozenset(rows)

    def add_milestone(self, goal_id: str, milestone: int, moment: datetime) -> None:
        if self._db.get(NotifiedMilestone, (goal_id, milestone)) is not None:
            return
        self._db.add(NotifiedMilestone(goal_id=goal_id, milestone=milestone, notified_at=_to_storage(moment)))
        self._db.commit()

    def clear_milestones(self, goal_id: str) -> None:
        self._db.execute(delete(NotifiedMilestone).where(NotifiedMilestone.goal_id == goal_id))
        self._db.commit()
