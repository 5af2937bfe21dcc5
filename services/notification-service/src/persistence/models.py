"""SQLAlchemy models for the monitors' alert ledgers."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class AlertCooldown(Base):
    """Last time a budget (or category) alert was dispatched."""

    __tablename__ = "alert_cooldowns"

    budget_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Stored as naive UTC; SQLite drops offsets.
    last_alert_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class NotifiedMilestone(Base):
    """A (goal, milestone) pair that has already produced a notification."""

    __tablename__ = "notified_milestones"

    goal_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    milestone: Mapped[int] = mapped_column(Integer, primary_key=True)
    notified_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
