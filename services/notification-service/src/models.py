from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

TransactionType = Literal["income", "expense"]
BudgetPeriod = Literal["daily", "weekly", "monthly", "yearly"]

DEFAULT_ALERT_THRESHOLD = 80.0
MILESTONES = (25, 50, 75, 100)


class NotificationType(str, Enum):
    """Value of `data["type"]`; the mobile client routes notification taps on it."""

    BUDGET_ALERT = "budget_alert"
    SAVING_GOAL = "saving_goal"
    SAVING_GOAL_COMPLETED = "saving_goal_completed"
    SAVING_GOAL_MOTIVATION = "saving_goal_motivation"
    TRANSACTION_REMINDER = "transaction_reminder"
    DAILY_REVIEW = "daily_review"
    WEEKLY_SUMMARY = "weekly_summary"
    WEEKLY_REVIEW_TRIGGER = "weekly_review_trigger"
    CHALLENGE_REMINDER = "challenge_reminder"
    CHALLENGE_COMPLETION = "challenge_completion"
    ACCOUNT_UPDATE = "account_update"


class BudgetAlertLevel(str, Enum):
    EXCEEDED = "exceeded"
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Budget:
    id: str
    user_id: str
    category_id: str
    amount: float
    period: BudgetPeriod | None = None


@dataclass
class Category:
    id: str
    name: str
    type: TransactionType = "expense"


@dataclass
class SavingGoal:
    id: str
    user_id: str
    name: str
    target_amount: float
    current_amount: float
    target_date: str | None = None
    is_completed: bool = False
    updated_at: str | None = None


@dataclass
class Transaction:
    id: str
    user_id: str
    amount: float
    type: TransactionType
    # ISO-8601 timestamp of when the money moved (not when the row was created)
    date: str
    category_id: str | None = None


@dataclass
class UserSettings:
    """
    Per-user notification preferences.

    A user without a settings row is treated as `UserSettings.defaults()`:
    everything on, 80% budget threshold.
    """

    notification_enabled: bool = True
    budget_alert_threshold: float = DEFAULT_ALERT_THRESHOLD
    daily_reminder_enabled: bool = True
    weekly_summary_enabled: bool = True
    saving_goal_alerts: bool = True
    transaction_reminders: bool = True

    @classmethod
    def defaults(cls) -> "UserSettings":
        return cls()

    @property
    def effective_threshold(self) -> float:
        threshold = self.budget_alert_threshold
        if threshold is None or threshold <= 0:
            return DEFAULT_ALERT_THRESHOLD
        return float(threshold)


@dataclass
class BudgetStatus:
    id: str
    category_name: str
    amount: float
    spent: float
    percentage: float
    remaining_amount: float
    is_over_threshold: bool
    should_alert: bool


@dataclass
class SavingGoalProgress:
    id: str
    name: str
    target_amount: float
    current_amount: float
    progress_percentage: float
    milestone_reached: int
    should_notify: bool = False


@dataclass
class ProgressSummary:
    total_goals: int = 0
    completed_goals: int = 0
    total_target: float = 0.0
    total_current: float = 0.0
    overall_progress_pct: float = 0.0


@dataclass
class NotificationPayload:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def notification_type(self) -> str | None:
        return self.data.get("type")


@dataclass
class WeeklyTotals:
    transaction_count: int
    total_expense: float
    total_income: float
