"""Tests for formatting.py - notification payload builders and defensive number rendering."""

import importlib
import math

import pytest
from src.formatting import (
    budget_alert_level,
    build_budget_alert,
    build_challenge_completion,
    build_challenge_reminder,
    build_goal_motivation,
    build_saving_goal_progress,
    build_weekly_summary,
    format_currency_for_notification,
    format_percentage,
)
from src.models import BudgetAlertLevel, NotificationType, WeeklyTotals


# =============================================================================
# Tests for format_currency_for_notification
# =============================================================================


class TestFormatCurrency:
    @pytest.mark.parametrize("value", [-500, float("nan"), float("inf"), float("-inf"), None, "abc"])
    def test_invalid_or_negative_amounts_render_as_zero(self, value) -> None:
        assert format_currency_for_notification(value) == "0"

    def test_groups_thousands_with_dots(self) -> None:
        assert format_currency_for_notification(1_250_000) == "1.250.000"
        assert format_currency_for_notification(999) == "999"

    def test_rounds_fractions(self) -> None:
        assert format_currency_for_notification(1499.6) == "1.500"

    def test_accepts_numeric_strings(self) -> None:
        assert format_currency_for_notification("50000") == "50.000"

    def test_percentage_never_negative(self) -> None:
        assert format_percentage(-12.5) == "0"
        assert format_percentage(math.nan) == "0"
        assert format_percentage(94.6) == "95"


# =============================================================================
# Tests for budget alerts
# =============================================================================


class TestBudgetAlert:
    @pytest.mark.parametrize(
        ("percentage", "level"),
        [
            (100.0, BudgetAlertLevel.EXCEEDED),
            (135.0, BudgetAlertLevel.EXCEEDED),
            (90.0, BudgetAlertLevel.CRITICAL),
            (99.9, BudgetAlertLevel.CRITICAL),
            (75.0, BudgetAlertLevel.WARNING),
            (74.9, BudgetAlertLevel.INFO),
        ],
    )
    def test_severity_tiers(self, percentage: float, level: BudgetAlertLevel) -> None:
        assert budget_alert_level(percentage) is level

    def test_critical_alert_mentions_remaining_amount(self) -> None:
        payload = build_budget_alert("Food", 95.0, 50_000)

        assert payload.title == "🚨 Budget Almost Used Up!"
        assert "Rp 50.000" in payload.body
        assert payload.data["type"] == NotificationType.BUDGET_ALERT.value
        assert payload.data["level"] == "critical"

    def test_negative_remaining_is_clamped(self) -> None:
        payload = build_budget_alert("Food", 92.0, -20_000)

        assert "Rp 0" in payload.body
        assert "-" not in payload.body.split("Rp")[-1]

    def test_nan_percentage_falls_back_to_info(self) -> None:
        payload = build_budget_alert("Food", float("nan"), 10)

        assert payload.data["level"] == "info"
        assert "0% used" in payload.body


# =============================================================================
# Tests for saving goal, challenge and summary copy
# =============================================================================


def test_saving_goal_progress_tiers() -> None:
    assert build_saving_goal_progress("Trip", 100, 5_000_000, 5_000_000).title == "🎉 Savings Goal Reached!"
    assert build_saving_goal_progress("Trip", 80, 4_000_000, 5_000_000).title == "🌟 Almost There!"
    assert build_saving_goal_progress("Trip", 50, 2_500_000, 5_000_000).title == "💪 Halfway There!"
    assert build_saving_goal_progress("Trip", 25, 1_250_000, 5_000_000).title == "📈 Savings Progress"


def test_almost_there_reports_amount_left() -> None:
    payload = build_saving_goal_progress("Trip", 80, 4_000_000, 5_000_000)

    assert "Rp 1.000.000" in payload.body


@pytest.mark.parametrize(
    ("days", "title"),
    [(30, "💪 Don't Give Up!"), (14, "🎯 Remember Your Target"), (7, "📈 Time to Save")],
)
def test_goal_motivation_tiers(days: int, title: str) -> None:
    payload = build_goal_motivation("Laptop", days)

    assert payload is not None
    assert payload.title == title
    assert payload.data == {
        "type": NotificationType.SAVING_GOAL_MOTIVATION.value,
        "goalName": "Laptop",
        "daysWithoutProgress": days,
    }


def test_goal_motivation_below_a_week_is_silent() -> None:
    assert build_goal_motivation("Laptop", 6) is None


def test_challenge_reminder_wording_by_days_left() -> None:
    assert build_challenge_reminder("No Coffee", 3).title == "🎯 Challenge Reminder"
    assert build_challenge_reminder("No Coffee", 1).title == "⏰ Challenge Ends Tomorrow"
    assert build_challenge_reminder("No Coffee", 0).title == "🏁 Challenge Ends Today!"


def test_failed_challenge_reports_share_of_target() -> None:
    payload = build_challenge_completion("Save 1M", False, target_amount=1_000_000, current_amount=400_000)

    assert "40%" in payload.body
    assert payload.data["isSuccess"] is False


def test_weekly_summary_without_transactions() -> None:
    payload = build_weekly_summary(WeeklyTotals(transaction_count=0, total_expense=0, total_income=0))

    assert payload.data == {"type": NotificationType.WEEKLY_SUMMARY.value, "hasTransactions": False}


def test_weekly_summary_with_totals() -> None:
    payload = build_weekly_summary(WeeklyTotals(transaction_count=4, total_expense=150_000, total_income=2_000_000))

    assert payload.body == "4 transactions recorded. Spending: Rp 150.000, Income: Rp 2.000.000"
    assert payload.data["transactionCount"] == 4


@pytest.mark.parametrize(
    "module_name",
    ["src.formatting", "src.schedule", "src.notification_sink", "src.data_provider", "shared.service_settings"],
)
def test_module_docstring_precedes_future_import(module_name: str) -> None:
    module = importlib.import_module(module_name)

    assert module.__doc__ and module.__doc__.strip()
