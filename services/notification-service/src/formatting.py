"""
Builders that turn domain events into notification payloads.

Numbers reaching a notification body come from upstream arithmetic that can go
wrong (overspent budgets, empty targets), so every amount and percentage passes
through a clamp: negative, NaN and infinite values render as "0".
"""

from __future__ import annotations

import math
from typing import Literal, Optional

from .models import BudgetAlertLevel, NotificationPayload, NotificationType, WeeklyTotals

CURRENCY_PREFIX = "Rp"
AccountUpdateType = Literal["password", "email", "profile"]


def _clamp_amount(value: object) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def format_currency_for_notification(amount: object) -> str:
    """
    Render an amount with id-ID digit grouping (1.000.000) and no decimals.

    >>> format_currency_for_notification(1250000)
    '1.250.000'
    >>> format_currency_for_notification(float("nan"))
    '0'
    """
    rounded = int(round(_clamp_amount(amount)))
    return f"{rounded:,}".replace(",", ".")


def format_percentage(value: object) -> str:
    return f"{_clamp_amount(value):.0f}"


def _money(amount: object) -> str:
    return f"{CURRENCY_PREFIX} {format_currency_for_notification(amount)}"


def budget_alert_level(percentage: float) -> BudgetAlertLevel:
    if percentage >= 100:
        return BudgetAlertLevel.EXCEEDED
    if percentage >= 90:
        return BudgetAlertLevel.CRITICAL
    if percentage >= 75:
        return BudgetAlertLevel.WARNING
    return BudgetAlertLevel.INFO


def build_budget_alert(budget_name: str, percentage_used: float, remaining_amount: float) -> NotificationPayload:
    level = budget_alert_level(_clamp_amount(percentage_used))
    used = format_percentage(percentage_used)

    if level is BudgetAlertLevel.EXCEEDED:
        title = "🚫 Budget Exceeded"
        body = f"{budget_name}: {used}% used. You have gone over this month's budget."
    elif level is BudgetAlertLevel.CRITICAL:
        title = "🚨 Budget Almost Used Up!"
        body = f"{budget_name}: {used}% used. {_money(remaining_amount)} left."
    elif level is BudgetAlertLevel.WARNING:
        title = "⚠️ Budget Warning"
        body = f"{budget_name}: {used}% used. Watch your spending."
    else:
        title = "💰 Budget Update"
        body = f"{budget_name}: {used}% used. Your budget is still on track."

    return NotificationPayload(
        title=title,
        body=body,
        data={
            "type": NotificationType.BUDGET_ALERT.value,
            "budgetName": budget_name,
            "percentageUsed": _clamp_amount(percentage_used),
            "level": level.value,
        },
    )


def build_challenge_reminder(challenge_title: str, days_left: int) -> NotificationPayload:
    if days_left <= 0:
        title = "🏁 Challenge Ends Today!"
        body = f'"{challenge_title}" ends today. Finish it now!'
    elif days_left == 1:
        title = "⏰ Challenge Ends Tomorrow"
        body = f'"{challenge_title}" ends tomorrow. Make sure you reach the target!'
    else:
        title = "🎯 Challenge Reminder"
        body = f'"{challenge_title}" ends in {days_left} days. Keep going!'

    return NotificationPayload(
        title=title,
        body=body,
        data={
            "type": NotificationType.CHALLENGE_REMINDER.value,
            "challengeTitle": challenge_title,
            "daysLeft": max(days_left, 0),
        },
    )


def build_saving_goal_progress(
    goal_name: str,
    progress_percentage: float,
    current_amount: float,
    target_amount: float,
) -> NotificationPayload:
    progress = _clamp_amount(progress_percentage)
    shown = format_percentage(progress)

    if progress >= 100:
        title = "🎉 Savings Goal Reached!"
        body = f'Congratulations! You reached "{goal_name}" with {_money(target_amount)} saved.'
    elif progress >= 75:
        title = "🌟 Almost There!"
        body = f'"{goal_name}": {shown}% reached. Only {_money(target_amount - current_amount)} to go!'
    elif progress >= 50:
        title = "💪 Halfway There!"
        body = f'"{goal_name}": {shown}% reached. Keep saving consistently!'
    else:
        title = "📈 Savings Progress"
        body = f'"{goal_name}": {shown}% reached. Keep it up!'

    return NotificationPayload(
        title=title,
        body=body,
        data={
            "type": NotificationType.SAVING_GOAL.value,
            "goalName": goal_name,
            "progressPercentage": progress,
        },
    )


def build_goal_completion(goal_name: str, target_amount: float) -> NotificationPayload:
    return NotificationPayload(
        title="🎉🎊 Congratulations! Goal Reached! 🎊🎉",
        body=f'Amazing! You reached your "{goal_name}" target of {_money(target_amount)}. Time to celebrate!',
        data={
            "type": NotificationType.SAVING_GOAL_COMPLETED.value,
            "goalName": goal_name,
            "targetAmount": _clamp_amount(target_amount),
        },
    )


def build_goal_motivation(goal_name: str, days_without_progress: int) -> Optional[NotificationPayload]:
    """Motivation copy for a stalled goal; None when the goal moved within the last week."""
    if days_without_progress >= 30:
        title = "💪 Don't Give Up!"
        body = f'"{goal_name}" has had no progress for {days_without_progress} days. Restart with a small step!'
    elif days_without_progress >= 14:
        title = "🎯 Remember Your Target"
        body = f'"{goal_name}" is waiting for you. {days_without_progress} days without progress.'
    elif days_without_progress >= 7:
        title = "📈 Time to Save"
        body = f'A week has passed without progress on "{goal_name}". Keep your savings journey going!'
    else:
        return None

    return NotificationPayload(
        title=title,
        body=body,
        data={
            "type": NotificationType.SAVING_GOAL_MOTIVATION.value,
            "goalName": goal_name,
            "daysWithoutProgress": days_without_progress,
        },
    )


def build_account_update(update_type: AccountUpdateType, success: bool = True) -> NotificationPayload:
    if not success:
        title = "❌ Account Update Failed"
        body = "Something went wrong while updating your account. Please try again."
    elif update_type == "password":
        title = "🔐 Password Changed"
        body = "Your account password was updated. Your account stays secure."
    elif update_type == "email":
        title = "📧 Email Changed"
        body = "Your account email address was updated."
    else:
        title = "👤 Profile Updated"
        body = "Your profile information was saved."

    return NotificationPayload(
        title=title,
        body=body,
        data={"type": NotificationType.ACCOUNT_UPDATE.value, "updateType": update_type, "success": success},
    )


def build_transaction_reminder() -> NotificationPayload:
    return NotificationPayload(
        title="📝 Don't Forget Your Transactions",
        body="Have you recorded today's spending? Log it now to keep your tracking accurate.",
        data={"type": NotificationType.TRANSACTION_REMINDER.value},
    )


def build_daily_review() -> NotificationPayload:
    return NotificationPayload(
        title="📊 Daily Finance Review",
        body="Time to review today's spending and your financial progress!",
        data={"type": NotificationType.DAILY_REVIEW.value},
    )


def build_weekly_summary(totals: WeeklyTotals) -> NotificationPayload:
    if totals.transaction_count == 0:
        return NotificationPayload(
            title="📊 Start Tracking Your Finances",
            body="No transactions this week. Start recording your spending for better control of your money!",
            data={"type": NotificationType.WEEKLY_SUMMARY.value, "hasTransactions": False},
        )

    return NotificationPayload(
        title="📈 Weekly Summary",
        body=(
            f"{totals.transaction_count} transactions recorded. "
            f"Spending: {_money(totals.total_expense)}, Income: {_money(totals.total_income)}"
        ),
        data={
            "type": NotificationType.WEEKLY_SUMMARY.value,
            "hasTransactions": True,
            "totalExpense": _clamp_amount(totals.total_expense),
            "totalIncome": _clamp_amount(totals.total_income),
            "transactionCount": totals.transaction_count,
        },
    )


def build_weekly_review_trigger() -> NotificationPayload:
    return NotificationPayload(
        title="📊 Time for Your Weekly Review",
        body="See this week's financial summary and plan for the week ahead!",
        data={"type": NotificationType.WEEKLY_REVIEW_TRIGGER.value},
    )


def build_challenge_completion(
    challenge_title: str,
    is_success: bool,
    target_amount: Optional[float] = None,
    current_amount: Optional[float] = None,
) -> NotificationPayload:
    if is_success:
        title = "🎉 Challenge Completed!"
        body = f'Congratulations! You completed "{challenge_title}". Target reached!'
        if target_amount:
            body += f" Target: {_money(target_amount)}"
    else:
        title = "😔 Challenge Ended"
        body = f'"{challenge_title}" has ended. Don\'t give up, try again!'
        if target_amount and current_amount:
            body += f" You reached {format_percentage(current_amount / target_amount * 100)}% of the target."

    return NotificationPayload(
        title=title,
        body=body,
        data={
            "type": NotificationType.CHALLENGE_COMPLETION.value,
            "challengeTitle": challenge_title,
            "isSuccess": is_success,
        },
    )
