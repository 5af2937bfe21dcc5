"""
Transaction recording reminders.

Owns the recurring 20:00 daily review schedule and the Sunday 19:00 weekly
review schedule (one sink id each, so re-arming replaces instead of
duplicating) plus the smart reminder: at most one per local calendar day, sent
only when nothing was recorded today. The day is stamped only after a
successful send, so a failed delivery can be retried the same day.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from shared.observability.privacy import user_fingerprint

from . import formatting
from .data_provider import DataProvider, SettingsProvider
from .gateway import NotificationGateway
from .models import Transaction, UserSettings, WeeklyTotals
from .schedule import NotificationSchedule
from .timekeeping import calendar_date, day_window, local_now, parse_timestamp, trailing_week_window

logger = logging.getLogger(__name__)

DAILY_REMINDER_HOUR = 20
WEEKLY_SUMMARY_WEEKDAY = 1  # Sunday
WEEKLY_SUMMARY_HOUR = 19
EVENING_WINDOW = (19, 21)


class TransactionReminder:
    def __init__(
        self,
        data_provider: DataProvider,
        settings_provider: SettingsProvider,
        gateway: NotificationGateway,
        *,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._data = data_provider
        self._settings = settings_provider
        self._gateway = gateway
        self._clock = clock
        self.last_reminder_date: Optional[str] = None
        self.reminder_schedule_id: Optional[str] = None
        self.weekly_schedule_id: Optional[str] = None

    async def setup_daily_reminder(self, user_id: str) -> bool:
        settings = await self._load_settings(user_id)
        if settings is None or not settings.notification_enabled or not settings.daily_reminder_enabled:
            return False

        if self.reminder_schedule_id:
            await self.cancel_reminder()

        schedule_id = await self._gateway.schedule_daily_reminder(user_id, DAILY_REMINDER_HOUR, 0)
        if schedule_id is None:
            return False
        self.reminder_schedule_id = schedule_id
        logger.info({"event": "daily_reminder_scheduled", "notification_id": schedule_id})
        return True

    async def cancel_reminder(self) -> bool:
        if not self.reminder_schedule_id:
            return False
        cancelled = await self._gateway.cancel_notification(self.reminder_schedule_id)
        if cancelled:
            self.reminder_schedule_id = None
        return cancelled

    async def check_today_transactions(self, user_id: str) -> bool:
        """True when at least one transaction is dated within the current local day."""
        start, end = day_window(self._clock())
        try:
            transactions = await self._data.get_transactions(
                user_id, start_date=start.isoformat(), end_date=end.isoformat(), limit=1
            )
        except Exception as exc:
            self._log_failure("get_transactions", user_id, exc)
            return False
        return any(self._within(transaction, start, end) for transaction in transactions)

    async def send_smart_reminder(self, user_id: str) -> bool:
        settings = await self._load_settings(user_id)
        if settings is None or not settings.notification_enabled or not settings.transaction_reminders:
            return False

        today = calendar_date(self._clock())
        if self.last_reminder_date == today:
            return False
        if await self.check_today_transactions(user_id):
            return False

        sent = await self._gateway.send_transaction_reminder(user_id)
        if sent:
            self.last_reminder_date = today
        logger.info({"event": "smart_reminder", "sent": sent, "user": user_fingerprint(user_id)})
        return sent

    async def send_weekly_summary(self, user_id: str) -> bool:
        settings = await self._load_settings(user_id)
        if settings is None or not settings.notification_enabled or not settings.weekly_summary_enabled:
            return False

        start, end = trailing_week_window(self._clock())
        try:
            transactions = await self._data.get_transactions(
                user_id, start_date=start.isoformat(), end_date=end.isoformat()
            )
        except Exception as exc:
            self._log_failure("get_transactions", user_id, exc)
            return False

        return await self._gateway.send_weekly_summary(user_id, weekly_totals(transactions))

    async def setup_weekly_summary(self, user_id: str) -> bool:
        settings = await self._load_settings(user_id)
        if settings is None or not settings.notification_enabled or not settings.weekly_summary_enabled:
            return False

        if self.weekly_schedule_id:
            if await self._gateway.cancel_notification(self.weekly_schedule_id):
                self.weekly_schedule_id = None

        schedule_id = await self._gateway.schedule_notification(
            user_id,
            formatting.build_weekly_review_trigger(),
            NotificationSchedule.weekly(WEEKLY_SUMMARY_WEEKDAY, WEEKLY_SUMMARY_HOUR),
        )
        if schedule_id is None:
            return False
        self.weekly_schedule_id = schedule_id
        return True

    def should_send_evening_reminder(self) -> bool:
        """Pure predicate: inside 19:00-21:59 local and no reminder sent today."""
        now = self._clock()
        low, high = EVENING_WINDOW
        return low <= now.hour <= high and self.last_reminder_date != calendar_date(now)

    async def check_evening_reminder(self, user_id: str) -> bool:
        """Periodic check run by the scheduler."""
        if not self.should_send_evening_reminder():
            return False
        return await self.send_smart_reminder(user_id)

    def reset_reminder_state(self) -> None:
        self.last_reminder_date = None
        self.reminder_schedule_id = None
        self.weekly_schedule_id = None

    async def _load_settings(self, user_id: str) -> Optional[UserSettings]:
        try:
            settings = await self._settings.get_user_settings(user_id)
        except Exception as exc:
            self._log_failure("get_user_settings", user_id, exc)
            return None
        return settings or UserSettings.defaults()

    @staticmethod
    def _within(transaction: Transaction, start: datetime, end: datetime) -> bool:
        try:
            moment = parse_timestamp(transaction.date, start)
        except ValueError:
            return False
        return start <= moment < end

    @staticmethod
    def _log_failure(operation: str, user_id: str, exc: Exception) -> None:
        logger.warning(
            {
                "event": "monitor_provider_failure",
                "monitor": "transaction",
                "operation": operation,
                "user": user_fingerprint(user_id),
                "error": str(exc),
            }
        )


def weekly_totals(transactions: List[Transaction]) -> WeeklyTotals:
    return WeeklyTotals(
        transaction_count=len(transactions),
        total_expense=sum(item.amount for item in transactions if item.type == "expense"),
        total_income=sum(item.amount for item in transactions if item.type == "income"),
    )
