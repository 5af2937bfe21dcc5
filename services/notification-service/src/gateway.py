"""
Notification Dispatch Gateway: the only component allowed to hand content to a sink.

Every user-scoped method runs the same gate before touching the sink:
1. is a sink registered at all, and
2. does the user have `notification_enabled` on?
Either answer being "no" turns the call into a no-op returning False/None.
Sink errors are logged and reported the same way, so callers can treat any
falsy result as "not delivered, try again later".
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from shared.observability.privacy import redact_fields, user_fingerprint

from . import formatting
from .data_provider import SettingsProvider
from .models import NotificationPayload, UserSettings, WeeklyTotals
from .notification_sink import SAFE_DATA_KEYS, NotificationSink
from .schedule import NotificationSchedule, ScheduledRequest
from .timekeeping import local_now

logger = logging.getLogger(__name__)

DEFAULT_DAILY_REMINDER_HOUR = 20
DEFAULT_DAILY_REMINDER_MINUTE = 0

# (days before the end date, hour of day, days left shown in the message)
CHALLENGE_REMINDER_OFFSETS = ((3, 10, 3), (1, 18, 1), (0, 9, 0))


class NotificationGateway:
    def __init__(
        self,
        sink: Optional[NotificationSink],
        settings_provider: SettingsProvider,
        *,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._sink = sink
        self._settings_provider = settings_provider
        self._clock = clock

    @property
    def sink(self) -> Optional[NotificationSink]:
        return self._sink

    async def is_notification_enabled(self, user_id: str) -> bool:
        """
        Master switch lookup.

        A user without a settings row gets the defaults (enabled). A failing
        settings lookup counts as disabled.
        """
        try:
            settings = await self._settings_provider.get_user_settings(user_id)
        except Exception as exc:
            logger.warning(
                {
                    "event": "notification_settings_unavailable",
                    "user": user_fingerprint(user_id),
                    "error": str(exc),
                }
            )
            return False
        return (settings or UserSettings.defaults()).notification_enabled

    async def send_budget_alert(
        self, user_id: str, budget_name: str, percentage_used: float, remaining_amount: float
    ) -> bool:
        payload = formatting.build_budget_alert(budget_name, percentage_used, remaining_amount)
        return await self.send_local_notification(user_id, payload)

    async def send_challenge_reminder(self, user_id: str, challenge_title: str, days_left: int) -> bool:
        payload = formatting.build_challenge_reminder(challenge_title, days_left)
        return await self.send_local_notification(user_id, payload)

    async def send_saving_goal_progress(
        self,
        user_id: str,
        goal_name: str,
        progress_percentage: float,
        current_amount: float,
        target_amount: float,
    ) -> bool:
        payload = formatting.build_saving_goal_progress(goal_name, progress_percentage, current_amount, target_amount)
        return await self.send_local_notification(user_id, payload)

    async def send_goal_completion(self, user_id: str, goal_name: str, target_amount: float) -> bool:
        payload = formatting.build_goal_completion(goal_name, target_amount)
        return await self.send_local_notification(user_id, payload)

    async def send_goal_motivation(self, user_id: str, goal_name: str, days_without_progress: int) -> bool:
        payload = formatting.build_goal_motivation(goal_name, days_without_progress)
        if payload is None:
            return False
        return await self.send_local_notification(user_id, payload)

    async def send_account_update_notification(
        self, user_id: str, update_type: formatting.AccountUpdateType, success: bool = True
    ) -> bool:
        payload = formatting.build_account_update(update_type, success)
        return await self.send_local_notification(user_id, payload)

    async def send_transaction_reminder(self, user_id: str) -> bool:
        return await self.send_local_notification(user_id, formatting.build_transaction_reminder())

    async def send_weekly_summary(self, user_id: str, totals: WeeklyTotals) -> bool:
        return await self.send_local_notification(user_id, formatting.build_weekly_summary(totals))

    async def send_challenge_completion(
        self,
        user_id: str,
        challenge_title: str,
        is_success: bool,
        target_amount: Optional[float] = None,
        current_amount: Optional[float] = None,
    ) -> bool:
        payload = formatting.build_challenge_completion(challenge_title, is_success, target_amount, current_amount)
        return await self.send_local_notification(user_id, payload)

    async def setup_challenge_reminders(self, user_id: str, challenge_title: str, end_date: date) -> bool:
        """
        Schedule the countdown reminders for a challenge ending on `end_date`:
        three days before at 10:00, the day before at 18:00, the last day at 09:00.

        Reminders whose day has already passed are skipped. Returns True when
        the gate passed, even if no reminder was still in the future.
        """
        if not await self._gate(user_id, "setup_challenge_reminders"):
            return False

        today = self._clock().date()
        for days_before, hour, shown_days_left in CHALLENGE_REMINDER_OFFSETS:
            reminder_day = end_date - timedelta(days=days_before)
            if reminder_day < today:
                continue
            payload = formatting.build_challenge_reminder(challenge_title, shown_days_left)
            await self._schedule(user_id, payload, NotificationSchedule.on_date(reminder_day, hour))
        return True

    async def send_local_notification(self, user_id: str, payload: NotificationPayload) -> bool:
        if not await self._gate(user_id, payload.notification_type):
            return False

        try:
            notification_id = await self._sink.send_local_notification(payload)
        except Exception as exc:
            self._log_sink_failure("send_local_notification", user_id, payload, exc)
            return False

        self._log_dispatch("send_local_notification", user_id, payload, notification_id)
        return notification_id is not None

    async def schedule_notification(
        self, user_id: str, payload: NotificationPayload, schedule: NotificationSchedule
    ) -> Optional[str]:
        if not await self._gate(user_id, payload.notification_type):
            return None
        return await self._schedule(user_id, payload, schedule)

    async def schedule_daily_reminder(
        self,
        user_id: str,
        hour: int = DEFAULT_DAILY_REMINDER_HOUR,
        minute: int = DEFAULT_DAILY_REMINDER_MINUTE,
    ) -> Optional[str]:
        return await self.schedule_notification(
            user_id, formatting.build_daily_review(), NotificationSchedule.daily(hour, minute)
        )

    async def cancel_notification(self, notification_id: str) -> bool:
        if self._sink is None:
            return False
        try:
            return await self._sink.cancel_notification(notification_id)
        except Exception as exc:
            logger.warning({"event": "notification_cancel_failed", "notification_id": notification_id, "error": str(exc)})
            return False

    async def cancel_all_notifications(self) -> bool:
        if self._sink is None:
            return False
        try:
            return await self._sink.cancel_all_notifications()
        except Exception as exc:
            logger.warning({"event": "notification_cancel_all_failed", "error": str(exc)})
            return False

    async def get_all_scheduled(self) -> List[ScheduledRequest]:
        if self._sink is None:
            return []
        try:
            return await self._sink.get_all_scheduled()
        except Exception as exc:
            logger.warning({"event": "notification_list_failed", "error": str(exc)})
            return []

    async def _gate(self, user_id: str, purpose: Optional[str]) -> bool:
        if self._sink is None:
            logger.debug({"event": "notification_skipped", "reason": "no_sink", "type": purpose})
            return False
        if not await self.is_notification_enabled(user_id):
            logger.info(
                {
                    "event": "notification_skipped",
                    "reason": "notifications_disabled",
                    "type": purpose,
                    "user": user_fingerprint(user_id),
                }
            )
            return False
        return True

    async def _schedule(
        self, user_id: str, payload: NotificationPayload, schedule: NotificationSchedule
    ) -> Optional[str]:
        try:
            notification_id = await self._sink.schedule_notification(payload, schedule)
        except Exception as exc:
            self._log_sink_failure("schedule_notification", user_id, payload, exc)
            return None

        self._log_dispatch("schedule_notification", user_id, payload, notification_id, schedule=schedule.to_dict())
        return notification_id

    def _log_dispatch(
        self,
        operation: str,
        user_id: str,
        payload: NotificationPayload,
        notification_id: Optional[str],
        **extra: object,
    ) -> None:
        logger.info(
            {
                "event": "notification_dispatch",
                "operation": operation,
                "outcome": "accepted" if notification_id else "rejected",
                "notification_id": notification_id,
                "user": user_fingerprint(user_id),
                "data": redact_fields(payload.data, SAFE_DATA_KEYS),
                **extra,
            }
        )

    def _log_sink_failure(self, operation: str, user_id: str, payload: NotificationPayload, exc: Exception) -> None:
        logger.warning(
            {
                "event": "notification_dispatch",
                "operation": operation,
                "outcome": "sink_error",
                "user": user_fingerprint(user_id),
                "data": redact_fields(payload.data, SAFE_DATA_KEYS),
                "error": str(exc),
            }
        )
