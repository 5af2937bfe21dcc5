"""
Budget threshold monitor.

Each check compares this calendar month's spend per budget against the user's
alert threshold and asks the gateway for an alert when the budget is over the
threshold and its 24 hour cooldown has elapsed. Provider failures end the check
(or skip the single budget they concern); they never reach the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from shared.observability.privacy import user_fingerprint

from .data_provider import DataProvider, SettingsProvider
from .gateway import NotificationGateway
from .ledger import CooldownLedger, InMemoryCooldownLedger
from .models import DEFAULT_ALERT_THRESHOLD, Budget, BudgetStatus, UserSettings
from .timekeeping import local_now, month_window

logger = logging.getLogger(__name__)

ALERT_COOLDOWN = timedelta(hours=24)
FALLBACK_CATEGORY_NAME = "Category"


class BudgetMonitor:
    """
    Alerts users whose spending in a category crosses their budget threshold.

    The 24h cooldown for a budget is stamped only once the gateway reports the
    alert as sent. An alert that was muted, refused or failed leaves no stamp, so
    the next check tries it again instead of staying silent for a day.
    """

    def __init__(
        self,
        data_provider: DataProvider,
        settings_provider: SettingsProvider,
        gateway: NotificationGateway,
        *,
        ledger: Optional[CooldownLedger] = None,
        clock: Callable[[], datetime] = local_now,
        cooldown: timedelta = ALERT_COOLDOWN,
    ) -> None:
        self._data = data_provider
        self._settings = settings_provider
        self._gateway = gateway
        self._ledger = ledger or InMemoryCooldownLedger()
        self._clock = clock
        self._cooldown = cooldown

    async def check_thresholds(self, user_id: str) -> List[BudgetStatus]:
        """Evaluate every budget of the user and alert on the ones due for it."""
        settings = await self._load_settings(user_id)
        if settings is None or not settings.notification_enabled:
            return []

        try:
            budgets = await self._data.get_budgets(user_id)
        except Exception as exc:
            self._log_failure("get_budgets", user_id, exc)
            return []
        if not budgets:
            return []

        threshold = settings.effective_threshold
        names = await self._category_names(user_id)
        now = self._clock()
        start, end = month_window(now)

        statuses: List[BudgetStatus] = []
        for budget in budgets:
            self._warn_on_period(budget)
            try:
                spent = await self._data.get_budget_spending(
                    user_id, budget.category_id, start.isoformat(), end.isoformat()
                )
            except Exception as exc:
                self._log_failure("get_budget_spending", user_id, exc, budget_id=budget.id)
                continue

            status = self._build_status(
                budget.id,
                names.get(budget.category_id, FALLBACK_CATEGORY_NAME),
                budget.amount,
                spent,
                threshold,
                cooldown_key=budget.id,
                now=now,
            )
            statuses.append(status)
            if status.should_alert:
                await self._dispatch(user_id, status, budget.id, now)

        return statuses

    async def check_specific(self, user_id: str, category_id: str, budget_amount: float) -> Optional[BudgetStatus]:
        """
        Evaluate one category against an explicit budget amount, typically right
        after a transaction was recorded. The cooldown is keyed by category id.
        """
        settings = await self._load_settings(user_id)
        if settings is None or not settings.notification_enabled:
            return None

        now = self._clock()
        start, end = month_window(now)
        try:
            spent = await self._data.get_budget_spending(user_id, category_id, start.isoformat(), end.isoformat())
        except Exception as exc:
            self._log_failure("get_budget_spending", user_id, exc, category_id=category_id)
            return None

        names = await self._category_names(user_id)
        status = self._build_status(
            category_id,
            names.get(category_id, FALLBACK_CATEGORY_NAME),
            budget_amount,
            spent,
            settings.effective_threshold,
            cooldown_key=category_id,
            now=now,
        )
        if status.should_alert:
            await self._dispatch(user_id, status, category_id, now)
        return status

    async def get_statuses(self, user_id: str) -> List[BudgetStatus]:
        """Side-effect free variant of `check_thresholds`: never alerts, never stamps."""
        try:
            settings = await self._settings.get_user_settings(user_id)
        except Exception as exc:
            self._log_failure("get_user_settings", user_id, exc)
            settings = None
        threshold = settings.effective_threshold if settings else DEFAULT_ALERT_THRESHOLD

        try:
            budgets = await self._data.get_budgets(user_id)
        except Exception as exc:
            self._log_failure("get_budgets", user_id, exc)
            return []

        names = await self._category_names(user_id)
        start, end = month_window(self._clock())
        statuses: List[BudgetStatus] = []
        for budget in budgets:
            try:
                spent = await self._data.get_budget_spending(
                    user_id, budget.category_id, start.isoformat(), end.isoformat()
                )
            except Exception as exc:
                self._log_failure("get_budget_spending", user_id, exc, budget_id=budget.id)
                continue
            statuses.append(
                self._build_status(
                    budget.id,
                    names.get(budget.category_id, FALLBACK_CATEGORY_NAME),
                    budget.amount,
                    spent,
                    threshold,
                )
            )
        return statuses

    def reset(self, budget_id: str) -> None:
        """Forget the cooldown for a budget (or category) id."""
        self._ledger.reset(budget_id)

    def _build_status(
        self,
        status_id: str,
        category_name: str,
        amount: float,
        spent: float,
        threshold: float,
        *,
        cooldown_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BudgetStatus:
        percentage = spent / amount * 100 if amount > 0 else 0.0
        is_over_threshold = percentage >= threshold
        should_alert = False
        if is_over_threshold and cooldown_key is not None and now is not None:
            last_alert = self._ledger.get(cooldown_key)
            should_alert = last_alert is None or now - last_alert > self._cooldown

        return BudgetStatus(
            id=status_id,
            category_name=category_name,
            amount=amount,
            spent=spent,
            percentage=percentage,
            remaining_amount=amount - spent,
            is_over_threshold=is_over_threshold,
            should_alert=should_alert,
        )

    async def _dispatch(self, user_id: str, status: BudgetStatus, cooldown_key: str, now: datetime) -> None:
        sent = await self._gateway.send_budget_alert(
            user_id, status.category_name, status.percentage, status.remaining_amount
        )
        if sent:
            self._ledger.stamp(cooldown_key, now)
        logger.info(
            {
                "event": "budget_alert",
                "budget_id": cooldown_key,
                "percentage": round(status.percentage, 2),
                "sent": sent,
                "user": user_fingerprint(user_id),
            }
        )

    async def _load_settings(self, user_id: str) -> Optional[UserSettings]:
        try:
            settings = await self._settings.get_user_settings(user_id)
        except Exception as exc:
            self._log_failure("get_user_settings", user_id, exc)
            return None
        return settings or UserSettings.defaults()

    async def _category_names(self, user_id: str) -> Dict[str, str]:
        try:
            categories = await self._data.get_categories("expense")
        except Exception as exc:
            self._log_failure("get_categories", user_id, exc)
            return {}
        return {category.id: category.name for category in categories}

    @staticmethod
    def _warn_on_period(budget: Budget) -> None:
        if budget.period not in (None, "monthly"):
            logger.warning(
                {
                    "event": "budget_period_ignored",
                    "budget_id": budget.id,
                    "period": budget.period,
                    "evaluated_as": "monthly",
                }
            )

    @staticmethod
    def _log_failure(operation: str, user_id: str, exc: Exception, **extra: object) -> None:
        logger.warning(
            {
                "event": "monitor_provider_failure",
                "monitor": "budget",
                "operation": operation,
                "user": user_fingerprint(user_id),
                "error": str(exc),
                **extra,
            }
        )
