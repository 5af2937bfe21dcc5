"""
Composition root for one process: providers, sink, gateway, monitors and their schedulers.

The host drives it with four calls: `login` when a user becomes available,
`logout` when they go away, and `on_background` / `on_foreground` for app
lifecycle transitions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from shared.observability.privacy import user_fingerprint
from shared.service_settings import ServiceSettings

from .budget_monitor import BudgetMonitor
from .data_provider import (
    DataProvider,
    SettingsProvider,
    build_data_provider,
    build_settings_provider,
)
from .gateway import NotificationGateway
from .ledger import (
    CooldownLedger,
    InMemoryCooldownLedger,
    InMemoryMilestoneLedger,
    MilestoneLedger,
    SqlCooldownLedger,
    SqlMilestoneLedger,
)
from .notification_sink import NotificationSink, build_notification_sink
from .saving_goal_tracker import SavingGoalTracker
from .scheduler import MonitorScheduler
from .transaction_reminder import TransactionReminder

logger = logging.getLogger(__name__)


@dataclass
class LoginReport:
    """What `login` managed to set up; False/None entries were refused or gated off."""

    user_id: str
    daily_reminder: bool = False
    weekly_summary: bool = False
    initial_checks: Dict[str, Any] = field(default_factory=dict)


class NotificationManager:
    def __init__(
        self,
        data_provider: DataProvider,
        settings_provider: SettingsProvider,
        sink: Optional[NotificationSink],
        *,
        cooldown_ledger: Optional[CooldownLedger] = None,
        milestone_ledger: Optional[MilestoneLedger] = None,
        gateway: Optional[NotificationGateway] = None,
    ) -> None:
        self.data_provider = data_provider
        self.settings_provider = settings_provider
        self.sink = sink
        self.gateway = gateway or NotificationGateway(sink, settings_provider)

        self.budget_monitor = BudgetMonitor(
            data_provider,
            settings_provider,
            self.gateway,
            ledger=cooldown_ledger or InMemoryCooldownLedger(),
        )
        self.saving_goal_tracker = SavingGoalTracker(
            data_provider,
            settings_provider,
            self.gateway,
            ledger=milestone_ledger or InMemoryMilestoneLedger(),
        )
        self.transaction_reminder = TransactionReminder(data_provider, settings_provider, self.gateway)

        self.schedulers: List[MonitorScheduler] = [
            MonitorScheduler.for_monitor("budget", self.budget_monitor.check_thresholds),
            MonitorScheduler.for_monitor("saving_goal", self.saving_goal_tracker.track_all),
            MonitorScheduler.for_monitor("transaction", self.transaction_reminder.check_evening_reminder),
        ]
        self.user_id: Optional[str] = None

    def scheduler(self, name: str) -> MonitorScheduler:
        for scheduler in self.schedulers:
            if scheduler.name == name:
                return scheduler
        raise KeyError(name)

    async def login(self, user_id: str) -> LoginReport:
        """
        Clear whatever was scheduled before, arm the recurring reminders for the
        user, then start every monitor with one immediate check.
        """
        if self.user_id is not None and self.user_id != user_id:
            await self.logout()
        self.user_id = user_id

        await self.gateway.cancel_all_notifications()
        self.transaction_reminder.reset_reminder_state()

        report = LoginReport(user_id=user_id)
        report.daily_reminder = await self.transaction_reminder.setup_daily_reminder(user_id)
        report.weekly_summary = await self.transaction_reminder.setup_weekly_summary(user_id)
        for scheduler in self.schedulers:
            report.initial_checks[scheduler.name] = await scheduler.on_user_available(user_id)

        logger.info(
            {
                "event": "session_started",
                "user": user_fingerprint(user_id),
                "daily_reminder": report.daily_reminder,
                "weekly_summary": report.weekly_summary,
            }
        )
        return report

    async def logout(self) -> None:
        for scheduler in self.schedulers:
            scheduler.on_user_unavailable()
        if self.user_id is not None:
            logger.info({"event": "session_ended", "user": user_fingerprint(self.user_id)})
        self.user_id = None

    def on_background(self) -> None:
        for scheduler in self.schedulers:
            scheduler.on_background()

    async def on_foreground(self) -> Dict[str, Any]:
        return {scheduler.name: await scheduler.on_foreground() for scheduler in self.schedulers}

    async def drain(self) -> None:
        for scheduler in self.schedulers:
            await scheduler.drain()


def build_notification_manager(settings: ServiceSettings, *, session_factory: Any = None) -> NotificationManager:
    """
    Factory wiring the configured providers, sink and ledgers together.

    `session_factory` is only consulted when ledger persistence is enabled.
    """

    data_provider = build_data_provider(settings)
    settings_provider = build_settings_provider(settings)
    sink = build_notification_sink(settings)

    cooldown_ledger: Optional[CooldownLedger] = None
    milestone_ledger: Optional[MilestoneLedger] = None
    if settings.persist_ledgers:
        if session_factory is None:
            from .persistence.database import get_session_factory

            session_factory = get_session_factory(settings.ledger_db_url)
        cooldown_ledger = SqlCooldownLedger(session_factory)
        milestone_ledger = SqlMilestoneLedger(session_factory)

    logger.info(
        {
            "event": "notification_manager_built",
            "data_provider": data_provider.name,
            "sink": sink.name,
            "persist_ledgers": settings.persist_ledgers,
        }
    )
    return NotificationManager(
        data_provider,
        settings_provider,
        sink,
        cooldown_ledger=cooldown_ledger,
        milestone_ledger=milestone_ledger,
    )
