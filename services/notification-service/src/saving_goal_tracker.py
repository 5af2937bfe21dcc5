"""
Savings goal milestone tracker.

A goal notifies when it enters a milestone band (25/50/75/100%) above every
band already notified for it. The notified set only grows; `reset(goal_id)` is
the one way to shrink it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from shared.observability.privacy import user_fingerprint

from .data_provider import DataProvider, SettingsProvider
from .gateway import NotificationGateway
from .ledger import InMemoryMilestoneLedger, MilestoneLedger
from .models import MILESTONES, ProgressSummary, SavingGoal, SavingGoalProgress, UserSettings
from .timekeeping import local_now

logger = logging.getLogger(__name__)


def milestone_for(progress_percentage: float) -> int:
    """Highest milestone band at or below the percentage, 0 below the first band."""
    reached = 0
    for milestone in MILESTONES:
        if progress_percentage >= milestone:
            reached = milestone
    return reached


def calculate_progress(goal: SavingGoal) -> SavingGoalProgress:
    percentage = goal.current_amount / goal.target_amount * 100 if goal.target_amount > 0 else 0.0
    return SavingGoalProgress(
        id=goal.id,
        name=goal.name,
        target_amount=goal.target_amount,
        current_amount=goal.current_amount,
        progress_percentage=percentage,
        milestone_reached=milestone_for(percentage),
    )


class SavingGoalTracker:
    def __init__(
        self,
        data_provider: DataProvider,
        settings_provider: SettingsProvider,
        gateway: NotificationGateway,
        *,
        ledger: Optional[MilestoneLedger] = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._data = data_provider
        self._settings = settings_provider
        self._gateway = gateway
        self._ledger = ledger or InMemoryMilestoneLedger()
        self._clock = clock

    async def track_all(self, user_id: str) -> List[SavingGoalProgress]:
        settings = await self._load_settings(user_id)
        if settings is None or not settings.notification_enabled or not settings.saving_goal_alerts:
            return []

        try:
            goals = await self._data.get_saving_goals(user_id)
        except Exception as exc:
            self._log_failure("get_saving_goals", user_id, exc)
            return []

        results: List[SavingGoalProgress] = []
        for goal in goals:
            progress = calculate_progress(goal)
            progress.should_notify = await self._notify_milestone(user_id, progress)
            results.append(progress)
        return results

    async def update_progress(self, user_id: str, goal_id: str, new_amount: float) -> Optional[SavingGoalProgress]:
        """Write the new amount through to the backend, then re-evaluate the goal's milestone."""
        try:
            goal = await self._data.update_saving_goal(
                goal_id,
                {"current_amount": new_amount, "updated_at": self._clock().isoformat()},
            )
        except Exception as exc:
            self._log_failure("update_saving_goal", user_id, exc, goal_id=goal_id)
            return None
        if goal is None:
            return None

        progress = calculate_progress(goal)
        settings = await self._load_settings(user_id)
        if settings is not None and settings.saving_goal_alerts:
            progress.should_notify = await self._notify_milestone(user_id, progress)
        return progress

    async def send_completion_celebration(self, user_id: str, goal_name: str, target_amount: float) -> bool:
        return await self._gateway.send_goal_completion(user_id, goal_name, target_amount)

    async def send_motivation_reminder(self, user_id: str, goal_name: str, days_without_progress: int) -> bool:
        return await self._gateway.send_goal_motivation(user_id, goal_name, days_without_progress)

    async def get_progress_summary(self, user_id: str) -> ProgressSummary:
        try:
            goals = await self._data.get_saving_goals(user_id)
        except Exception as exc:
            self._log_failure("get_saving_goals", user_id, exc)
            return ProgressSummary()
        if not goals:
            return ProgressSummary()

        total_target = sum(goal.target_amount for goal in goals)
        total_current = sum(goal.current_amount for goal in goals)
        return ProgressSummary(
            total_goals=len(goals),
            completed_goals=sum(
                1 for goal in goals if goal.is_completed or goal.current_amount >= goal.target_amount
            ),
            total_target=total_target,
            total_current=total_current,
            overall_progress_pct=total_current / total_target * 100 if total_target > 0 else 0.0,
        )

    def reset(self, goal_id: str) -> None:
        self._ledger.reset(goal_id)

    async def _notify_milestone(self, user_id: str, progress: SavingGoalProgress) -> bool:
        milestone = progress.milestone_reached
        if milestone == 0:
            return False

        notified = self._ledger.notified(progress.id)
        if notified and milestone <= max(notified):
            return False

        sent = await self._gateway.send_saving_goal_progress(
            user_id,
            progress.name,
            progress.progress_percentage,
            progress.current_amount,
            progress.target_amount,
        )
        if sent:
            self._ledger.add(progress.id, milestone, self._clock())
        logger.info(
            {
                "event": "saving_goal_milestone",
                "goal_id": progress.id,
                "milestone": milestone,
                "sent": sent,
                "user": user_fingerprint(user_id),
            }
        )
        return sent

    async def _load_settings(self, user_id: str) -> Optional[UserSettings]:
        try:
            settings = await self._settings.get_user_settings(user_id)
        except Exception as exc:
            self._log_failure("get_user_settings", user_id, exc)
            return None
        return settings or UserSettings.defaults()

    @staticmethod
    def _log_failure(operation: str, user_id: str, exc: Exception, **extra: object) -> None:
        logger.warning(
            {
                "event": "monitor_provider_failure",
                "monitor": "saving_goal",
                "operation": operation,
                "user": user_fingerprint(user_id),
                "error": str(exc),
                **extra,
            }
        )
