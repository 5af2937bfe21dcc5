"""
Read/write contracts for the user data the monitors evaluate.

The monitors never talk to the hosted database directly: they receive a
`DataProvider` (budgets, spend, goals, transactions) and a `SettingsProvider`
(notification preferences). The in-memory implementations back offline runs
and tests; `providers.supabase` implements both against the hosted backend.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from shared.service_settings import ServiceSettings

from .models import Budget, Category, SavingGoal, Transaction, UserSettings
from .timekeeping import parse_timestamp

# Naive timestamps stored without an offset are read as UTC.
_UTC_REFERENCE = datetime(1970, 1, 1, tzinfo=timezone.utc)


@runtime_checkable
class DataProvider(Protocol):
    """
    Interface for the budget/goal/transaction backend.

    Every method may raise on transport or backend errors; the monitors catch
    at their own boundary.
    """

    name: str

    async def get_budgets(self, user_id: str) -> List[Budget]:
        ...

    async def get_budget_spending(self, user_id: str, category_id: str, start_iso: str, end_iso: str) -> float:
        """Sum of expense amounts for the category with `start_iso <= date < end_iso`."""
        ...

    async def get_categories(self, category_type: Optional[str] = None) -> List[Category]:
        ...

    async def get_saving_goals(self, user_id: str) -> List[SavingGoal]:
        ...

    async def update_saving_goal(self, goal_id: str, patch: Dict[str, Any]) -> Optional[SavingGoal]:
        ...

    async def get_transactions(
        self,
        user_id: str,
        *,
        start_date: str,
        end_date: str,
        limit: Optional[int] = None,
    ) -> List[Transaction]:
        """Transactions with `start_date <= date < end_date`, newest first."""
        ...


@runtime_checkable
class SettingsProvider(Protocol):
    name: str

    async def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        """The user's preferences, or None when the user has no settings row."""
        ...

    async def update_user_settings(self, user_id: str, patch: Dict[str, Any]) -> None:
        ...


class InMemoryDataProvider:
    """Process-local backend suitable for tests or offline demos."""

    name = "memory"

    def __init__(
        self,
        *,
        budgets: Iterable[Budget] = (),
        categories: Iterable[Category] = (),
        goals: Iterable[SavingGoal] = (),
        transactions: Iterable[Transaction] = (),
    ) -> None:
        self.budgets: List[Budget] = list(budgets)
        self.categories: List[Category] = list(categories)
        self.goals: Dict[str, SavingGoal] = {goal.id: goal for goal in goals}
        self.transactions: List[Transaction] = list(transactions)

    def add_budget(self, budget: Budget) -> None:
        self.budgets.append(budget)

    def add_category(self, category: Category) -> None:
        self.categories.append(category)

    def add_goal(self, goal: SavingGoal) -> None:
        self.goals[goal.id] = goal

    def add_transaction(self, transaction: Transaction) -> None:
        self.transactions.append(transaction)

    async def get_budgets(self, user_id: str) -> List[Budget]:
        return [budget for budget in self.budgets if budget.user_id == user_id]

    async def get_budget_spending(self, user_id: str, category_id: str, start_iso: str, end_iso: str) -> float:
        matching = self._in_window(user_id, start_iso, end_iso)
        return float(
            sum(
                transaction.amount
                for transaction in matching
                if transaction.type == "expense" and transaction.category_id == category_id
            )
        )

    async def get_categories(self, category_type: Optional[str] = None) -> List[Category]:
        if category_type is None:
            return list(self.categories)
        return [category for category in self.categories if category.type == category_type]

    async def get_saving_goals(self, user_id: str) -> List[SavingGoal]:
        return [goal for goal in self.goals.values() if goal.user_id == user_id]

    async def update_saving_goal(self, goal_id: str, patch: Dict[str, Any]) -> Optional[SavingGoal]:
        goal = self.goals.get(goal_id)
        if goal is None:
            return None

        allowed = {item.name for item in dataclasses.fields(SavingGoal)} - {"id", "user_id"}
        updated = dataclasses.replace(goal, **{key: value for key, value in patch.items() if key in allowed})
        self.goals[goal_id] = updated
        return updated

    async def get_transactions(
        self,
        user_id: str,
        *,
        start_date: str,
        end_date: str,
        limit: Optional[int] = None,
    ) -> List[Transaction]:
        matching = sorted(
            self._in_window(user_id, start_date, end_date),
            key=lambda transaction: parse_timestamp(transaction.date, _UTC_REFERENCE),
            reverse=True,
        )
        if limit is not None:
            return matching[:limit]
        return matching

    def _in_window(self, user_id: str, start_iso: str, end_iso: str) -> List[Transaction]:
        start = parse_timestamp(start_iso, _UTC_REFERENCE)
        end = parse_timestamp(end_iso, _UTC_REFERENCE)
        return [
            transaction
            for transaction in self.transactions
            if transaction.user_id == user_id
            and start <= parse_timestamp(transaction.date, start) < end
        ]


class InMemorySettingsProvider:
    name = "memory"

    def __init__(self, settings: Optional[Dict[str, UserSettings]] = None) -> None:
        self.settings: Dict[str, UserSettings] = dict(settings or {})

    async def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        return self.settings.get(user_id)

    async def update_user_settings(self, user_id: str, patch: Dict[str, Any]) -> None:
        current = self.settings.get(user_id) or UserSettings.defaults()
        allowed = {item.name for item in dataclasses.fields(UserSettings)}
        self.settings[user_id] = dataclasses.replace(
            current, **{key: value for key, value in patch.items() if key in allowed}
        )


def build_data_provider(settings: ServiceSettings, *, http_client: Any = None) -> DataProvider:
    """
    Factory that instantiates the configured data provider implementation.
    """

    if settings.data_provider == "memory":
        return InMemoryDataProvider()
    if settings.data_provider == "supabase":
        from .providers.supabase import SupabaseDataProvider, build_backend_client

        client = http_client or build_backend_client(settings.supabase, timeout=settings.timeout_seconds)
        return SupabaseDataProvider(settings.supabase, http_client=client)

    raise ValueError(f"Unsupported data provider '{settings.data_provider}'")


def build_settings_provider(settings: ServiceSettings, *, http_client: Any = None) -> SettingsProvider:
    if settings.data_provider == "memory":
        return InMemorySettingsProvider()
    if settings.data_provider == "supabase":
        from .providers.supabase import SupabaseSettingsProvider, build_backend_client

        client = http_client or build_backend_client(settings.supabase, timeout=settings.timeout_seconds)
        return SupabaseSettingsProvider(settings.supabase, http_client=client)

    raise ValueError(f"Unsupported settings provider '{settings.data_provider}'")
