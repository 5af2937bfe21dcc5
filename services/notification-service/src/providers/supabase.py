"""
Supabase-backed data and settings providers.

Both talk to the project's PostgREST endpoint (`/rest/v1/<table>`) through
`BackendHttpClient`, validate rows with pydantic, and hand the monitors plain
dataclasses. Errors propagate; the monitors decide what a failure means.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from shared.service_settings import SupabaseConfig

from ..http_client import DEFAULT_TIMEOUT, BackendHttpClient
from ..models import Budget, Category, SavingGoal, Transaction, UserSettings

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"
QueryParams = Sequence[Tuple[str, str]]


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class BudgetRow(_Row):
    id: str
    user_id: str
    category_id: str
    amount: float
    period: Optional[Literal["daily", "weekly", "monthly", "yearly"]] = None


class CategoryRow(_Row):
    id: str
    name: str
    type: Literal["income", "expense"] = "expense"


class SavingGoalRow(_Row):
    id: str
    user_id: str
    name: str
    target_amount: float
    current_amount: float = 0.0
    target_date: Optional[str] = None
    is_completed: bool = False
    updated_at: Optional[str] = None


class TransactionRow(_Row):
    id: str
    user_id: str
    amount: float
    type: Literal["income", "expense"]
    date: str
    category_id: Optional[str] = None


class UserSettingsRow(_Row):
    # Columns are nullable; a null flag means the feature was never switched off.
    notification_enabled: Optional[bool] = True
    budget_alert_threshold: Optional[float] = None
    daily_reminder_enabled: Optional[bool] = True
    weekly_summary_enabled: Optional[bool] = True
    saving_goal_alerts: Optional[bool] = True
    transaction_reminders: Optional[bool] = True


def build_backend_client(
    config: SupabaseConfig, *, timeout: httpx.Timeout | float = DEFAULT_TIMEOUT
) -> BackendHttpClient:
    headers = {
        "apikey": config.api_key,
        "Authorization": f"Bearer {config.api_key}",
        "X-Client-Info": "budgetwise-notification-service",
    }
    return BackendHttpClient(base_url=config.url + REST_PREFIX, default_headers=headers, timeout=timeout)


class _SupabaseTables:
    def __init__(self, config: Optional[SupabaseConfig], http_client: Optional[BackendHttpClient]) -> None:
        if http_client is None:
            if config is None:
                raise ValueError("Supabase providers need either a SupabaseConfig or an http_client")
            http_client = build_backend_client(config)
        self._http = http_client

    async def _select(self, table: str, params: QueryParams) -> List[Dict[str, Any]]:
        response, _ = await self._http.get(f"/{table}", params=[("select", "*"), *params])
        rows = response.json()
        if not isinstance(rows, list):
            raise ValueError(f"Unexpected payload from {table}: expected a list of rows")
        return rows

    async def _update(self, table: str, params: QueryParams, patch: Dict[str, Any]) -> List[Dict[str, Any]]:
        response, _ = await self._http.patch(
            f"/{table}",
            params=list(params),
            json=patch,
            headers={"Prefer": "return=representation"},
        )
        if not response.content:
            return []
        return response.json()


class SupabaseDataProvider(_SupabaseTables):
    name = "supabase"

    def __init__(
        self,
        config: Optional[SupabaseConfig] = None,
        *,
        http_client: Optional[BackendHttpClient] = None,
    ) -> None:
        super().__init__(config, http_client)

    async def get_budgets(self, user_id: str) -> List[Budget]:
        rows = await self._select("budgets", [("user_id", f"eq.{user_id}"), ("order", "created_at.desc")])
        return [Budget(**BudgetRow.model_validate(row).model_dump()) for row in rows]

    async def get_budget_spending(self, user_id: str, category_id: str, start_iso: str, end_iso: str) -> float:
        response, _ = await self._http.get(
            "/transactions",
            params=[
                ("select", "amount"),
                ("user_id", f"eq.{user_id}"),
                ("category_id", f"eq.{category_id}"),
                ("type", "eq.expense"),
                ("date", f"gte.{start_iso}"),
                ("date", f"lt.{end_iso}"),
            ],
        )
        return float(sum(_coerce_amount(row.get("amount")) for row in response.json()))

    async def get_categories(self, category_type: Optional[str] = None) -> List[Category]:
        params: List[Tuple[str, str]] = [("order", "name.asc")]
        if category_type:
            params.append(("type", f"eq.{category_type}"))
        rows = await self._select("categories", params)
        return [Category(**CategoryRow.model_validate(row).model_dump()) for row in rows]

    async def get_saving_goals(self, user_id: str) -> List[SavingGoal]:
        rows = await self._select("saving_goals", [("user_id", f"eq.{user_id}"), ("order", "created_at.desc")])
        return [SavingGoal(**SavingGoalRow.model_validate(row).model_dump()) for row in rows]

    async def update_saving_goal(self, goal_id: str, patch: Dict[str, Any]) -> Optional[SavingGoal]:
        body = {**patch, "updated_at": patch.get("updated_at") or datetime.now(timezone.utc).isoformat()}
        rows = await self._update("saving_goals", [("id", f"eq.{goal_id}")], body)
        if not rows:
            return None
        return SavingGoal(**SavingGoalRow.model_validate(rows[0]).model_dump())

    async def get_transactions(
        self,
        user_id: str,
        *,
        start_date: str,
        end_date: str,
        limit: Optional[int] = None,
    ) -> List[Transaction]:
        params: List[Tuple[str, str]] = [
            ("user_id", f"eq.{user_id}"),
            ("date", f"gte.{start_date}"),
            ("date", f"lt.{end_date}"),
            ("order", "date.desc"),
        ]
        if limit is not None:
            params.append(("limit", str(limit)))
        rows = await self._select("transactions", params)
        return [Transaction(**TransactionRow.model_validate(row).model_dump()) for row in rows]


class SupabaseSettingsProvider(_SupabaseTables):
    name = "supabase"

    def __init__(
        self,
        config: Optional[SupabaseConfig] = None,
        *,
        http_client: Optional[BackendHttpClient] = None,
    ) -> None:
        super().__init__(config, http_client)

    async def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        rows = await self._select("user_settings", [("user_id", f"eq.{user_id}"), ("limit", "1")])
        if not rows:
            return None
        try:
            row = UserSettingsRow.model_validate(rows[0])
        except ValidationError:
            logger.warning({"event": "user_settings_invalid", "table": "user_settings"})
            raise

        return UserSettings(**row.model_dump(exclude_none=True))

    async def update_user_settings(self, user_id: str, patch: Dict[str, Any]) -> None:
        await self._update("user_settings", [("user_id", f"eq.{user_id}")], patch)


def _coerce_amount(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0
