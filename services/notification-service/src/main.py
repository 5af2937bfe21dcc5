"""
Notification Service host: exposes the monitoring and dispatch core over HTTP.

A host application (mobile backend, session service) reports logins, logouts
and app lifecycle transitions here; the service runs the monitors on their
schedules and pushes due notifications through the configured sink.
"""

import asyncio
import logging
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from shared.observability import bind_request_context, ensure_request_id, reset_request_context, setup_telemetry
from shared.service_settings import ServiceSettings, ServiceSettingsError, load_service_settings

from .manager import NotificationManager, build_notification_manager
from .persistence.database import init_db

app = FastAPI(title="Notification Service")
setup_telemetry(app, service_name="notification-service")
logger = logging.getLogger(__name__)

DELIVERY_POLL_SECONDS = 60.0

try:
    SERVICE_SETTINGS = load_service_settings()
except ServiceSettingsError as exc:
    logger.error("Failed to load notification service settings: %s", exc)
    raise

NOTIFICATION_MANAGER: NotificationManager = build_notification_manager(SERVICE_SETTINGS)


def reload_notification_manager_for_tests() -> None:
    """
    Refresh manager wiring after tests mutate environment variables.
    """

    global SERVICE_SETTINGS
    global NOTIFICATION_MANAGER

    SERVICE_SETTINGS = load_service_settings()
    NOTIFICATION_MANAGER = build_notification_manager(SERVICE_SETTINGS)


class SessionRequest(BaseModel):
    user_id: str = Field(min_length=1)


class LifecycleRequest(BaseModel):
    state: Literal["foreground", "background"]


class CategoryCheckRequest(BaseModel):
    category_id: str
    budget_amount: float


class GoalProgressRequest(BaseModel):
    new_amount: float = Field(ge=0)


class ChallengeRemindersRequest(BaseModel):
    challenge_title: str
    end_date: date


class ScheduledNotificationModel(BaseModel):
    id: str
    title: str
    body: str
    data: Dict[str, Any]
    schedule: Dict[str, Any]
    next_fire_at: str


def error_response(status_code: int, error_code: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error_code, "details": details},
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = ensure_request_id(request)
    token = bind_request_context(request_id)
    try:
        response = await call_next(request)
        response.headers.setdefault("x-request-id", request_id)
        return response
    finally:
        reset_request_context(token)


async def _deliver_due_loop(settings: ServiceSettings) -> None:
    while True:
        await asyncio.sleep(DELIVERY_POLL_SECONDS)
        deliver_due = getattr(NOTIFICATION_MANAGER.sink, "deliver_due", None)
        if deliver_due is None:
            continue
        try:
            fired = await deliver_due()
        except Exception as exc:
            logger.warning({"event": "scheduled_delivery_failed", "sink": settings.sink, "error": str(exc)})
            continue
        if fired:
            logger.info({"event": "scheduled_delivery", "sink": settings.sink, "count": len(fired)})


@app.on_event("startup")
async def on_startup() -> None:
    """Initialize ledger persistence and start pushing scheduled notifications."""
    if SERVICE_SETTINGS.persist_ledgers:
        init_db(SERVICE_SETTINGS.ledger_db_url)
    app.state.delivery_task = asyncio.create_task(_deliver_due_loop(SERVICE_SETTINGS))


@app.on_event("shutdown")
async def on_shutdown() -> None:
    task: Optional[asyncio.Task] = getattr(app.state, "delivery_task", None)
    if task is not None:
        task.cancel()
    await NOTIFICATION_MANAGER.logout()


@app.get("/health")
def health_check() -> dict:
    """Reports service liveness plus which backends are wired in."""
    return {
        "status": "ok",
        "service": "notification-service",
        "data_provider": SERVICE_SETTINGS.data_provider,
        "sink": SERVICE_SETTINGS.sink,
        "persist_ledgers": SERVICE_SETTINGS.persist_ledgers,
    }


@app.post("/sessions")
async def start_session(payload: SessionRequest) -> Dict[str, Any]:
    report = await NOTIFICATION_MANAGER.login(payload.user_id)
    return {
        "user_id": report.user_id,
        "daily_reminder": report.daily_reminder,
        "weekly_summary": report.weekly_summary,
        "monitors": {scheduler.name: scheduler.state.value for scheduler in NOTIFICATION_MANAGER.schedulers},
    }


@app.delete("/sessions")
async def end_session() -> Dict[str, Any]:
    await NOTIFICATION_MANAGER.logout()
    return {"monitors": {scheduler.name: scheduler.state.value for scheduler in NOTIFICATION_MANAGER.schedulers}}


@app.post("/lifecycle")
async def lifecycle(payload: LifecycleRequest) -> Dict[str, Any]:
    if payload.state == "background":
        NOTIFICATION_MANAGER.on_background()
        return {"state": payload.state, "checked": []}

    results = await NOTIFICATION_MANAGER.on_foreground()
    return {"state": payload.state, "checked": [name for name, result in results.items() if result is not None]}


@app.get("/users/{user_id}/budgets/status")
async def budget_statuses(user_id: str) -> List[Dict[str, Any]]:
    statuses = await NOTIFICATION_MANAGER.budget_monitor.get_statuses(user_id)
    return [asdict(status) for status in statuses]


@app.post("/users/{user_id}/budgets/check")
async def check_budgets(user_id: str) -> List[Dict[str, Any]]:
    statuses = await NOTIFICATION_MANAGER.budget_monitor.check_thresholds(user_id)
    return [asdict(status) for status in statuses]


@app.post("/users/{user_id}/budgets/check-category", response_model=None)
async def check_budget_category(user_id: str, payload: CategoryCheckRequest):
    status = await NOTIFICATION_MANAGER.budget_monitor.check_specific(
        user_id, payload.category_id, payload.budget_amount
    )
    if status is None:
        return error_response(409, "check_unavailable", "Budget check skipped or failed for this category.")
    return asdict(status)


@app.post("/users/{user_id}/saving-goals/track")
async def track_saving_goals(user_id: str) -> List[Dict[str, Any]]:
    progress = await NOTIFICATION_MANAGER.saving_goal_tracker.track_all(user_id)
    return [asdict(item) for item in progress]


@app.get("/users/{user_id}/saving-goals/progress-summary")
async def saving_goal_summary(user_id: str) -> Dict[str, Any]:
    summary = await NOTIFICATION_MANAGER.saving_goal_tracker.get_progress_summary(user_id)
    return asdict(summary)


@app.post("/users/{user_id}/saving-goals/{goal_id}/progress", response_model=None)
async def update_saving_goal_progress(user_id: str, goal_id: str, payload: GoalProgressRequest):
    progress = await NOTIFICATION_MANAGER.saving_goal_tracker.update_progress(user_id, goal_id, payload.new_amount)
    if progress is None:
        return error_response(404, "goal_not_updated", f"Saving goal '{goal_id}' could not be updated.")
    return asdict(progress)


@app.post("/users/{user_id}/transactions/reminder")
async def send_transaction_reminder(user_id: str) -> Dict[str, bool]:
    return {"sent": await NOTIFICATION_MANAGER.transaction_reminder.send_smart_reminder(user_id)}


@app.post("/users/{user_id}/transactions/weekly-summary")
async def send_weekly_summary(user_id: str) -> Dict[str, bool]:
    return {"sent": await NOTIFICATION_MANAGER.transaction_reminder.send_weekly_summary(user_id)}


@app.post("/users/{user_id}/challenges/reminders")
async def setup_challenge_reminders(user_id: str, payload: ChallengeRemindersRequest) -> Dict[str, bool]:
    scheduled = await NOTIFICATION_MANAGER.gateway.setup_challenge_reminders(
        user_id, payload.challenge_title, payload.end_date
    )
    return {"scheduled": scheduled}


@app.get("/notifications/scheduled")
async def list_scheduled() -> List[ScheduledNotificationModel]:
    requests = await NOTIFICATION_MANAGER.gateway.get_all_scheduled()
    return [
        ScheduledNotificationModel(
            id=request.id,
            title=request.payload.title,
            body=request.payload.body,
            data=request.payload.data,
            schedule=request.schedule.to_dict(),
            next_fire_at=request.next_fire_at.isoformat(),
        )
        for request in requests
    ]


@app.delete("/notifications/scheduled")
async def cancel_all_scheduled() -> Dict[str, bool]:
    return {"cancelled": await NOTIFICATION_MANAGER.gateway.cancel_all_notifications()}


@app.delete("/notifications/scheduled/{notification_id}")
async def cancel_scheduled(notification_id: str) -> Dict[str, bool]:
    return {"cancelled": await NOTIFICATION_MANAGER.gateway.cancel_notification(notification_id)}
