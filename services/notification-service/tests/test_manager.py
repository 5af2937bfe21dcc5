import pytest
from shared.service_settings import ServiceSettings
from src.ledger import SqlCooldownLedger, SqlMilestoneLedger
from src.manager import NotificationManager, build_notification_manager
from src.models import Budget, Category, Transaction, UserSettings
from src.persistence import init_db
from src.persistence.database import get_session_factory
from src.scheduler import MonitorState


@pytest.fixture
def manager(data, settings, sink) -> NotificationManager:
    return NotificationManager(data, settings, sink)


@pytest.mark.anyio
async def test_login_arms_monitors_and_recurring_reminders(manager, sink) -> None:
    report = await manager.login("user-1")

    assert report.daily_reminder is True
    assert report.weekly_summary is True
    assert report.initial_checks["budget"] == []
    assert report.initial_checks["saving_goal"] == []
    assert {scheduler.state for scheduler in manager.schedulers} == {MonitorState.ARMED}
    scheduled = await sink.get_all_scheduled()
    assert sorted(request.payload.data["type"] for request in scheduled) == ["daily_review", "weekly_review_trigger"]
    await manager.logout()


@pytest.mark.anyio
async def test_login_clears_previous_schedules(manager, sink) -> None:
    await manager.login("user-1")
    await manager.login("user-2")

    assert len(await sink.get_all_scheduled()) == 2
    assert manager.user_id == "user-2"
    assert {scheduler.user_id for scheduler in manager.schedulers} == {"user-2"}
    await manager.logout()


@pytest.mark.anyio
async def test_initial_budget_check_reports_statuses(manager, data) -> None:
    data.add_category(Category(id="cat-food", name="Food"))
    data.add_budget(Budget(id="budget-food", user_id="user-1", category_id="cat-food", amount=100))

    report = await manager.login("user-1")

    assert [status.id for status in report.initial_checks["budget"]] == ["budget-food"]
    assert report.initial_checks["budget"][0].spent == 0
    await manager.logout()


@pytest.mark.anyio
async def test_muted_user_gets_nothing_scheduled(manager, settings, sink) -> None:
    settings.settings["user-1"] = UserSettings(notification_enabled=False)

    report = await manager.login("user-1")

    assert report.daily_reminder is False
    assert report.weekly_summary is False
    assert await sink.get_all_scheduled() == []
    await manager.logout()


@pytest.mark.anyio
async def test_logout_stops_every_monitor(manager) -> None:
    await manager.login("user-1")
    await manager.logout()

    assert manager.user_id is None
    assert {scheduler.state for scheduler in manager.schedulers} == {MonitorState.IDLE}


@pytest.mark.anyio
async def test_foreground_right_after_login_is_throttled(manager) -> None:
    await manager.login("user-1")

    manager.on_background()
    results = await manager.on_foreground()

    assert results == {"budget": None, "saving_goal": None, "transaction": None}
    await manager.logout()


def test_scheduler_lookup(manager) -> None:
    assert manager.scheduler("budget").name == "budget"
    with pytest.raises(KeyError):
        manager.scheduler("unknown")


@pytest.mark.anyio
async def test_build_manager_with_persisted_ledgers(tmp_path) -> None:
    db_url = f"sqlite:///{tmp_path / 'ledgers.db'}"
    init_db(db_url)
    service_settings = ServiceSettings(
        data_provider="memory",
        sink="memory",
        timeout_seconds=1,
        persist_ledgers=True,
        ledger_db_url=db_url,
    )

    manager = build_notification_manager(service_settings, session_factory=get_session_factory(db_url))

    assert isinstance(manager.budget_monitor._ledger, SqlCooldownLedger)
    assert isinstance(manager.saving_goal_tracker._ledger, SqlMilestoneLedger)

    manager.data_provider.add_category(Category(id="cat-food", name="Food"))
    manager.data_provider.add_budget(Budget(id="budget-food", user_id="user-1", category_id="cat-food", amount=0))
    manager.data_provider.add_transaction(
        Transaction(id="tx-1", user_id="user-1", category_id="cat-food", amount=1, type="expense", date="2024-05-01")
    )
    statuses = await manager.budget_monitor.get_statuses("user-1")
    assert [status.id for status in statuses] == ["budget-food"]


def test_build_manager_defaults_to_in_memory_ledgers() -> None:
    service_settings = ServiceSettings(data_provider="memory", sink="memory", timeout_seconds=1, persist_ledgers=False)

    manager = build_notification_manager(service_settings)

    assert manager.data_provider.name == "memory"
    assert manager.sink.name == "memory"
    assert not isinstance(manager.budget_monitor._ledger, SqlCooldownLedger)
