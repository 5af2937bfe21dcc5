from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import sessionmaker
from src.budget_monitor import BudgetMonitor
from src.ledger import (
    CooldownLedger,
    InMemoryCooldownLedger,
    InMemoryMilestoneLedger,
    MilestoneLedger,
    SqlCooldownLedger,
    SqlMilestoneLedger,
)
from src.models import Budget, Category, Transaction
from src.persistence import Base, create_ledger_engine

MOMENT = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)


def _session_factory(db_path):
    engine = create_ledger_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(bind=engine)
    return engine, sessionmaker(bind=engine, expire_on_commit=False, future=True)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "nested" / "ledgers.db"


def test_ledgers_satisfy_protocols(db_path) -> None:
    _, factory = _session_factory(db_path)

    assert isinstance(InMemoryCooldownLedger(), CooldownLedger)
    assert isinstance(SqlCooldownLedger(factory), CooldownLedger)
    assert isinstance(InMemoryMilestoneLedger(), MilestoneLedger)
    assert isinstance(SqlMilestoneLedger(factory), MilestoneLedger)


def test_sqlite_parent_directory_is_created(db_path) -> None:
    _session_factory(db_path)

    assert db_path.parent.is_dir()


def test_cooldown_survives_new_engine(db_path) -> None:
    engine, factory = _session_factory(db_path)
    SqlCooldownLedger(factory).stamp("budget-food", MOMENT)
    engine.dispose()

    _, reopened = _session_factory(db_path)
    ledger = SqlCooldownLedger(reopened)

    assert ledger.get("budget-food") == MOMENT
    assert ledger.get("budget-other") is None


def test_cooldown_stamp_overwrites_and_reset_clears(db_path) -> None:
    _, factory = _session_factory(db_path)
    ledger = SqlCooldownLedger(factory)

    ledger.stamp("budget-food", MOMENT)
    ledger.stamp("budget-food", MOMENT + timedelta(days=1))
    assert ledger.get("budget-food") == MOMENT + timedelta(days=1)

    ledger.reset("budget-food")
    assert ledger.get("budget-food") is None


def test_cooldown_normalizes_offsets_to_utc(db_path) -> None:
    _, factory = _session_factory(db_path)
    ledger = SqlCooldownLedger(factory)
    jakarta = timezone(timedelta(hours=7))

    ledger.stamp("budget-food", datetime(2024, 5, 15, 17, 0, tzinfo=jakarta))

    assert ledger.get("budget-food") == MOMENT


def test_milestones_survive_new_engine_and_are_idempotent(db_path) -> None:
    engine, factory = _session_factory(db_path)
    ledger = SqlMilestoneLedger(factory)
    ledger.add("goal-1", 25, MOMENT)
    ledger.add("goal-1", 25, MOMENT)
    ledger.add("goal-1", 50, MOMENT)
    ledger.add("goal-2", 100, MOMENT)
    engine.dispose()

    _, reopened = _session_factory(db_path)
    ledger = SqlMilestoneLedger(reopened)

    assert ledger.notified("goal-1") == frozenset({25, 50})
    ledger.reset("goal-1")
    assert ledger.notified("goal-1") == frozenset()
    assert ledger.notified("goal-2") == frozenset({100})


@pytest.mark.anyio
async def test_budget_cooldown_persists_across_monitor_instances(db_path, data, settings, gateway, clock, sink) -> None:
    data.add_category(Category(id="cat-food", name="Food"))
    data.add_budget(Budget(id="budget-food", user_id="user-1", category_id="cat-food", amount=100))
    data.add_transaction(
        Transaction(id="tx-1", user_id="user-1", category_id="cat-food", amount=95, type="expense", date="2024-05-10")
    )
    _, factory = _session_factory(db_path)

    first = BudgetMonitor(data, settings, gateway, ledger=SqlCooldownLedger(factory), clock=clock)
    assert (await first.check_thresholds("user-1"))[0].should_alert is True

    restarted = BudgetMonitor(data, settings, gateway, ledger=SqlCooldownLedger(factory), clock=clock)
    clock.advance(hours=1)
    assert (await restarted.check_thresholds("user-1"))[0].should_alert is False
    assert len(sink.delivered) == 1
