import dataclasses

import pytest
from src.models import SavingGoal, UserSettings
from src.saving_goal_tracker import SavingGoalTracker, milestone_for


def _goal(current: float, target: float = 1_000_000, goal_id: str = "goal-1", **extra) -> SavingGoal:
    return SavingGoal(id=goal_id, user_id="user-1", name="Emergency Fund", target_amount=target, current_amount=current, **extra)


@pytest.fixture
def tracker(data, settings, gateway, clock) -> SavingGoalTracker:
    return SavingGoalTracker(data, settings, gateway, clock=clock)


@pytest.mark.parametrize(
    ("percentage", "milestone"),
    [(0, 0), (24.99, 0), (25, 25), (49.9, 25), (50, 50), (75, 75), (99.99, 75), (100, 100), (140, 100)],
)
def test_milestone_bands(percentage: float, milestone: int) -> None:
    assert milestone_for(percentage) == milestone


@pytest.mark.anyio
async def test_first_quarter_notifies_once(tracker, data, sink) -> None:
    data.add_goal(_goal(250_000))

    first = await tracker.track_all("user-1")
    second = await tracker.track_all("user-1")

    assert first[0].progress_percentage == pytest.approx(25)
    assert first[0].milestone_reached == 25
    assert first[0].should_notify is True
    assert second[0].should_notify is False
    assert len(sink.delivered) == 1


@pytest.mark.anyio
async def test_milestone_notifications_strictly_increase(tracker, data, sink) -> None:
    sent = []
    for amount in (250_000, 300_000, 800_000, 600_000, 800_000, 1_000_000, 500_000, 1_000_000):
        data.add_goal(_goal(amount))
        progress = (await tracker.track_all("user-1"))[0]
        if progress.should_notify:
            sent.append(progress.milestone_reached)

    assert sent == [25, 75, 100]
    assert [payload.data["type"] for payload in sink.delivered] == ["saving_goal"] * 3


@pytest.mark.anyio
async def test_reset_allows_renotification(tracker, data, sink) -> None:
    data.add_goal(_goal(500_000))
    await tracker.track_all("user-1")

    tracker.reset("goal-1")
    progress = await tracker.track_all("user-1")

    assert progress[0].should_notify is True
    assert len(sink.delivered) == 2


@pytest.mark.anyio
async def test_failed_send_leaves_milestone_pending(tracker, data, sink) -> None:
    data.add_goal(_goal(500_000))
    sink.refuse = True
    first = await tracker.track_all("user-1")

    sink.refuse = False
    second = await tracker.track_all("user-1")

    assert first[0].should_notify is False
    assert second[0].should_notify is True


@pytest.mark.anyio
async def test_goals_are_tracked_independently(tracker, data) -> None:
    data.add_goal(_goal(500_000, goal_id="goal-a"))
    data.add_goal(_goal(500_000, goal_id="goal-b"))

    progress = await tracker.track_all("user-1")

    assert [item.should_notify for item in progress] == [True, True]


@pytest.mark.anyio
async def test_master_switch_off_skips_tracking(tracker, data, settings, sink) -> None:
    data.add_goal(_goal(1_000_000))
    settings.settings["user-1"] = UserSettings(notification_enabled=False)

    assert await tracker.track_all("user-1") == []
    assert await tracker.send_completion_celebration("user-1", "Emergency Fund", 1_000_000) is False
    assert await tracker.send_motivation_reminder("user-1", "Emergency Fund", 40) is False
    assert sink.attempts == 0


@pytest.mark.anyio
async def test_goal_alerts_flag_off_skips_tracking(tracker, data, settings, sink) -> None:
    data.add_goal(_goal(1_000_000))
    settings.settings["user-1"] = UserSettings(saving_goal_alerts=False)

    assert await tracker.track_all("user-1") == []
    assert sink.attempts == 0


@pytest.mark.anyio
async def test_update_progress_writes_through_and_notifies(tracker, data, sink, clock) -> None:
    data.add_goal(_goal(100_000))

    progress = await tracker.update_progress("user-1", "goal-1", 760_000)

    assert progress is not None
    assert progress.milestone_reached == 75
    assert progress.should_notify is True
    assert data.goals["goal-1"].current_amount == 760_000
    assert data.goals["goal-1"].updated_at == clock().isoformat()
    assert sink.delivered[0].title == "🌟 Almost There!"


@pytest.mark.anyio
async def test_update_progress_unknown_goal_returns_none(tracker) -> None:
    assert await tracker.update_progress("user-1", "missing", 10) is None


@pytest.mark.anyio
async def test_motivation_below_a_week_never_reaches_sink(tracker, sink) -> None:
    assert await tracker.send_motivation_reminder("user-1", "Emergency Fund", 6) is False
    assert sink.attempts == 0

    assert await tracker.send_motivation_reminder("user-1", "Emergency Fund", 14) is True
    assert sink.delivered[-1].title == "🎯 Remember Your Target"


@pytest.mark.anyio
async def test_completion_celebration(tracker, sink) -> None:
    assert await tracker.send_completion_celebration("user-1", "Emergency Fund", 1_000_000) is True

    payload = sink.delivered[-1]
    assert payload.data["type"] == "saving_goal_completed"
    assert "Rp 1.000.000" in payload.body


@pytest.mark.anyio
async def test_progress_summary(tracker, data) -> None:
    data.add_goal(_goal(1_000_000, goal_id="done"))
    data.add_goal(_goal(250_000, target=500_000, goal_id="half"))
    data.add_goal(dataclasses.replace(_goal(0, target=500_000, goal_id="flagged"), is_completed=True))

    summary = await tracker.get_progress_summary("user-1")

    assert summary.total_goals == 3
    assert summary.completed_goals == 2
    assert summary.total_target == pytest.approx(2_000_000)
    assert summary.total_current == pytest.approx(1_250_000)
    assert summary.overall_progress_pct == pytest.approx(62.5)


@pytest.mark.anyio
async def test_progress_summary_without_goals(tracker) -> None:
    summary = await tracker.get_progress_summary("user-1")

    assert summary.total_goals == 0
    assert summary.overall_progress_pct == 0
