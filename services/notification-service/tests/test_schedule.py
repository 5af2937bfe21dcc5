from datetime import date, datetime, timedelta, timezone

import pytest
from src.schedule import NotificationSchedule, mobile_weekday, next_fire_time

NOW = datetime(2024, 5, 15, 10, 30, tzinfo=timezone.utc)  # a Wednesday


class TestValidation:
    def test_rejects_empty_schedule(self) -> None:
        with pytest.raises(ValueError):
            NotificationSchedule()

    def test_rejects_mixed_relative_and_calendar(self) -> None:
        with pytest.raises(ValueError):
            NotificationSchedule(seconds=60, hour=20)

    @pytest.mark.parametrize("fields", [{"hour": 24}, {"minute": 60}, {"weekday": 0}, {"weekday": 8}, {"day": 32}])
    def test_rejects_out_of_range_components(self, fields) -> None:
        with pytest.raises(ValueError):
            NotificationSchedule(**fields)

    def test_rejects_fast_repeating_relative_schedule(self) -> None:
        with pytest.raises(ValueError):
            NotificationSchedule(seconds=30, repeats=True)

    def test_rejects_repeating_schedule_pinned_to_year(self) -> None:
        with pytest.raises(ValueError):
            NotificationSchedule(year=2024, month=6, day=1, repeats=True)

    def test_from_mapping_ignores_unknown_and_null_keys(self) -> None:
        schedule = NotificationSchedule.from_mapping({"hour": 20, "minute": None, "repeats": True, "extra": 1})

        assert schedule == NotificationSchedule(hour=20, repeats=True)
        assert schedule.to_dict() == {"hour": 20, "repeats": True}


def test_mobile_weekday_starts_on_sunday() -> None:
    assert mobile_weekday(date(2024, 5, 19)) == 1  # Sunday
    assert mobile_weekday(date(2024, 5, 15)) == 4  # Wednesday
    assert mobile_weekday(date(2024, 5, 18)) == 7  # Saturday


def test_relative_schedule_fires_after_seconds() -> None:
    assert next_fire_time(NotificationSchedule.after(90), NOW) == NOW + timedelta(seconds=90)


def test_daily_schedule_later_today() -> None:
    fire_at = next_fire_time(NotificationSchedule.daily(20), NOW)

    assert fire_at == datetime(2024, 5, 15, 20, 0, tzinfo=timezone.utc)


def test_daily_schedule_already_passed_rolls_to_tomorrow() -> None:
    fire_at = next_fire_time(NotificationSchedule.daily(9, 15), NOW)

    assert fire_at == datetime(2024, 5, 16, 9, 15, tzinfo=timezone.utc)


def test_weekly_schedule_targets_next_sunday_evening() -> None:
    fire_at = next_fire_time(NotificationSchedule.weekly(1, 19), NOW)

    assert fire_at == datetime(2024, 5, 19, 19, 0, tzinfo=timezone.utc)


def test_weekly_schedule_on_the_same_day_after_the_hour_waits_a_week() -> None:
    sunday_night = datetime(2024, 5, 19, 19, 0, tzinfo=timezone.utc)

    assert next_fire_time(NotificationSchedule.weekly(1, 19), sunday_night) == datetime(
        2024, 5, 26, 19, 0, tzinfo=timezone.utc
    )


def test_one_shot_date_in_the_past_has_no_occurrence() -> None:
    assert next_fire_time(NotificationSchedule.on_date(date(2024, 5, 1), 10), NOW) is None


def test_one_shot_date_in_the_future() -> None:
    schedule = NotificationSchedule.on_date(date(2024, 5, 17), 18)

    assert next_fire_time(schedule, NOW) == datetime(2024, 5, 17, 18, 0, tzinfo=timezone.utc)


def test_minute_only_schedule_fires_every_hour() -> None:
    assert next_fire_time(NotificationSchedule(minute=45), NOW) == datetime(2024, 5, 15, 10, 45, tzinfo=timezone.utc)
    assert next_fire_time(NotificationSchedule(minute=15), NOW) == datetime(2024, 5, 15, 11, 15, tzinfo=timezone.utc)


def test_leap_day_schedule_finds_next_february_29th() -> None:
    schedule = NotificationSchedule(month=2, day=29, hour=8)

    assert next_fire_time(schedule, NOW) == datetime(2028, 2, 29, 8, 0, tzinfo=timezone.utc)
