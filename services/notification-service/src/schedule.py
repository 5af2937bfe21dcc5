"""
Notification trigger descriptions shared by the gateway and every sink.

A schedule is either relative (`seconds` from now, one-shot unless it repeats at
least once a minute) or calendar based, where each given component must match
and `repeats` re-arms the trigger after it fires. Weekdays use the mobile
scheduler convention: 1 = Sunday … 7 = Saturday.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional

from .models import NotificationPayload

# Far enough ahead to reach the next 29 February from any date.
_SEARCH_HORIZON_DAYS = 366 * 8
MIN_REPEATING_SECONDS = 60

_CALENDAR_RANGES = {
    "minute": (0, 59),
    "hour": (0, 23),
    "day": (1, 31),
    "month": (1, 12),
    "year": (1970, 9999),
    "weekday": (1, 7),
}


@dataclass(frozen=True)
class NotificationSchedule:
    seconds: Optional[int] = None
    minute: Optional[int] = None
    hour: Optional[int] = None
    day: Optional[int] = None
    month: Optional[int] = None
    year: Optional[int] = None
    weekday: Optional[int] = None
    repeats: bool = False

    def __post_init__(self) -> None:
        calendar_fields = self._calendar_fields()
        if self.seconds is not None:
            if calendar_fields:
                raise ValueError("A schedule is either relative (seconds) or calendar based, not both")
            if self.seconds <= 0:
                raise ValueError("seconds must be positive")
            if self.repeats and self.seconds < MIN_REPEATING_SECONDS:
                raise ValueError(f"Repeating relative schedules need at least {MIN_REPEATING_SECONDS} seconds")
            return

        if not calendar_fields:
            raise ValueError("Schedule needs either seconds or at least one calendar component")

        for name, value in calendar_fields.items():
            low, high = _CALENDAR_RANGES[name]
            if not low <= value <= high:
                raise ValueError(f"{name} must be between {low} and {high} (received {value})")

        if self.repeats and self.year is not None:
            raise ValueError("A repeating schedule cannot be pinned to a year")

    @property
    def is_relative(self) -> bool:
        return self.seconds is not None

    @classmethod
    def after(cls, seconds: int) -> "NotificationSchedule":
        return cls(seconds=seconds)

    @classmethod
    def daily(cls, hour: int, minute: int = 0) -> "NotificationSchedule":
        return cls(hour=hour, minute=minute, repeats=True)

    @classmethod
    def weekly(cls, weekday: int, hour: int, minute: int = 0) -> "NotificationSchedule":
        return cls(weekday=weekday, hour=hour, minute=minute, repeats=True)

    @classmethod
    def on_date(cls, when: date, hour: int, minute: int = 0) -> "NotificationSchedule":
        return cls(year=when.year, month=when.month, day=when.day, hour=hour, minute=minute)

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "NotificationSchedule":
        known = {key: raw[key] for key in ("seconds", *_CALENDAR_RANGES, "repeats") if raw.get(key) is not None}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    def _calendar_fields(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in _CALENDAR_RANGES if getattr(self, name) is not None}


@dataclass
class ScheduledRequest:
    """A notification the sink has accepted and not yet delivered (or re-armed)."""

    id: str
    payload: NotificationPayload
    schedule: NotificationSchedule
    next_fire_at: datetime


def mobile_weekday(day: date) -> int:
    """Map a date to the 1 = Sunday … 7 = Saturday convention."""
    return day.isoweekday() % 7 + 1


def next_fire_time(schedule: NotificationSchedule, now: datetime) -> Optional[datetime]:
    """
    Return the first moment strictly after `now` that satisfies `schedule`.

    Unspecified hour/minute components mean 0, except that a missing hour on a
    schedule with no date components fires every hour. Returns None when a
    calendar schedule has no future occurrence (a one-shot date in the past).
    """

    if schedule.is_relative:
        return now + timedelta(seconds=schedule.seconds)

    has_date_component = any(
        value is not None for value in (schedule.day, schedule.month, schedule.year, schedule.weekday)
    )
    if schedule.hour is not None:
        hours = [schedule.hour]
    elif has_date_component:
        hours = [0]
    else:
        hours = list(range(24))
    minute = schedule.minute or 0

    for offset in range(_SEARCH_HORIZON_DAYS):
        candidate_day = now.date() + timedelta(days=offset)
        if not _matches_day(schedule, candidate_day):
            continue
        for hour in hours:
            candidate = datetime.combine(candidate_day, time(hour, minute), tzinfo=now.tzinfo)
            if candidate > now:
                return candidate
    return None


def _matches_day(schedule: NotificationSchedule, day: date) -> bool:
    if schedule.year is not None and day.year != schedule.year:
        return False
    if schedule.month is not None and day.month != schedule.month:
        return False
    if schedule.day is not None and day.day != schedule.day:
        return False
    if schedule.weekday is not None and mobile_weekday(day) != schedule.weekday:
        return False
    return True
