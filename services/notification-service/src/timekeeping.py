"""Local-time windows used by the monitors. Every window is half-open: [start, end)."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Tuple

Clock = Callable[[], datetime]
Window = Tuple[datetime, datetime]


def local_now() -> datetime:
    """Timezone-aware wall clock in the host's local zone."""
    return datetime.now().astimezone()


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def day_window(moment: datetime) -> Window:
    start = start_of_day(moment)
    return start, start + timedelta(days=1)


def month_window(moment: datetime) -> Window:
    start = start_of_day(moment).replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def trailing_week_window(moment: datetime) -> Window:
    return moment - timedelta(days=7), moment


def calendar_date(moment: datetime) -> str:
    """YYYY-MM-DD of the local day, the key for once-per-day bookkeeping."""
    return moment.date().isoformat()


def parse_timestamp(raw: str, tz_fallback: datetime) -> datetime:
    """
    Parse an ISO-8601 timestamp from the backend.

    Date-only and naive values are read in the timezone of `tz_fallback`.
    """
    normalized = raw.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz_fallback.tzinfo)
    return parsed
