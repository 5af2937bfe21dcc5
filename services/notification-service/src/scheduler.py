"""
Per-monitor timing: a periodic timer, foreground re-checks and a minimum-spacing guard.

State machine: IDLE (no user) -> ARMED (user present, timer running) -> IDLE on
logout. Periodic ticks spawn each check as its own task, so stopping the
scheduler cancels only the timer. A check still awaiting its providers when the
user goes away finishes on its own and its result is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from shared.observability import monitor_check

logger = logging.getLogger(__name__)

MonitorCheck = Callable[[str], Awaitable[Any]]


class MonitorState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"


@dataclass(frozen=True)
class MonitorTiming:
    interval: float
    min_interval: float


MONITOR_TIMINGS: Dict[str, MonitorTiming] = {
    "budget": MonitorTiming(interval=30 * 60, min_interval=5 * 60),
    "saving_goal": MonitorTiming(interval=6 * 60 * 60, min_interval=60 * 60),
    "transaction": MonitorTiming(interval=2 * 60 * 60, min_interval=30 * 60),
}


class MonitorScheduler:
    def __init__(
        self,
        name: str,
        check: MonitorCheck,
        *,
        interval: float,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0 or min_interval < 0:
            raise ValueError("interval must be positive and min_interval non-negative")
        self.name = name
        self._check = check
        self._interval = interval
        self._min_interval = min_interval
        self._clock = clock

        self.state = MonitorState.IDLE
        self.user_id: Optional[str] = None
        self.last_result: Any = None
        self._last_check_at: Optional[float] = None
        self._guard_user: Optional[str] = None
        self._backgrounded = False
        self._generation = 0
        self._timer: Optional[asyncio.Task[None]] = None
        self._in_flight: Set[asyncio.Task[Any]] = set()

    @classmethod
    def for_monitor(cls, name: str, check: MonitorCheck, **kwargs: Any) -> "MonitorScheduler":
        timing = MONITOR_TIMINGS[name]
        return cls(name, check, interval=timing.interval, min_interval=timing.min_interval, **kwargs)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def on_user_available(self, user_id: str) -> Any:
        """Arm the timer for `user_id` and run one immediate check."""
        if self.state is MonitorState.ARMED:
            if self.user_id == user_id:
                return None
            self.on_user_unavailable()

        if self._guard_user != user_id:
            # The spacing guard is per user; a different user gets an immediate check.
            self._last_check_at = None
            self._guard_user = user_id
        self._generation += 1
        self.user_id = user_id
        self.state = MonitorState.ARMED
        self._timer = asyncio.create_task(self._run_timer(self._generation), name=f"{self.name}-timer")
        logger.info({"event": "monitor_armed", "monitor": self.name, "interval_seconds": self._interval})
        return await self.run_check()

    def on_user_unavailable(self) -> None:
        """Stop the timer. In-flight checks are left to finish; their results are discarded."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.state is MonitorState.ARMED:
            logger.info({"event": "monitor_stopped", "monitor": self.name, "in_flight": len(self._in_flight)})
        self._generation += 1
        self.user_id = None
        self.state = MonitorState.IDLE
        self._backgrounded = False

    def on_background(self) -> None:
        self._backgrounded = True

    async def on_foreground(self) -> Any:
        """Run an immediate check when coming back from the background."""
        was_backgrounded = self._backgrounded
        self._backgrounded = False
        if self.state is not MonitorState.ARMED or not was_backgrounded:
            return None
        return await self.run_check()

    async def run_check(self) -> Any:
        """Run the monitor's check unless one ran less than `min_interval` ago."""
        if self.state is not MonitorState.ARMED or self.user_id is None:
            return None

        now = self._clock()
        if self._last_check_at is not None and now - self._last_check_at < self._min_interval:
            logger.debug({"event": "monitor_check_skipped", "monitor": self.name, "reason": "too_frequent"})
            return None
        self._last_check_at = now

        generation = self._generation
        with monitor_check(self.name):
            try:
                result = await self._check(self.user_id)
            except Exception as exc:
                logger.warning({"event": "monitor_check_failed", "monitor": self.name, "error": str(exc)})
                result = None

        if generation != self._generation:
            logger.info({"event": "monitor_result_discarded", "monitor": self.name})
            return None
        self.last_result = result
        return result

    async def drain(self) -> None:
        """Wait for every spawned check to finish."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def _run_timer(self, generation: int) -> None:
        while generation == self._generation:
            await asyncio.sleep(self._interval)
            if generation != self._generation:
                return
            task = asyncio.create_task(self.run_check(), name=f"{self.name}-check")
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
