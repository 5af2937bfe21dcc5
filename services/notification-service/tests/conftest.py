"""Pytest configuration for notification-service tests.

Puts the service root (for `src.*` imports) and the services directory (for
`shared.*`) on sys.path, and provides the clock/sink doubles most tests share.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import pytest

SERVICE_ROOT = Path(__file__).resolve().parents[1]
SERVICES_ROOT = SERVICE_ROOT.parent
for path in (SERVICE_ROOT, SERVICES_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from src.data_provider import InMemoryDataProvider, InMemorySettingsProvider  # noqa: E402
from src.gateway import NotificationGateway  # noqa: E402
from src.models import NotificationPayload  # noqa: E402
from src.notification_sink import InMemoryNotificationSink  # noqa: E402
from src.timekeeping import local_now  # noqa: E402

# Wednesday, 15 May 2024, mid-morning UTC.
START = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)


class MutableClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


class FlakySink(InMemoryNotificationSink):
    """In-memory sink whose immediate deliveries can be refused or made to raise."""

    def __init__(self, *, clock: Callable[[], datetime] = local_now) -> None:
        super().__init__(clock=clock)
        self.refuse = False
        self.error: Optional[Exception] = None
        self.attempts = 0

    async def send_local_notification(self, payload: NotificationPayload) -> Optional[str]:
        self.attempts += 1
        if self.error is not None:
            raise self.error
        return await super().send_local_notification(payload)

    async def _deliver(self, notification_id: str, payload: NotificationPayload) -> bool:
        if self.refuse:
            return False
        return await super()._deliver(notification_id, payload)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def sink(clock: MutableClock) -> FlakySink:
    return FlakySink(clock=clock)


@pytest.fixture
def data() -> InMemoryDataProvider:
    return InMemoryDataProvider()


@pytest.fixture
def settings() -> InMemorySettingsProvider:
    return InMemorySettingsProvider()


@pytest.fixture
def gateway(sink: FlakySink, settings: InMemorySettingsProvider, clock: MutableClock) -> NotificationGateway:
    return NotificationGateway(sink, settings, clock=clock)
