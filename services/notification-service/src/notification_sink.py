"""
Delivery boundary for notifications.

The sink is the only component that knows what is pending on the device: it
owns the registry of scheduled requests and hands out the ids the rest of the
service uses to cancel them. Only `NotificationGateway` calls into a sink.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable
from uuid import uuid4

from shared.observability.privacy import redact_fields
from shared.service_settings import ServiceSettings

from .models import NotificationPayload
from .schedule import NotificationSchedule, ScheduledRequest, next_fire_time
from .timekeeping import local_now

logger = logging.getLogger(__name__)

SAFE_DATA_KEYS = frozenset({"type"})


@runtime_checkable
class NotificationSink(Protocol):
    """
    Interface for swappable notification deliverers.

    `send_local_notification` and `schedule_notification` return the request id,
    or None when the platform refused the request (permission denied, invalid
    trigger). Implementations may also raise; the gateway treats both the same.
    """

    name: str

    async def send_local_notification(self, payload: NotificationPayload) -> Optional[str]:
        ...

    async def schedule_notification(
        self, payload: NotificationPayload, schedule: NotificationSchedule
    ) -> Optional[str]:
        ...

    async def cancel_notification(self, notification_id: str) -> bool:
        ...

    async def cancel_all_notifications(self) -> bool:
        ...

    async def get_all_scheduled(self) -> List[ScheduledRequest]:
        ...


class InMemoryNotificationSink:
    """
    Registry-backed sink: immediate notifications are recorded as delivered,
    scheduled ones wait in the registry until `deliver_due` fires them.
    """

    name = "memory"

    def __init__(self, *, clock: Callable[[], datetime] = local_now) -> None:
        self._clock = clock
        self._scheduled: dict[str, ScheduledRequest] = {}
        self.delivered: List[NotificationPayload] = []

    async def send_local_notification(self, payload: NotificationPayload) -> Optional[str]:
        notification_id = str(uuid4())
        delivered = await self._deliver(notification_id, payload)
        return notification_id if delivered else None

    async def schedule_notification(
        self, payload: NotificationPayload, schedule: NotificationSchedule
    ) -> Optional[str]:
        fire_at = next_fire_time(schedule, self._clock())
        if fire_at is None:
            logger.warning(
                {
                    "event": "notification_schedule_rejected",
                    "sink": self.name,
                    "reason": "no_future_occurrence",
                    "schedule": schedule.to_dict(),
                }
            )
            return None

        notification_id = str(uuid4())
        self._scheduled[notification_id] = ScheduledRequest(
            id=notification_id,
            payload=payload,
            schedule=schedule,
            next_fire_at=fire_at,
        )
        return notification_id

    async def cancel_notification(self, notification_id: str) -> bool:
        self._scheduled.pop(notification_id, None)
        return True

    async def cancel_all_notifications(self) -> bool:
        self._scheduled.clear()
        return True

    async def get_all_scheduled(self) -> List[ScheduledRequest]:
        return sorted(self._scheduled.values(), key=lambda request: request.next_fire_at)

    async def deliver_due(self, now: Optional[datetime] = None) -> List[str]:
        """
        Fire every scheduled request whose trigger time has passed.

        Repeating requests are re-armed for their next occurrence; one-shot
        requests leave the registry. A request the channel refuses or fails on
        stays untouched and is retried on the next call. Returns the ids that fired.
        """
        moment = now or self._clock()
        fired: List[str] = []
        for request in list(self._scheduled.values()):
            if request.next_fire_at > moment:
                continue
            try:
                delivered = await self._deliver(request.id, request.payload)
            except Exception as exc:
                logger.warning(
                    {
                        "event": "scheduled_delivery_failed",
                        "sink": self.name,
                        "notification_id": request.id,
                        "error": str(exc),
                    }
                )
                continue
            if not delivered:
                continue
            fired.append(request.id)

            following = next_fire_time(request.schedule, moment) if request.schedule.repeats else None
            if following is None:
                self._scheduled.pop(request.id, None)
            else:
                request.next_fire_at = following
        return fired

    async def _deliver(self, notification_id: str, payload: NotificationPayload) -> bool:
        self.delivered.append(payload)
        logger.info(
            {
                "event": "notification_delivered",
                "sink": self.name,
                "notification_id": notification_id,
                "data": redact_fields(payload.data, SAFE_DATA_KEYS),
            }
        )
        return True


def build_notification_sink(settings: ServiceSettings, *, http_client: Any = None) -> NotificationSink:
    """
    Factory that instantiates the configured sink implementation.
    """

    if settings.sink == "memory":
        return InMemoryNotificationSink()
    if settings.sink == "expo":
        from .providers.expo_push import ExpoPushNotificationSink

        return ExpoPushNotificationSink(settings.expo, http_client=http_client)

    raise ValueError(f"Unsupported notification sink '{settings.sink}'")
