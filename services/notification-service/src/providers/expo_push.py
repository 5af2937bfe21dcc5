"""
Expo push notification sink.

Immediate notifications are posted to the Expo push API for the registered
device token. Scheduled requests stay in the in-process registry inherited from
`InMemoryNotificationSink` and are pushed when `deliver_due` finds them due.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import httpx
from shared.observability.privacy import redact_fields
from shared.service_settings import ExpoConfig

from ..http_client import BackendHttpClient
from ..models import NotificationPayload
from ..notification_sink import SAFE_DATA_KEYS, InMemoryNotificationSink
from ..timekeeping import local_now

logger = logging.getLogger(__name__)


class ExpoPushNotificationSink(InMemoryNotificationSink):
    name = "expo"

    def __init__(
        self,
        config: ExpoConfig,
        *,
        http_client: Optional[BackendHttpClient] = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        super().__init__(clock=clock)
        self._config = config
        self._http = http_client or BackendHttpClient(default_headers={"Accept": "application/json"})

    async def _deliver(self, notification_id: str, payload: NotificationPayload) -> bool:
        message = {
            "to": self._config.push_token,
            "title": payload.title,
            "body": payload.body,
            "data": payload.data,
            "sound": "default",
        }
        try:
            response, _ = await self._http.post(self._config.push_url, json=message)
        except httpx.HTTPError as exc:
            logger.warning(
                {
                    "event": "push_delivery_failed",
                    "sink": self.name,
                    "notification_id": notification_id,
                    "error": str(exc),
                }
            )
            return False

        try:
            ticket = _first_ticket(response.json())
        except ValueError:
            ticket = {"status": "error", "message": "non-JSON push response"}
        if ticket.get("status") != "ok":
            logger.warning(
                {
                    "event": "push_delivery_rejected",
                    "sink": self.name,
                    "notification_id": notification_id,
                    "details": ticket.get("details"),
                    "message": ticket.get("message"),
                }
            )
            return False

        logger.info(
            {
                "event": "notification_delivered",
                "sink": self.name,
                "notification_id": notification_id,
                "ticket_id": ticket.get("id"),
                "data": redact_fields(payload.data, SAFE_DATA_KEYS),
            }
        )
        return True


def _first_ticket(body: Any) -> Dict[str, Any]:
    data = body.get("data") if isinstance(body, dict) else None
    if isinstance(data, list):
        data = data[0] if data else None
    return data if isinstance(data, dict) else {}
