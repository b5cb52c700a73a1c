from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from manager_schedule.clients.notifications import NotificationClient
from manager_schedule.schemas.schedule import Appointment
from manager_schedule.services.exceptions import NotificationError, ServiceError
from manager_schedule.services.mock_store import NotificationRepository, get_mock_store

logger = logging.getLogger(__name__)

APPOINTMENT_MOVED_TEMPLATE = "appointment_moved"


class NotificationService:
    """Fire-and-forget customer messages about schedule changes."""

    def __init__(
        self,
        client: NotificationClient,
        *,
        repository: NotificationRepository | None = None,
    ) -> None:
        self._client = client
        self._repository = repository
        if self._client.use_mock_data:
            self._repository = repository or get_mock_store().notifications

    async def appointment_moved(self, appointment: Appointment) -> Optional[str]:
        """Tell the customer about the new date and time of their appointment.

        Returns the outbox id in mock mode, ``None`` when notifications are
        switched off or were posted to the webhook.
        """

        if not self._client.enabled:
            logger.info("Notifications disabled; skipping message for %s", appointment.id)
            return None
        if not appointment.customer_phone:
            raise NotificationError(
                f"Appointment {appointment.id} has no customer phone to notify"
            )

        payload = self._payload(appointment)
        if self._client.use_mock_data:
            if not self._repository:
                raise RuntimeError("Mock notification repository not configured")
            return await self._repository.send(payload)

        try:
            await self._client.send(payload)
            return None
        except ServiceError as exc:
            raise NotificationError("Failed to notify customer", cause=exc) from exc
        except Exception as exc:  # pragma: no cover - defensive
            logger.exception("Unexpected error while notifying customer")
            raise NotificationError("Failed to notify customer", cause=exc) from exc

    @staticmethod
    def _payload(appointment: Appointment) -> Dict[str, Any]:
        return {
            "template": APPOINTMENT_MOVED_TEMPLATE,
            "phone": appointment.customer_phone,
            "name": appointment.customer_name or "",
            "fields": {
                "date": appointment.start_at.strftime("%d/%m/%Y"),
                "time": appointment.start_at.strftime("%H:%M"),
            },
        }
