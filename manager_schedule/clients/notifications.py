from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from manager_schedule.services.exceptions import DownstreamServiceError

logger = logging.getLogger(__name__)


class NotificationClient:
    """Posts templated customer messages to the messaging webhook."""

    def __init__(
        self,
        webhook_url: str | None,
        *,
        token: str | None = None,
        timeout: float = 5.0,
        enabled: bool = True,
    ) -> None:
        self._webhook_url = str(webhook_url) if webhook_url else None
        self._timeout = timeout
        self.enabled = enabled
        self.use_mock_data = not self._webhook_url
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._client: Optional[httpx.AsyncClient] = None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def send(self, payload: Dict[str, Any]) -> None:
        if self.use_mock_data:
            raise RuntimeError("Webhook call requested while no webhook is configured")
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, headers=self._headers)
        try:
            response = await self._client.post(self._webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("Notification webhook returned %s", exc.response.status_code)
            raise DownstreamServiceError(
                "Notification webhook returned an error response",
                status_code=exc.response.status_code,
                cause=exc,
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Unable to reach notification webhook: %s", exc)
            raise DownstreamServiceError(
                "Unable to reach notification webhook", status_code=None, cause=exc
            ) from exc
