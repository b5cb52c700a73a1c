from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from manager_schedule.services.exceptions import DownstreamServiceError

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Async HTTP client for the managed backend (PostgREST tables and edge functions)."""

    def __init__(
        self,
        base_url: str | None,
        *,
        api_key: str | None = None,
        timeout: float = 10.0,
        use_mock_data: bool = True,
    ) -> None:
        self._base_url = str(base_url).rstrip("/") if base_url else None
        self._timeout = timeout
        self.use_mock_data = use_mock_data or not self._base_url
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if api_key:
            self._headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })
        self._client: Optional[httpx.AsyncClient] = None
        if not self.use_mock_data and self._base_url:
            self._client = self._build_client()

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self.use_mock_data or not self._base_url:
            raise RuntimeError("HTTP client requested while running in mock mode")
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        if self.use_mock_data:
            raise RuntimeError("Real HTTP call requested while mock mode is enabled")
        client = await self._ensure_client()
        try:
            logger.debug("Backend request %s %s", method, path)
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.exception("Backend returned error %s for %s", exc.response.status_code, path)
            raise DownstreamServiceError(
                _error_message(exc.response),
                status_code=exc.response.status_code,
                cause=exc,
            ) from exc
        except httpx.RequestError as exc:
            logger.exception("Unable to reach backend: %s", exc)
            raise DownstreamServiceError(
                "Unable to reach backend", status_code=None, cause=exc
            ) from exc

    async def select(
        self, table: str, params: Dict[str, Any] | None = None
    ) -> List[Dict[str, Any]]:
        data = await self._send("GET", f"/rest/v1/{table}", params=params)
        return list(data or [])

    async def upsert(
        self, table: str, rows: List[Dict[str, Any]], *, on_conflict: str
    ) -> List[Dict[str, Any]]:
        data = await self._send(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        return list(data or [])

    async def invoke(self, function: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._send("POST", f"/functions/v1/{function}", json=payload)
        return dict(data or {})

    async def simulate_latency(self) -> None:
        """Allow services to await for latency even when mocking responses."""

        await asyncio.sleep(0)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Backend returned an error response"
    if isinstance(body, dict):
        for key in ("error", "message", "details"):
            if body.get(key):
                return str(body[key])
    return "Backend returned an error response"
