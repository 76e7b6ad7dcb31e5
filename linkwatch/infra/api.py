"""HTTP access to the connection backend."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from linkwatch.core.errors import ActionError, TransportError
from linkwatch.infra.sse import ServerSentEvent, iter_events

logger = logging.getLogger(__name__)

STATUS_PATH = "/whatsapp/status"
EVENTS_PATH = "/whatsapp/events"
QR_IMAGE_PATH = "/whatsapp/qr-image"
LOGS_PATH = "/logs"
ACTION_PATHS = {
    "connect": "/whatsapp/start",
    "disconnect": "/whatsapp/stop",
    "logout": "/whatsapp/logout",
}


def _unwrap(body: object, what: str) -> Any:
    if not isinstance(body, dict):
        raise TransportError(f"{what}: response body is not an object")
    if not body.get("success"):
        raise TransportError(f"{what}: {body.get('error') or 'request not successful'}")
    return body.get("data")


class ApiClient:
    """Thin async wrapper over the backend's status, stream, image and action endpoints."""

    def __init__(
        self,
        api_base: str,
        *,
        token: str | None = None,
        timeout: float = 15.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=timeout)

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = dict(extra)
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.api_base}{path}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            res = await self.http.request(method, self._url(path), headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc
        if res.status_code >= 400:
            raise TransportError(f"{method} {path} returned {res.status_code}", status_code=res.status_code)
        return res

    async def fetch_status(self) -> dict[str, Any]:
        res = await self._request("GET", STATUS_PATH)
        try:
            body = res.json()
        except ValueError as exc:
            raise TransportError(f"GET {STATUS_PATH}: invalid JSON") from exc
        data = _unwrap(body, f"GET {STATUS_PATH}")
        if not isinstance(data, dict):
            raise TransportError(f"GET {STATUS_PATH}: missing status data")
        return data

    async def fetch_qr_image(self) -> tuple[bytes, str | None]:
        res = await self._request("GET", QR_IMAGE_PATH)
        if not res.content:
            raise TransportError(f"GET {QR_IMAGE_PATH}: empty body")
        return res.content, res.headers.get("content-type")

    async def fetch_logs(self) -> list[dict[str, Any]]:
        res = await self._request("GET", LOGS_PATH)
        try:
            body = res.json()
        except ValueError as exc:
            raise TransportError(f"GET {LOGS_PATH}: invalid JSON") from exc
        data = _unwrap(body, f"GET {LOGS_PATH}")
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    async def clear_logs(self) -> None:
        await self._request("DELETE", LOGS_PATH)

    async def send_action(self, action: str) -> None:
        """Fire a connect/disconnect/logout request. The effect shows up in a later snapshot."""
        path = ACTION_PATHS.get(action)
        if path is None:
            raise ValueError(f"unknown action: {action!r}")
        try:
            await self._request("POST", path)
        except TransportError as exc:
            raise ActionError(action, str(exc), status_code=exc.status_code) from exc

    @contextlib.asynccontextmanager
    async def open_event_stream(self) -> AsyncIterator[AsyncIterator[ServerSentEvent]]:
        timeout = httpx.Timeout(self.timeout, read=None)
        headers = self._headers(Accept="text/event-stream", **{"Cache-Control": "no-cache"})
        try:
            async with self.http.stream("GET", self._url(EVENTS_PATH), headers=headers, timeout=timeout) as res:
                if res.status_code != 200:
                    raise TransportError(
                        f"GET {EVENTS_PATH} returned {res.status_code}",
                        status_code=res.status_code,
                    )
                yield iter_events(res.aiter_lines())
        except httpx.HTTPError as exc:
            raise TransportError(f"event stream failed: {exc}") from exc

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()
