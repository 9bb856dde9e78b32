"""HTTP client for the hookwatch relay API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from hookwatch.lib.notifications import Notification

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class APIError(Exception):
    """Raised when the relay cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class APIClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> APIClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise APIError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            raise APIError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise APIError(f"{method} {path} returned invalid JSON") from exc

    async def version(self) -> dict[str, Any]:
        """Return ``{status, server_version, data_version, notification_version}``."""
        return await self._request("GET", "/version")

    async def list_notifications(
        self, after: str | None = None, limit: int | None = None
    ) -> list[Notification]:
        params: dict[str, Any] = {}
        if after:
            params["after"] = after
        if limit:
            params["limit"] = limit
        data = await self._request("GET", "/notifications", params=params)
        return [Notification.from_dict(item) for item in data.get("notifications", [])]

    async def acknowledge(self, ids: list[str]) -> int:
        data = await self._request("POST", "/notifications/ack", json={"ids": list(ids)})
        return int(data.get("acknowledged", 0))

    async def register_push(
        self, token: str, environment: str = "production", platform: str = "ios"
    ) -> None:
        await self._request(
            "POST",
            "/push/register",
            json={"platform": platform, "token": token, "environment": environment},
        )
