"""Thin async REST client used for persistence, rollback and sync calls."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .exceptions import ApiConnectionError, ApiError

LOGGER = logging.getLogger(__name__)


class ApiClient:
    """JSON-over-HTTP wrapper around ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._owns_client = client is None

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Issue a request and return the decoded JSON body (or ``None``)."""
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TransportError as exc:
            LOGGER.warning(
                "api.request.transport_error",
                extra={
                    "event": "api.request.transport_error",
                    "method": method,
                    "path": path,
                    "error_type": type(exc).__name__,
                },
            )
            raise ApiConnectionError(f"{method} {path} failed: {exc}") from exc
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "api.request.failed",
                extra={
                    "event": "api.request.failed",
                    "method": method,
                    "path": path,
                    "error_type": type(exc).__name__,
                },
            )
            raise ApiError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            raise ApiError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def get(self, path: str, params: dict[str, str] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
