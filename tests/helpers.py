"""Shared fakes for API-backed tests."""

from __future__ import annotations

from collections.abc import Callable
import json
from typing import Any

import httpx

from bizsync.api import ApiClient

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport:
    """Route requests through ``handler`` and remember each one."""

    def __init__(self, handler: Handler | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler or (lambda request: httpx.Response(200, json={}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def paths(self, method: str | None = None) -> list[str]:
        return [
            request.url.path
            for request in self.requests
            if method is None or request.method == method
        ]

    def bodies(self, method: str | None = None) -> list[Any]:
        return [
            json.loads(request.content) if request.content else None
            for request in self.requests
            if method is None or request.method == method
        ]


def make_api(handler: Handler | None = None) -> tuple[ApiClient, RecordingTransport]:
    transport = RecordingTransport(handler)
    client = httpx.AsyncClient(
        base_url="http://api.test", transport=httpx.MockTransport(transport)
    )
    return ApiClient(base_url="http://api.test", client=client), transport
