"""Query cache capability consumed after conflict resolution and rollback."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import logging
from typing import Any, Protocol

LOGGER = logging.getLogger(__name__)


class QueryCache(Protocol):
    """Anything that can drop cached reads for a query key prefix."""

    def invalidate_queries(self, key: str) -> None: ...


class InMemoryQueryCache:
    """Process-local query cache keyed by API path.

    Invalidation is by prefix, so invalidating ``/api/invoices`` also drops
    ``/api/invoices/42``.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}
        self.invalidations: list[str] = []

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Any:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    async def fetch_query(self, key: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key`` or populate it from ``fetcher``."""
        if key in self._entries:
            return self._entries[key]
        value = await fetcher()
        self._entries[key] = value
        return value

    def invalidate_queries(self, key: str) -> None:
        self.invalidations.append(key)
        stale = [cached for cached in self._entries if cached.startswith(key)]
        for cached in stale:
            del self._entries[cached]
        LOGGER.debug(
            "cache.invalidated",
            extra={"event": "cache.invalidated", "key": key, "dropped": len(stale)},
        )

    def invalidation_count(self, key: str) -> int:
        return self.invalidations.count(key)
