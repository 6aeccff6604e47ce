"""Bounded in-memory error log."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator

from .models import ErrorInfo


class ErrorLog:
    """Append-only log that drops its oldest ``trim_count`` entries on overflow."""

    def __init__(self, capacity: int = 100, trim_count: int = 20) -> None:
        if capacity < 1 or not 1 <= trim_count <= capacity:
            raise ValueError("trim_count must be between 1 and capacity.")
        self.capacity = capacity
        self.trim_count = trim_count
        self._entries: list[ErrorInfo] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ErrorInfo]:
        return iter(list(self._entries))

    def append(self, record: ErrorInfo) -> None:
        self._entries.append(record)
        if len(self._entries) > self.capacity:
            del self._entries[: self.trim_count]

    def snapshot(self) -> list[ErrorInfo]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def statistics(self) -> dict[str, dict[str, int]]:
        """Count entries by error type and by module (when known)."""
        by_type = Counter(entry.type.value for entry in self._entries)
        by_module = Counter(entry.module for entry in self._entries if entry.module)
        return {"by_type": dict(by_type), "by_module": dict(by_module)}
