"""Conflict records and pluggable resolution strategies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class DataConflict:
    """Two modules disagree on the value of one field of one entity."""

    source_module: str
    target_module: str
    entity_type: str
    entity_id: str | int
    field: str
    source_value: Any
    target_value: Any


@dataclass(frozen=True)
class ConflictResolution:
    conflict: DataConflict
    resolved_value: Any
    applied: bool


class ConflictResolver(Protocol):
    """Pick the value that should be persisted for a conflict."""

    def resolve(self, conflict: DataConflict) -> Any: ...


class LastWriteWinsResolver:
    """The target module's value is treated as the most recent write and wins."""

    def resolve(self, conflict: DataConflict) -> Any:
        return conflict.target_value
