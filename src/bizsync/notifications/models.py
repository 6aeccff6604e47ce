"""Notification record shared by derivation, the store and UI consumers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..events.payloads import EntityId


class NotificationType(str, Enum):
    """Visual category of a notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Notification(BaseModel):
    """A user-facing message; ``id`` is assigned once persisted (negative if not)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: int | None = None
    title: str
    message: str
    timestamp: datetime
    is_read: bool = False
    type: NotificationType = NotificationType.INFO
    priority: NotificationPriority = NotificationPriority.MEDIUM
    module: str
    entity_type: str | None = None
    entity_id: EntityId | None = None
    action_url: str | None = None
    user_id: EntityId | None = Field(default=None)

    def to_api(self) -> dict:
        """Serialise with camelCase keys for the REST API."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def as_read(self) -> Notification:
        return self.model_copy(update={"is_read": True})
