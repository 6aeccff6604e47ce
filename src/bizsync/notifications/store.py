"""API-backed notification persistence."""

from __future__ import annotations

from collections.abc import Mapping
import itertools
import logging
from typing import TYPE_CHECKING, Any

from ..api import ApiClient
from ..cache import QueryCache
from ..events.payloads import EventName
from ..exceptions import ApiError
from .models import Notification
from .templates import create_notification_from_event

if TYPE_CHECKING:
    from ..integration.service import IntegrationService

LOGGER = logging.getLogger(__name__)

NOTIFICATIONS_PATH = "/api/notifications"


class NotificationStore:
    """Persist, read-mark and delete notifications through the REST API.

    Keeps the notifications it has seen so UI code can ask for an unread
    count without another round-trip.
    """

    def __init__(self, api: ApiClient, cache: QueryCache) -> None:
        self.api = api
        self.cache = cache
        self._known: dict[int, Notification] = {}
        self._temporary_ids = itertools.count(-1, -1)

    @property
    def notifications(self) -> list[Notification]:
        return list(self._known.values())

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self._known.values() if not item.is_read)

    def attach(self, integration: IntegrationService) -> None:
        """Persist every notification emitted on the integration bus."""
        integration.on(EventName.NOTIFICATION_CREATED, self._on_notification_created)

    async def _on_notification_created(self, notification: Notification) -> None:
        await self._persist(notification)

    async def save(self, notification: Notification) -> Notification:
        """Save ``notification``; never raises.

        When the API call fails the notification comes back with a temporary
        negative id so callers can keep going.
        """
        try:
            body = await self.api.post(NOTIFICATIONS_PATH, json=notification.to_api())
            saved = (
                Notification.model_validate(body)
                if isinstance(body, Mapping)
                else notification
            )
        except (ApiError, ValueError) as exc:
            LOGGER.error(
                "notifications.save.failed",
                extra={
                    "event": "notifications.save.failed",
                    "title": notification.title,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            saved = notification.model_copy(
                update={"id": notification.id or next(self._temporary_ids)}
            )
        if saved.id is not None:
            self._known[saved.id] = saved
        return saved

    async def _persist(self, notification: Notification) -> Notification:
        saved = await self.save(notification)
        self.cache.invalidate_queries(NOTIFICATIONS_PATH)
        return saved

    async def process_event(self, event: str, payload: Any = None) -> Notification | None:
        """Create the notification for dotted ``event`` and save it, if any."""
        notification = create_notification_from_event(event, payload)
        if notification is None:
            return None
        return await self._persist(notification)

    async def mark_read(self, notification_id: int) -> None:
        try:
            await self.api.patch(f"{NOTIFICATIONS_PATH}/{notification_id}", json={"isRead": True})
        except ApiError:
            LOGGER.error(
                "notifications.mark_read.failed",
                extra={"event": "notifications.mark_read.failed", "id": notification_id},
            )
            raise
        known = self._known.get(notification_id)
        if known is not None:
            self._known[notification_id] = known.as_read()
        self.cache.invalidate_queries(NOTIFICATIONS_PATH)

    async def mark_all_read(self) -> None:
        try:
            await self.api.post(f"{NOTIFICATIONS_PATH}/mark-all-read", json={})
        except ApiError:
            LOGGER.error(
                "notifications.mark_all_read.failed",
                extra={"event": "notifications.mark_all_read.failed"},
            )
            raise
        self._known = {key: item.as_read() for key, item in self._known.items()}
        self.cache.invalidate_queries(NOTIFICATIONS_PATH)

    async def delete(self, notification_id: int) -> None:
        try:
            await self.api.delete(f"{NOTIFICATIONS_PATH}/{notification_id}")
        except ApiError:
            LOGGER.error(
                "notifications.delete.failed",
                extra={"event": "notifications.delete.failed", "id": notification_id},
            )
            raise
        self._known.pop(notification_id, None)
        self.cache.invalidate_queries(NOTIFICATIONS_PATH)
