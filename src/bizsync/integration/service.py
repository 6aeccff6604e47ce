"""Integration bus: entity events, relationship propagation and notifications.

``IntegrationService.emit`` is synchronous and re-entrant. For one call the
order is: listeners, then relationship propagation (``entity:*`` only), then
notification derivation (every event except ``notification:created``).
Nested emits run to completion before the outer call continues.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
import logging
from typing import Any

from pydantic import ValidationError

from ..events.bus import EventBus, Listener
from ..events.payloads import (
    EntityType,
    EventName,
    IntegrationEventPayload,
    Module,
)
from ..events.tasks import BackgroundTasks
from ..exceptions import PayloadValidationError
from ..notifications.derivation import NotificationDeriver
from ..notifications.models import Notification
from ..notifications.templates import create_notification_from_event
from .propagator import SYSTEM_ENTITY_ID, RelationshipPropagator
from .relationships import (
    DEFAULT_RELATIONSHIPS,
    RelationshipRegistry,
    RelationshipEdge,
    relationship_key,
)

LOGGER = logging.getLogger(__name__)

INTEGRATION_MAX_LISTENERS = 50
DEFAULT_MAX_EMIT_DEPTH = 8


class IntegrationService:
    """Owns the bus, the module relationship graph and notification derivation."""

    def __init__(
        self,
        relationships: Iterable[RelationshipEdge] = DEFAULT_RELATIONSHIPS,
        deriver: NotificationDeriver | None = None,
        bus: EventBus | None = None,
        max_listeners: int = INTEGRATION_MAX_LISTENERS,
        max_emit_depth: int = DEFAULT_MAX_EMIT_DEPTH,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.bus = bus or EventBus(max_listeners=max_listeners)
        self.registry = RelationshipRegistry(relationships)
        self.deriver = deriver or NotificationDeriver()
        self.propagator = RelationshipPropagator(self.registry, self.emit)
        self.max_emit_depth = max_emit_depth
        self._clock = clock or (lambda: datetime.now(UTC))
        self._depth = 0

    @property
    def tasks(self) -> BackgroundTasks:
        return self.bus.tasks

    def on(self, event_name: EventName | str, listener: Listener) -> None:
        self.bus.on(_event_name(event_name), listener)

    def off(self, event_name: EventName | str, listener: Listener) -> None:
        self.bus.off(_event_name(event_name), listener)

    def listener_count(self, event_name: EventName | str) -> int:
        return self.bus.listener_count(_event_name(event_name))

    def emit(self, event_name: EventName | str, payload: Any) -> bool:
        """Publish ``payload`` and run propagation and derivation for it.

        Returns False when the emission was dropped because the nesting
        depth limit was reached, otherwise whether any listener received it.
        """
        name = _event_name(event_name)
        if name is EventName.NOTIFICATION_CREATED:
            if not isinstance(payload, Notification):
                raise PayloadValidationError(
                    "notification:created payloads must be Notification instances."
                )
        else:
            payload = self._stamp(_coerce_payload(payload))

        if self._depth >= self.max_emit_depth:
            LOGGER.error(
                "integration.emit.depth_exceeded",
                extra={
                    "event": "integration.emit.depth_exceeded",
                    "event_name": name.value,
                    "max_emit_depth": self.max_emit_depth,
                },
            )
            return False

        self._depth += 1
        try:
            delivered = self.bus.emit(name.value, payload)
            if name.is_entity_event:
                self.propagator.propagate(payload)
            if name is not EventName.NOTIFICATION_CREATED:
                self._derive_notification(name, payload)
        finally:
            self._depth -= 1
        return delivered

    def publish_notification(
        self, template: str, payload: Mapping[str, Any] | None = None
    ) -> Notification | None:
        """Build a notification from a dotted template and emit it."""
        notification = create_notification_from_event(template, payload, timestamp=self._clock())
        if notification is not None:
            self.emit(EventName.NOTIFICATION_CREATED, notification)
        return notification

    def register_relationship(
        self, source: Module | str, target: Module | str, relationship_type: str
    ) -> bool:
        """Add a relationship edge type; announces new ones on the bus."""
        source, target = Module(source), Module(target)
        added = self.registry.register(source, target, relationship_type)
        if added:
            self.emit(
                EventName.RELATIONSHIP_CREATED,
                IntegrationEventPayload(
                    module=source,
                    entity_type=EntityType.TRANSACTION,
                    entity_id=SYSTEM_ENTITY_ID,
                    relationship_type=relationship_type,
                    relationship_id=relationship_key(source, target),
                ),
            )
        return added

    def relationships_for(self, source: Module | str) -> list[tuple[Module, list[str]]]:
        return self.registry.edges_from(source)

    async def drain(self) -> None:
        """Wait for background work started by async listeners."""
        await self.tasks.drain()

    def _stamp(self, payload: IntegrationEventPayload) -> IntegrationEventPayload:
        if payload.timestamp is not None:
            return payload
        return payload.model_copy(update={"timestamp": self._clock()})

    def _derive_notification(self, name: EventName, payload: IntegrationEventPayload) -> None:
        try:
            notification = self.deriver.derive(name.value, payload)
        except Exception as exc:  # noqa: BLE001 - derivation must not break emit.
            LOGGER.error(
                "integration.derive.failed",
                extra={
                    "event": "integration.derive.failed",
                    "event_name": name.value,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return
        if notification is not None:
            self.emit(EventName.NOTIFICATION_CREATED, notification)


def _event_name(value: EventName | str) -> EventName:
    try:
        return EventName(value)
    except ValueError as exc:
        raise PayloadValidationError(f"Unknown event name: {value!r}") from exc


def _coerce_payload(payload: Any) -> IntegrationEventPayload:
    if isinstance(payload, IntegrationEventPayload):
        return payload
    if not isinstance(payload, Mapping):
        raise PayloadValidationError(
            f"Expected an IntegrationEventPayload or mapping, got {type(payload).__name__}."
        )
    try:
        return IntegrationEventPayload.model_validate(payload)
    except ValidationError as exc:
        raise PayloadValidationError(f"Invalid event payload: {exc}") from exc
