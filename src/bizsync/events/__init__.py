"""Event bus, event vocabulary and typed payloads."""

from .bus import EventBus
from .payloads import (
    EntityType,
    EventName,
    IntegrationEventPayload,
    InteractionData,
    Module,
)
from .tasks import BackgroundTasks

__all__ = [
    "BackgroundTasks",
    "EntityType",
    "EventBus",
    "EventName",
    "IntegrationEventPayload",
    "InteractionData",
    "Module",
]
