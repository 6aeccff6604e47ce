"""Synchronous event bus for decoupled module communication.

Usage:
    bus = EventBus()

    def on_invoice(payload):
        print(f"Invoice touched: {payload.entity_id}")

    bus.on("entity:created", on_invoice)
    bus.emit("entity:created", payload)

Listeners run in registration order inside ``emit``. A listener that
returns an awaitable has it scheduled as a background task.
"""

from __future__ import annotations

from collections.abc import Callable
import inspect
import logging
from typing import Any

from .tasks import BackgroundTasks

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_LISTENERS = 10

Listener = Callable[[Any], Any]


class EventBus:
    """Publish/subscribe keyed by event name.

    Producers of domain changes never hold references to their consumers;
    both sides only share the bus instance they were handed.
    """

    def __init__(
        self,
        max_listeners: int = DEFAULT_MAX_LISTENERS,
        tasks: BackgroundTasks | None = None,
    ) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._warned: set[str] = set()
        self.max_listeners = max_listeners
        self.tasks = tasks or BackgroundTasks()

    def on(self, event_name: str, listener: Listener) -> None:
        """Subscribe to an event.

        Args:
            event_name: Event to listen for (e.g., "entity:created")
            listener: Callable invoked with the event payload
        """
        listeners = self._listeners.setdefault(event_name, [])
        listeners.append(listener)
        if len(listeners) > self.max_listeners and event_name not in self._warned:
            self._warned.add(event_name)
            LOGGER.warning(
                "bus.listeners.limit_exceeded",
                extra={
                    "event": "bus.listeners.limit_exceeded",
                    "event_name": event_name,
                    "count": len(listeners),
                    "max_listeners": self.max_listeners,
                },
            )

    def off(self, event_name: str, listener: Listener) -> None:
        """Unsubscribe from an event; unknown listeners are ignored."""
        listeners = self._listeners.get(event_name)
        if not listeners:
            return
        for index, registered in enumerate(listeners):
            if registered is listener:
                del listeners[index]
                return

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    def emit(self, event_name: str, payload: Any) -> bool:
        """Invoke every listener for ``event_name`` with ``payload``.

        Returns True when at least one listener was registered.
        """
        listeners = list(self._listeners.get(event_name, []))
        if not listeners:
            LOGGER.debug(f"No listeners for event: {event_name}")
            return False

        for listener in listeners:
            try:
                result = listener(payload)
            except Exception as exc:
                LOGGER.error(
                    "bus.listener.failed",
                    extra={
                        "event": "bus.listener.failed",
                        "event_name": event_name,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                continue
            if inspect.isawaitable(result):
                self.tasks.spawn(result, f"listener:{event_name}")
        return True

    def clear(self, event_name: str | None = None) -> None:
        """Clear listeners.

        Args:
            event_name: Specific event to clear, or None for all
        """
        if event_name:
            self._listeners.pop(event_name, None)
            self._warned.discard(event_name)
        else:
            self._listeners.clear()
            self._warned.clear()
