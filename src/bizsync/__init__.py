"""Top-level package for the bizsync integration core."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import ensure_config_dir, load_config
    from .errors.service import ErrorService
    from .events.payloads import EntityType, EventName, IntegrationEventPayload, Module
    from .exceptions import (
        ApiConnectionError,
        ApiError,
        BizSyncError,
        ConfigValidationError,
        PayloadValidationError,
        RelationshipCycleError,
        RelationshipNotFoundError,
        RetryExhaustedError,
    )
    from .integration.service import IntegrationService
    from .notifications.models import Notification
    from .notifications.store import NotificationStore
    from .runtime import IntegrationRuntime

__all__ = [
    "ApiConnectionError",
    "ApiError",
    "BizSyncError",
    "ConfigValidationError",
    "EntityType",
    "ErrorService",
    "EventName",
    "IntegrationEventPayload",
    "IntegrationRuntime",
    "IntegrationService",
    "Module",
    "Notification",
    "NotificationStore",
    "PayloadValidationError",
    "RelationshipCycleError",
    "RelationshipNotFoundError",
    "RetryExhaustedError",
    "ensure_config_dir",
    "load_config",
]

_EXCEPTIONS = {
    "ApiConnectionError",
    "ApiError",
    "BizSyncError",
    "ConfigValidationError",
    "PayloadValidationError",
    "RelationshipCycleError",
    "RelationshipNotFoundError",
    "RetryExhaustedError",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so ``import bizsync`` stays cheap."""
    if name in {"ensure_config_dir", "load_config"}:
        from . import config

        return getattr(config, name)
    if name in _EXCEPTIONS:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"EntityType", "EventName", "IntegrationEventPayload", "Module"}:
        from .events import payloads

        return getattr(payloads, name)
    if name == "IntegrationService":
        from .integration.service import IntegrationService

        return IntegrationService
    if name == "ErrorService":
        from .errors.service import ErrorService

        return ErrorService
    if name == "Notification":
        from .notifications.models import Notification

        return Notification
    if name == "NotificationStore":
        from .notifications.store import NotificationStore

        return NotificationStore
    if name == "IntegrationRuntime":
        from .runtime import IntegrationRuntime

        return IntegrationRuntime
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
