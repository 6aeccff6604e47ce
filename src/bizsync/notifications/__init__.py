"""Notification derivation, templates and persistence."""

from .derivation import DEFAULT_TRIGGERS, NotificationDeriver, NotificationTrigger
from .models import Notification, NotificationPriority, NotificationType
from .store import NotificationStore
from .templates import TEMPLATES, create_notification_from_event, format_currency

__all__ = [
    "DEFAULT_TRIGGERS",
    "Notification",
    "NotificationDeriver",
    "NotificationPriority",
    "NotificationStore",
    "NotificationTrigger",
    "NotificationType",
    "TEMPLATES",
    "create_notification_from_event",
    "format_currency",
]
