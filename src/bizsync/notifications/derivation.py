"""Map bus events onto notification templates."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ..events.payloads import EntityType, EventName, IntegrationEventPayload
from .models import Notification
from .templates import TEMPLATES, create_notification_from_event


@dataclass(frozen=True)
class NotificationTrigger:
    """``(event, entity_type, action?)`` that selects a template."""

    event: EventName
    entity_type: EntityType
    template: str
    action: str | None = None

    def matches(self, event_name: str, payload: IntegrationEventPayload) -> bool:
        if event_name != self.event or payload.entity_type != self.entity_type:
            return False
        return self.action is None or self.action == payload.action


# Order matters: the first matching trigger wins.
DEFAULT_TRIGGERS: tuple[NotificationTrigger, ...] = (
    NotificationTrigger(EventName.ENTITY_CREATED, EntityType.INVOICE, "invoice.created"),
    NotificationTrigger(EventName.ENTITY_UPDATED, EntityType.INVOICE, "invoice.sent", "sent"),
    NotificationTrigger(EventName.ENTITY_UPDATED, EntityType.INVOICE, "invoice.paid", "paid"),
    NotificationTrigger(
        EventName.ENTITY_UPDATED, EntityType.INVOICE, "invoice.overdue", "overdue"
    ),
    NotificationTrigger(EventName.ENTITY_CREATED, EntityType.CLIENT, "client.created"),
    NotificationTrigger(EventName.ENTITY_UPDATED, EntityType.CLIENT, "client.updated"),
    NotificationTrigger(EventName.ENTITY_CREATED, EntityType.EXPENSE, "expense.created"),
    NotificationTrigger(
        EventName.ENTITY_UPDATED, EntityType.EXPENSE, "expense.approved", "approved"
    ),
    NotificationTrigger(
        EventName.ENTITY_UPDATED, EntityType.EXPENSE, "expense.rejected", "rejected"
    ),
    NotificationTrigger(
        EventName.ENTITY_UPDATED, EntityType.INVENTORY, "inventory.low_stock", "lowStock"
    ),
    NotificationTrigger(
        EventName.ENTITY_UPDATED,
        EntityType.INVENTORY,
        "inventory.out_of_stock",
        "outOfStock",
    ),
    NotificationTrigger(EventName.ENTITY_CREATED, EntityType.CONTRACT, "contract.created"),
    NotificationTrigger(
        EventName.ENTITY_UPDATED, EntityType.CONTRACT, "contract.signed", "signed"
    ),
    NotificationTrigger(EventName.ENTITY_CREATED, EntityType.PAYROLL, "payroll.processed"),
    NotificationTrigger(
        EventName.ENTITY_CREATED, EntityType.TAX_DOCUMENT, "tax.document_created"
    ),
    NotificationTrigger(
        EventName.ENTITY_CREATED,
        EntityType.BANK_TRANSACTION,
        "banking.transaction_imported",
    ),
)


class NotificationDeriver:
    """Turn qualifying bus payloads into notifications."""

    def __init__(self, triggers: Sequence[NotificationTrigger] = DEFAULT_TRIGGERS) -> None:
        unknown = [t.template for t in triggers if t.template not in TEMPLATES]
        if unknown:
            raise ValueError(f"Triggers reference unknown templates: {unknown}")
        self.triggers = tuple(triggers)

    def match(
        self, event_name: str, payload: IntegrationEventPayload
    ) -> NotificationTrigger | None:
        for trigger in self.triggers:
            if trigger.matches(event_name, payload):
                return trigger
        return None

    def derive(
        self, event_name: str, payload: IntegrationEventPayload
    ) -> Notification | None:
        """Return the notification for ``payload`` or ``None`` when nothing matches."""
        trigger = self.match(event_name, payload)
        if trigger is None:
            return None
        return create_notification_from_event(
            trigger.template,
            payload.data,
            timestamp=payload.timestamp,
            entity_id=payload.entity_id,
            user_id=payload.user_id,
        )
