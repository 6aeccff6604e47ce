"""Dotted-name notification templates.

Each template declares the payload shape it reads and a builder that
interpolates that shape into a :class:`Notification`. Builders are pure:
the same input always produces the same notification.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from ..events.payloads import (
    BankTransactionData,
    ClientData,
    ContractData,
    EntityId,
    ExpenseData,
    InventoryData,
    InvoiceData,
    PayloadModel,
    PayrollData,
    TaxDocumentData,
)
from .models import Notification, NotificationPriority, NotificationType

LOGGER = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


class IntegrationErrorData(PayloadModel):
    source_module: str | None = None
    target_module: str | None = None
    message: str | None = None
    transaction_id: str | None = None
    details: dict[str, Any] | None = None


class ConflictData(PayloadModel):
    source_module: str | None = None
    target_module: str | None = None
    entity_type: str | None = None
    entity_id: EntityId | None = None
    conflicting_field: str | None = None
    message: str | None = None


class MaintenanceData(PayloadModel):
    date: datetime | None = None
    duration: int | None = None


class SystemUpdateData(PayloadModel):
    version: str | None = None


class SubscriptionData(PayloadModel):
    action: str | None = None
    date: datetime | None = None


Builder = Callable[[Any, EntityId | None, datetime], Notification]


@dataclass(frozen=True)
class NotificationTemplate:
    name: str
    shape: type[BaseModel]
    build: Builder


TEMPLATES: dict[str, NotificationTemplate] = {}


def template(name: str, shape: type[BaseModel]) -> Callable[[Builder], Builder]:
    """Register ``func`` as the builder for the dotted template ``name``."""

    def decorator(func: Builder) -> Builder:
        TEMPLATES[name] = NotificationTemplate(name=name, shape=shape, build=func)
        return func

    return decorator


def format_currency(value: Any) -> str:
    """Format ``value`` as en-US dollars, e.g. ``$1,250.00``."""
    if value is None:
        return "an unspecified amount"
    try:
        amount = Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return str(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def _ref(number: str | None, entity_id: EntityId | None) -> str:
    return f"#{number}" if number else f"#{entity_id}"


def _url(prefix: str, entity_id: EntityId | None) -> str:
    return f"{prefix}/{entity_id}" if entity_id is not None else prefix


# Invoice events


@template("invoice.created", InvoiceData)
def _invoice_created(data: InvoiceData, entity_id: EntityId | None, ts: datetime) -> Notification:
    total = data.total if data.total is not None else data.amount
    return Notification(
        title="New Invoice Created",
        message=(
            f"Invoice {_ref(data.invoice_number, entity_id)} for "
            f"{format_currency(total)} has been created."
        ),
        timestamp=ts,
        type=NotificationType.SUCCESS,
        priority=NotificationPriority.MEDIUM,
        module="Invoices",
        entity_type="invoice",
        entity_id=entity_id,
        action_url=_url("/invoices", entity_id),
    )


@template("invoice.sent", InvoiceData)
def _invoice_sent(data: InvoiceData, entity_id: EntityId | None, ts: datetime) -> Notification:
    return Notification(
        title="Invoice Sent",
        message=(
            f"Invoice {_ref(data.invoice_number, entity_id)} was sent to "
            f"{data.client_name or 'a client'}."
        ),
        timestamp=ts,
        type=NotificationType.INFO,
        priority=NotificationPriority.MEDIUM,
        module="Invoices",
        entity_type="invoice",
        entity_id=entity_id,
        action_url=_url("/invoices", entity_id),
    )


@template("invoice.paid", InvoiceData)
def _invoice_paid(data: InvoiceData, entity_id: EntityId | None, ts: datetime) -> Notification:
    amount = data.amount if data.amount is not None else data.total
    return Notification(
        title="Payment Received",
        message=(
            f"Payment of {format_currency(amount)} received for Invoice "
            f"{_ref(data.invoice_number, entity_id)}."
        ),
        timestamp=ts,
        type=NotificationType.SUCCESS,
        priority=NotificationPriority.HIGH,
        module="Invoices",
        entity_type="invoice",
        entity_id=entity_id,
        action_url=_url("/invoices", entity_id),
    )


@template("invoice.overdue", InvoiceData)
def _invoice_overdue(data: InvoiceData, entity_id: EntityId | None, ts: datetime) -> Notification:
    overdue = (
        f"is overdue by {data.days_overdue} days"
        if data.days_overdue is not None
        else "is overdue"
    )
    return Notification(
        title="Invoice Overdue",
        message=(
            f"Invoice {_ref(data.invoice_number, entity_id)} for "
            f"{data.client_name or 'a client'} {overdue}."
        ),
        timestamp=ts,
        type=NotificationType.WARNING,
        priority=NotificationPriority.HIGH,
        module="Invoices",
        entity_type="invoice",
        entity_id=entity_id,
        action_url=_url("/invoices", entity_id),
    )


# Client events


@template("client.created", ClientData)
def _client_created(data: ClientData, entity_id: EntityId | None, ts: datetime) -> Notification:
    return Notification(
        title="New Client Added",
        message=f"{data.name or f'Client #{entity_id}'} has been added as a new client.",
        timestamp=ts,
        type=NotificationType.INFO,
        priority=NotificationPriority.MEDIUM,
        module="Clients",
        entity_type="client",
        entity_id=entity_id,
        action_url=_url("/client-management", entity_id),
    )


@template("client.updated", ClientData)
def _client_updated(data: ClientData, entity_id: EntityId | None, ts: datetime) -> Notification:
    return Notification(
        title="Client Information Updated",
        message=f"{data.name or f'Client #{entity_id}'}'s information has been updated.",
        timestamp=ts,
        type=NotificationType.INFO,
        priority=NotificationPriority.LOW,
        module="Clients",
        entity_type="client",
        entity_id=entity_id,
        action_url=_url("/client-management", entity_id),
    )


# Expense events


def _expense(
    data: ExpenseData,
    entity_id: EntityId | None,
    ts: datetime,
    title: str,
    message: str,
    kind: NotificationType,
) -> Notification:
    return Notification(
        title=title,
        message=message,
        timestamp=ts,
        type=kind,
        priority=NotificationPriority.MEDIUM,
        module="Expenses",
        entity_type="expense",
        entity_id=entity_id,
        action_url=_url("/expenses", entity_id),
    )


@template("expense.created", ExpenseData)
def _expense_created(data: ExpenseData, entity_id: EntityId | None, ts: datetime) -> Notification:
    return _expense(
        data,
        entity_id,
        ts,
        "New Expense Recorded",
        f"A new expense of {format_currency(data.amount)} has been recorded for "
        f"{data.category or 'general expenses'}.",
        NotificationType.INFO,
    )


@template("expense.approved", ExpenseData)
def _expense_approved(data: ExpenseData, entity_id: EntityId | None, ts: datetime) -> Notification:
    return _expense(
        data,
        entity_id,
        ts,
        "Expense Approved",
        f"The {data.category or 'uncategorized'} expense for "
        f"{format_currency(data.amount)} has been approved.",
        NotificationType.SUCCESS,
    )


@template("expense.rejected", ExpenseData)
def _expense_rejected(data: ExpenseData, entity_id: EntityId | None, ts: datetime) -> Notification:
    return _expense(
        data,
        entity_id,
        ts,
        "Expense Rejected",
        f"The {data.category or 'uncategorized'} expense for "
        f"{format_currency(data.amount)} has been rejected.",
        NotificationType.WARNING,
    )


# Inventory events


@template("inventory.low_stock", InventoryData)
def _inventory_low(data: InventoryData, entity_id: EntityId | None, ts: datetime) -> Notification:
    remaining = data.quantity_remaining if data.quantity_remaining is not None else "a few"
    return Notification(
        title="Low Inventory Alert",
        message=(
            f"{data.item_name or f'Item #{entity_id}'} is running low with only "
            f"{remaining} units remaining."
        ),
        timestamp=ts,
        type=NotificationType.WARNING,
        priority=NotificationPriority.HIGH,
        module="Inventory",
        entity_type="inventory",
        entity_id=entity_id,
        action_url=_url("/inventory", entity_id),
    )


@template("inventory.out_of_stock", InventoryData)
def _inventory_out(data: InventoryData, entity_id: EntityId | None, ts: datetime) -> Notification:
    return Notification(
        title="Out of Stock Alert",
        message=f"{data.item_name or f'Item #{entity_id}'} is now out of stock.",
        timestamp=ts,
        type=NotificationType.ERROR,
        priority=NotificationPriority.URGENT,
        module="Inventory",
        entity_type="inventory",
        entity_id=entity_id,
        action_url=_url("/inventory", entity_id),
    )


# Contract, payroll, tax and banking events


@template("contract.created", ContractData)
def _contract_created(data: ContractData, entity_id: EntityId | None, ts: datetime) -> Notification:
    return Notification(
        title="New Contract Created",
        message=(
            f"Contract {data.title or f'#{entity_id}'} with "
            f"{data.client_name or 'a client'} has been created."
        ),
        timestamp=ts,
        type=NotificationType.INFO,
        priority=NotificationPriority.MEDIUM,
        module="Contracts",
        entity_type="contract",
        entity_id=entity_id,
        action_url=_url("/contracts", entity_id),
    )


@template("contract.signed", ContractData)
def _contract_signed(data: ContractData, entity_id: EntityId | None, ts: datetime) -> Notification:
    return Notification(
        title="Contract Signed",
        message=(
            f"Contract {data.title or f'#{entity_id}'} has been signed by "
            f"{data.client_name or 'a client'}."
        ),
        timestamp=ts,
        type=NotificationType.SUCCESS,
        priority=NotificationPriority.HIGH,
        module="Contracts",
        entity_type="contract",
        entity_id=entity_id,
        action_url=_url("/contracts", entity_id),
    )


@template("payroll.processed", PayrollData)
def _payroll_processed(data: PayrollData, entity_id: EntityId | None, ts: datetime) -> Notification:
    period = f" ({data.period})" if data.period else ""
    return Notification(
        title="Payroll Processed",
        message=(
            f"Payroll of {format_currency(data.amount)} for "
            f"{data.employee_name or 'an employee'}{period} has been processed."
        ),
        timestamp=ts,
        type=NotificationType.SUCCESS,
        priority=NotificationPriority.MEDIUM,
        module="Payroll",
        entity_type="payroll",
        entity_id=entity_id,
        action_url="/payroll-processing",
    )


@template("tax.document_created", TaxDocumentData)
def _tax_document(data: TaxDocumentData, entity_id: EntityId | None, ts: datetime) -> Notification:
    year = f" for {data.tax_year}" if data.tax_year else ""
    return Notification(
        title="Tax Document Added",
        message=f"A {data.document_type or 'tax'} document{year} has been added.",
        timestamp=ts,
        type=NotificationType.INFO,
        priority=NotificationPriority.LOW,
        module="Tax",
        entity_type="taxDocument",
        entity_id=entity_id,
        action_url="/tax-management",
    )


@template("banking.transaction_imported", BankTransactionData)
def _bank_import(data: BankTransactionData, entity_id: EntityId | None, ts: datetime) -> Notification:
    account = f" from {data.account}" if data.account else ""
    return Notification(
        title="Bank Transaction Imported",
        message=f"A transaction of {format_currency(data.amount)} was imported{account}.",
        timestamp=ts,
        type=NotificationType.INFO,
        priority=NotificationPriority.LOW,
        module="Banking",
        entity_type="bankTransaction",
        entity_id=entity_id,
        action_url="/bank-reconciliation",
    )


# Integration events


@template("integration.error", IntegrationErrorData)
def _integration_error(
    data: IntegrationErrorData, entity_id: EntityId | None, ts: datetime
) -> Notification:
    return Notification(
        title="Integration Error",
        message=data.message
        or (
            f"An error occurred while syncing data between {data.source_module} "
            f"and {data.target_module}."
        ),
        timestamp=ts,
        type=NotificationType.ERROR,
        priority=NotificationPriority.HIGH,
        module="System",
        entity_type="integration",
        entity_id=data.transaction_id if data.transaction_id else entity_id,
    )


@template("integration.conflict", ConflictData)
def _integration_conflict(data: ConflictData, entity_id: EntityId | None, ts: datetime) -> Notification:
    target_id = data.entity_id if data.entity_id is not None else entity_id
    return Notification(
        title="Data Conflict Detected",
        message=data.message
        or (
            f"A data conflict was detected between {data.source_module} "
            f"and {data.target_module}."
        ),
        timestamp=ts,
        type=NotificationType.WARNING,
        priority=NotificationPriority.HIGH,
        module="System",
        entity_type="integration",
        entity_id=target_id,
        action_url=f"/{data.entity_type}s/{target_id}" if data.entity_type else None,
    )


# Account and system events


@template("system.maintenance", MaintenanceData)
def _maintenance(data: MaintenanceData, entity_id: EntityId | None, ts: datetime) -> Notification:
    when = data.date.strftime("%Y-%m-%d %H:%M") if data.date else "an upcoming date"
    duration = data.duration if data.duration is not None else "several"
    return Notification(
        title="Scheduled Maintenance",
        message=(
            f"System maintenance is scheduled for {when}. The platform may be "
            f"unavailable for {duration} minutes."
        ),
        timestamp=ts,
        type=NotificationType.INFO,
        priority=NotificationPriority.MEDIUM,
        module="System",
    )


@template("system.update", SystemUpdateData)
def _system_update(data: SystemUpdateData, entity_id: EntityId | None, ts: datetime) -> Notification:
    version = f" (v{data.version})" if data.version else ""
    return Notification(
        title="System Update Available",
        message=f"A new update{version} is available with new features and improvements.",
        timestamp=ts,
        type=NotificationType.INFO,
        priority=NotificationPriority.MEDIUM,
        module="System",
        action_url="/updates",
    )


@template("account.subscription", SubscriptionData)
def _subscription(data: SubscriptionData, entity_id: EntityId | None, ts: datetime) -> Notification:
    when = data.date.strftime("%Y-%m-%d") if data.date else "its next billing date"
    return Notification(
        title="Subscription Update",
        message=f"Your subscription will {data.action or 'change'} on {when}.",
        timestamp=ts,
        type=NotificationType.INFO,
        priority=NotificationPriority.HIGH,
        module="Billing",
        action_url="/billing",
    )


def _coerce(shape: type[BaseModel], payload: Any) -> BaseModel:
    if isinstance(payload, shape):
        return payload
    if payload is None:
        return shape()
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(by_alias=True, exclude_none=True)
    if not isinstance(payload, Mapping):
        raise TypeError(f"Unsupported notification payload: {type(payload).__name__}")
    fields = {key: value for key, value in payload.items() if key != "kind"}
    return shape.model_validate(fields)


def create_notification_from_event(
    event: str,
    payload: Any = None,
    *,
    timestamp: datetime | None = None,
    entity_id: EntityId | None = None,
    user_id: EntityId | None = None,
) -> Notification | None:
    """Build the notification for dotted ``event`` or return ``None``.

    ``payload`` may be a mapping (camelCase or snake_case keys) or a payload
    model. ``entity_id`` defaults to the payload's ``id``.
    """
    entry = TEMPLATES.get(event)
    if entry is None:
        return None
    try:
        data = _coerce(entry.shape, payload)
    except (ValidationError, TypeError) as exc:
        LOGGER.warning(
            "notifications.template.invalid_payload",
            extra={
                "event": "notifications.template.invalid_payload",
                "template": event,
                "error": str(exc),
            },
        )
        return None

    resolved_id = entity_id if entity_id is not None else getattr(data, "id", None)
    notification = entry.build(data, resolved_id, timestamp or datetime.now(UTC))
    if user_id is not None:
        notification = notification.model_copy(update={"user_id": user_id})
    return notification
