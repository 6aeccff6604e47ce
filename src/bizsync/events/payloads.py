"""Event names, routing enums and the typed payloads carried on the bus."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

EntityId = Union[str, int]


class EventName(str, Enum):
    """Fixed vocabulary of bus events."""

    ENTITY_CREATED = "entity:created"
    ENTITY_UPDATED = "entity:updated"
    ENTITY_DELETED = "entity:deleted"
    MODULE_INTERACTION = "module:interaction"
    RELATIONSHIP_CREATED = "data:relationship:created"
    RELATIONSHIP_UPDATED = "data:relationship:updated"
    RELATIONSHIP_DELETED = "data:relationship:deleted"
    NOTIFICATION_CREATED = "notification:created"

    @property
    def is_entity_event(self) -> bool:
        return self.value.startswith("entity:")


class Module(str, Enum):
    """Business modules used as coarse routing keys."""

    FINANCIALS = "financials"
    INVENTORY = "inventory"
    CONTRACTS = "contracts"
    EXPENSES = "expenses"
    INVOICES = "invoices"
    CLIENTS = "clients"
    EMPLOYEES = "employees"
    PAYROLL = "payroll"
    BUDGET = "budget"
    TAX = "tax"
    TIME_TRACKING = "timeTracking"
    BANKING = "banking"


class EntityType(str, Enum):
    """Business record types whose mutations travel over the bus."""

    TRANSACTION = "transaction"
    INVOICE = "invoice"
    CONTRACT = "contract"
    EXPENSE = "expense"
    INVENTORY = "inventory"
    CLIENT = "client"
    EMPLOYEE = "employee"
    PAYROLL = "payroll"
    TAX_DOCUMENT = "taxDocument"
    TIME_ENTRY = "timeEntry"
    BANK_TRANSACTION = "bankTransaction"


class PayloadModel(BaseModel):
    """Immutable camelCase-aware base for everything published on the bus."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class TransactionData(PayloadModel):
    kind: Literal["transaction"] = "transaction"
    id: EntityId | None = None
    amount: Decimal | None = None
    description: str | None = None
    category: str | None = None


class InvoiceData(PayloadModel):
    kind: Literal["invoice"] = "invoice"
    id: EntityId | None = None
    invoice_number: str | None = None
    client_name: str | None = None
    total: Decimal | None = None
    amount: Decimal | None = None
    days_overdue: int | None = None
    status: str | None = None


class ContractData(PayloadModel):
    kind: Literal["contract"] = "contract"
    id: EntityId | None = None
    title: str | None = None
    client_name: str | None = None
    status: str | None = None


class ExpenseData(PayloadModel):
    kind: Literal["expense"] = "expense"
    id: EntityId | None = None
    amount: Decimal | None = None
    category: str | None = None
    description: str | None = None


class InventoryData(PayloadModel):
    kind: Literal["inventory"] = "inventory"
    id: EntityId | None = None
    item_name: str | None = None
    quantity_remaining: int | None = None
    unit_price: Decimal | None = None


class ClientData(PayloadModel):
    kind: Literal["client"] = "client"
    id: EntityId | None = None
    name: str | None = None
    email: str | None = None


class EmployeeData(PayloadModel):
    kind: Literal["employee"] = "employee"
    id: EntityId | None = None
    name: str | None = None
    role: str | None = None


class PayrollData(PayloadModel):
    kind: Literal["payroll"] = "payroll"
    id: EntityId | None = None
    employee_name: str | None = None
    amount: Decimal | None = None
    period: str | None = None


class TaxDocumentData(PayloadModel):
    kind: Literal["taxDocument"] = "taxDocument"
    id: EntityId | None = None
    document_type: str | None = None
    tax_year: int | None = None


class TimeEntryData(PayloadModel):
    kind: Literal["timeEntry"] = "timeEntry"
    id: EntityId | None = None
    employee_name: str | None = None
    hours: Decimal | None = None
    project: str | None = None


class BankTransactionData(PayloadModel):
    kind: Literal["bankTransaction"] = "bankTransaction"
    id: EntityId | None = None
    amount: Decimal | None = None
    description: str | None = None
    account: str | None = None


class InteractionData(PayloadModel):
    """Describes the primary mutation that caused a propagated interaction."""

    kind: Literal["interaction"] = "interaction"
    source_module: Module
    source_entity_type: EntityType
    source_entity_id: EntityId
    relationship_type: str


EventData = Annotated[
    Union[
        TransactionData,
        InvoiceData,
        ContractData,
        ExpenseData,
        InventoryData,
        ClientData,
        EmployeeData,
        PayrollData,
        TaxDocumentData,
        TimeEntryData,
        BankTransactionData,
        InteractionData,
    ],
    Field(discriminator="kind"),
]


class IntegrationEventPayload(PayloadModel):
    """The unit of information flowing through the integration bus."""

    module: Module
    entity_type: EntityType
    entity_id: EntityId
    action: str | None = None
    timestamp: datetime | None = None
    data: EventData | None = None
    relationship_type: str | None = None
    relationship_id: str | None = None
    user_id: EntityId | None = None

    @model_validator(mode="before")
    @classmethod
    def _tag_untyped_data(cls, values: Any) -> Any:
        """Treat an untagged ``data`` mapping as the shape of ``entity_type``."""
        if not isinstance(values, Mapping):
            return values
        data = values.get("data")
        if not isinstance(data, Mapping) or "kind" in data:
            return values
        raw_type = values.get("entity_type", values.get("entityType"))
        try:
            kind = EntityType(raw_type).value
        except ValueError:
            return values
        return {**values, "data": {**data, "kind": kind}}
