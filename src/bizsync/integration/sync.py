"""Keep cached module views fresh when data changes elsewhere."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import logging
from typing import TYPE_CHECKING, Any

from ..api import ApiClient
from ..cache import InMemoryQueryCache
from ..events.payloads import EntityType, EventName, IntegrationEventPayload, Module
from ..exceptions import ApiError

if TYPE_CHECKING:
    from .service import IntegrationService

LOGGER = logging.getLogger(__name__)

AI_INSIGHTS_PATH = "/api/ai-insights"

# Query keys to drop when a module's data changes.
MODULE_QUERY_KEYS: dict[Module, tuple[str, ...]] = {
    Module.FINANCIALS: ("/api/dashboard", "/api/financials", "/api/cash-flow", "/api/tax-management"),
    Module.INVOICES: ("/api/dashboard", "/api/financials", "/api/cash-flow", "/api/client-management"),
    Module.EXPENSES: ("/api/dashboard", "/api/financials", "/api/cash-flow", "/api/tax-management"),
    Module.INVENTORY: ("/api/dashboard", "/api/inventory-cost-analysis", "/api/financials"),
    Module.CLIENTS: ("/api/dashboard", "/api/invoices", "/api/contracts", "/api/client-management"),
    Module.EMPLOYEES: (
        "/api/dashboard",
        "/api/payroll-processing",
        "/api/time-tracking",
        "/api/employee-management",
    ),
    Module.CONTRACTS: ("/api/dashboard", "/api/invoices", "/api/client-management"),
    Module.BANKING: ("/api/dashboard", "/api/financials", "/api/bank-reconciliation", "/api/cash-flow"),
    Module.TAX: ("/api/dashboard", "/api/financials", "/api/tax-management"),
    Module.TIME_TRACKING: ("/api/dashboard", "/api/payroll-processing", "/api/employee-management"),
    Module.PAYROLL: ("/api/dashboard", "/api/financials", "/api/employee-management"),
    Module.BUDGET: ("/api/dashboard", "/api/financials", "/api/cash-flow", "/api/budget-planning"),
}

INSIGHT_TYPES: dict[str, tuple[str, ...]] = {
    "financial": ("financial-health", "cash-flow-forecast"),
    "inventory": ("inventory-optimization", "supply-chain"),
    "clients": ("client-relationships", "sales-forecast"),
    "expenses": ("expense-patterns", "cost-saving-opportunities"),
    "time": ("productivity-analysis", "resource-allocation"),
}

# Dotted cross-module events: modules to sync, then the insight family to refresh.
CROSS_MODULE_EVENTS: dict[str, tuple[tuple[Module, ...], str]] = {
    "invoice.created": ((Module.FINANCIALS, Module.CLIENTS), "financial"),
    "expense.recorded": ((Module.FINANCIALS, Module.TAX), "expenses"),
    "client.added": ((Module.CLIENTS,), "clients"),
    "inventory.updated": ((Module.INVENTORY,), "inventory"),
    "time.tracked": ((Module.TIME_TRACKING, Module.PAYROLL), "time"),
    "transaction.imported": ((Module.BANKING, Module.FINANCIALS), "financial"),
    "contract.signed": ((Module.CONTRACTS, Module.CLIENTS), "clients"),
}

ENTITY_SOURCES: dict[EntityType, tuple[str, ...]] = {
    EntityType.CLIENT: ("/api/clients", "/api/invoices", "/api/contracts"),
    EntityType.INVOICE: ("/api/invoices", "/api/clients", "/api/financials"),
    EntityType.EXPENSE: ("/api/expenses", "/api/tax-management", "/api/financials"),
    EntityType.EMPLOYEE: ("/api/employees", "/api/time-tracking", "/api/payroll-processing"),
    EntityType.INVENTORY: ("/api/inventory", "/api/inventory-cost-analysis", "/api/financials"),
}

UPDATE_ENDPOINTS: dict[EntityType, tuple[str, ...]] = {
    EntityType.CLIENT: ("/api/clients", "/api/client-management"),
    EntityType.INVOICE: ("/api/invoices", "/api/financials"),
    EntityType.EXPENSE: ("/api/expenses", "/api/financials", "/api/tax-management"),
    EntityType.EMPLOYEE: ("/api/employees", "/api/payroll-processing"),
    EntityType.INVENTORY: ("/api/inventory", "/api/inventory-cost-analysis"),
}

ENDPOINT_MODULES: dict[str, Module] = {
    "/api/clients": Module.CLIENTS,
    "/api/client-management": Module.CLIENTS,
    "/api/invoices": Module.INVOICES,
    "/api/financials": Module.FINANCIALS,
    "/api/expenses": Module.EXPENSES,
    "/api/tax-management": Module.TAX,
    "/api/employees": Module.EMPLOYEES,
    "/api/payroll-processing": Module.PAYROLL,
    "/api/inventory": Module.INVENTORY,
    "/api/inventory-cost-analysis": Module.INVENTORY,
}

ENTITY_INSIGHTS: dict[EntityType, str] = {
    EntityType.CLIENT: "clients",
    EntityType.INVOICE: "financial",
    EntityType.EXPENSE: "expenses",
    EntityType.EMPLOYEE: "time",
    EntityType.INVENTORY: "inventory",
    EntityType.TIME_ENTRY: "time",
    EntityType.BANK_TRANSACTION: "financial",
}


class ModuleSync:
    """Invalidate, read and fan out updates across module views."""

    def __init__(self, api: ApiClient, cache: InMemoryQueryCache) -> None:
        self.api = api
        self.cache = cache

    def attach(self, integration: IntegrationService) -> None:
        for event in (
            EventName.ENTITY_CREATED,
            EventName.ENTITY_UPDATED,
            EventName.ENTITY_DELETED,
        ):
            integration.on(event, self._on_entity_event)

    def _on_entity_event(self, payload: IntegrationEventPayload) -> None:
        self.sync_module_data(payload.module)
        insight_type = ENTITY_INSIGHTS.get(payload.entity_type)
        if insight_type:
            self.update_ai_insights(insight_type)

    def sync_module_data(self, module: Module | str) -> list[str]:
        """Drop every cached view that depends on ``module``."""
        keys = MODULE_QUERY_KEYS.get(Module(module), ())
        for key in keys:
            self.cache.invalidate_queries(key)
        return list(keys)

    def update_ai_insights(self, data_type: str) -> list[str]:
        keys = [AI_INSIGHTS_PATH] + [
            f"{AI_INSIGHTS_PATH}/{insight}" for insight in INSIGHT_TYPES.get(data_type, ())
        ]
        for key in keys:
            self.cache.invalidate_queries(key)
        return keys

    def handle_cross_module_event(self, event: str) -> bool:
        """Apply the sync rules for a dotted cross-module event."""
        rule = CROSS_MODULE_EVENTS.get(event)
        if rule is None:
            LOGGER.debug(
                "sync.event.unhandled",
                extra={"event": "sync.event.unhandled", "event_name": event},
            )
            return False
        modules, insight_type = rule
        for module in modules:
            self.sync_module_data(module)
        self.update_ai_insights(insight_type)
        return True

    async def get_integrated_entity_data(
        self, entity_type: EntityType | str, entity_id: str | int
    ) -> dict[str, Any]:
        """Read an entity from every module that holds a view of it.

        Sources that fail are left out of the result.
        """
        sources = ENTITY_SOURCES.get(EntityType(entity_type), ())

        async def fetch(source: str) -> tuple[str, Any]:
            path = f"{source}/{entity_id}"
            return source, await self.cache.fetch_query(path, lambda: self.api.get(path))

        results = await asyncio.gather(*(fetch(s) for s in sources), return_exceptions=True)
        combined: dict[str, Any] = {}
        for source, result in zip(sources, results):
            if isinstance(result, ApiError):
                LOGGER.warning(
                    "sync.fetch.failed",
                    extra={"event": "sync.fetch.failed", "source": source, "error": str(result)},
                )
                continue
            if isinstance(result, BaseException):
                raise result
            combined[source.split("/")[2]] = result[1]
        return combined

    async def update_across_modules(
        self,
        entity_type: EntityType | str,
        entity_id: str | int,
        updates: Mapping[str, Any],
    ) -> list[str]:
        """PATCH ``updates`` to every module endpoint; returns endpoints that failed."""
        entity_type = EntityType(entity_type)
        endpoints = UPDATE_ENDPOINTS.get(entity_type, ())

        async def send(endpoint: str) -> str | None:
            try:
                await self.api.patch(f"{endpoint}/{entity_id}", json=dict(updates))
            except ApiError as exc:
                LOGGER.warning(
                    "sync.update.failed",
                    extra={"event": "sync.update.failed", "endpoint": endpoint, "error": str(exc)},
                )
                return endpoint
            return None

        outcomes = await asyncio.gather(*(send(endpoint) for endpoint in endpoints))
        for module in dict.fromkeys(ENDPOINT_MODULES[e] for e in endpoints if e in ENDPOINT_MODULES):
            self.sync_module_data(module)
        insight_type = ENTITY_INSIGHTS.get(entity_type)
        if insight_type:
            self.update_ai_insights(insight_type)
        return [endpoint for endpoint in outcomes if endpoint is not None]
