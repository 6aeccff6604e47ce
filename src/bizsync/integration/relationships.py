"""Directed, typed relationships between business modules."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import logging

from ..events.payloads import Module
from ..exceptions import RelationshipCycleError

LOGGER = logging.getLogger(__name__)

RelationshipEdge = tuple[Module, Module, str]

# Acyclic by construction: nothing points back at a module upstream of it.
DEFAULT_RELATIONSHIPS: tuple[RelationshipEdge, ...] = (
    (Module.CONTRACTS, Module.INVOICES, "contract_billing"),
    (Module.CONTRACTS, Module.CLIENTS, "contract_party"),
    (Module.INVOICES, Module.CLIENTS, "invoices_to_clients"),
    (Module.EXPENSES, Module.FINANCIALS, "expense_cost"),
    (Module.EXPENSES, Module.TAX, "deductible_expense"),
    (Module.EMPLOYEES, Module.TIME_TRACKING, "employee_timesheet"),
    (Module.EMPLOYEES, Module.PAYROLL, "employee_compensation"),
    (Module.TIME_TRACKING, Module.PAYROLL, "billable_hours"),
    (Module.PAYROLL, Module.FINANCIALS, "payroll_cost"),
    (Module.PAYROLL, Module.TAX, "payroll_withholding"),
    (Module.INVENTORY, Module.FINANCIALS, "inventory_valuation"),
    (Module.BANKING, Module.FINANCIALS, "bank_reconciliation"),
    (Module.BUDGET, Module.FINANCIALS, "budget_tracking"),
    (Module.FINANCIALS, Module.TAX, "taxable_income"),
)


def relationship_key(source: Module, target: Module) -> str:
    return f"{source.value}:{target.value}"


class RelationshipRegistry:
    """Append-only map of ``"source:target"`` to ordered relationship types.

    Registering an edge that would let propagation loop back onto its
    origin raises :class:`RelationshipCycleError`.
    """

    def __init__(self, relationships: Iterable[RelationshipEdge] = DEFAULT_RELATIONSHIPS) -> None:
        self._types: dict[str, list[str]] = {}
        self._edges: dict[str, tuple[Module, Module]] = {}
        for source, target, relationship_type in relationships:
            self.register(source, target, relationship_type)

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[tuple[Module, Module, list[str]]]:
        for key, (source, target) in self._edges.items():
            yield source, target, list(self._types[key])

    def register(self, source: Module | str, target: Module | str, relationship_type: str) -> bool:
        """Add ``relationship_type`` to the edge; returns False for a duplicate."""
        source, target = Module(source), Module(target)
        key = relationship_key(source, target)
        if key not in self._edges and self._reaches(target, source):
            raise RelationshipCycleError(
                f"Relationship {key} would create a propagation cycle."
            )
        types = self._types.setdefault(key, [])
        self._edges.setdefault(key, (source, target))
        if relationship_type in types:
            return False
        types.append(relationship_type)
        LOGGER.debug(
            "relationships.registered",
            extra={
                "event": "relationships.registered",
                "key": key,
                "relationship_type": relationship_type,
            },
        )
        return True

    def types(self, source: Module | str, target: Module | str) -> list[str]:
        return list(self._types.get(relationship_key(Module(source), Module(target)), []))

    def edges_from(self, source: Module | str) -> list[tuple[Module, list[str]]]:
        """Targets of ``source`` with their relationship types, in registration order."""
        source = Module(source)
        return [
            (target, list(self._types[key]))
            for key, (edge_source, target) in self._edges.items()
            if edge_source is source
        ]

    def _reaches(self, start: Module, goal: Module) -> bool:
        if start is goal:
            return True
        seen: set[Module] = set()
        stack = [start]
        while stack:
            node = stack.pop()
            if node is goal:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(target for target, _ in self.edges_from(node))
        return False
