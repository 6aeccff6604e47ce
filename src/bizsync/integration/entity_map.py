"""Entity-level relationships (client -> invoice, invoice -> payment, ...)."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any

from ..api import ApiClient
from ..exceptions import ApiError, RelationshipNotFoundError

LOGGER = logging.getLogger(__name__)


class Cardinality(str, Enum):
    ONE_TO_ONE = "oneToOne"
    ONE_TO_MANY = "oneToMany"
    MANY_TO_ONE = "manyToOne"
    MANY_TO_MANY = "manyToMany"


@dataclass(frozen=True)
class EntityRelationship:
    source_entity: str
    target_entity: str
    cardinality: Cardinality
    source_field: str
    target_field: str
    description: str

    def to_api(self) -> dict[str, str]:
        return {
            "sourceEntity": self.source_entity,
            "targetEntity": self.target_entity,
            "type": self.cardinality.value,
            "sourceField": self.source_field,
            "targetField": self.target_field,
            "description": self.description,
        }


_1N, _N1, _11 = Cardinality.ONE_TO_MANY, Cardinality.MANY_TO_ONE, Cardinality.ONE_TO_ONE

ENTITY_RELATIONSHIPS: tuple[EntityRelationship, ...] = (
    EntityRelationship("client", "invoice", _1N, "id", "clientId", "A client can have multiple invoices"),
    EntityRelationship("client", "contract", _1N, "id", "clientId", "A client can have multiple contracts"),
    EntityRelationship("invoice", "client", _N1, "clientId", "id", "An invoice belongs to a client"),
    EntityRelationship("invoice", "payment", _1N, "id", "invoiceId", "An invoice can have multiple payments"),
    EntityRelationship("invoice", "contract", _N1, "contractId", "id", "An invoice can be associated with a contract"),
    EntityRelationship("contract", "client", _N1, "clientId", "id", "A contract belongs to a client"),
    EntityRelationship("contract", "invoice", _1N, "id", "contractId", "A contract can have multiple invoices"),
    EntityRelationship("expense", "expenseCategory", _N1, "categoryId", "id", "An expense belongs to a category"),
    EntityRelationship("expense", "project", _N1, "projectId", "id", "An expense can be associated with a project"),
    EntityRelationship("expense", "user", _N1, "submittedBy", "id", "An expense is submitted by a user"),
    EntityRelationship("product", "productCategory", _N1, "categoryId", "id", "A product belongs to a category"),
    EntityRelationship("product", "inventory", _11, "id", "productId", "A product has inventory information"),
    EntityRelationship("product", "supplier", _N1, "supplierId", "id", "A product comes from a supplier"),
    EntityRelationship("project", "client", _N1, "clientId", "id", "A project belongs to a client"),
    EntityRelationship("project", "task", _1N, "id", "projectId", "A project can have multiple tasks"),
    EntityRelationship("project", "expense", _1N, "id", "projectId", "A project can have multiple expenses"),
    EntityRelationship("timeEntry", "project", _N1, "projectId", "id", "A time entry is associated with a project"),
    EntityRelationship("timeEntry", "task", _N1, "taskId", "id", "A time entry can be for a specific task"),
    EntityRelationship("timeEntry", "user", _N1, "userId", "id", "A time entry belongs to a user"),
    EntityRelationship("user", "role", _N1, "roleId", "id", "A user has a role"),
    EntityRelationship("user", "timeEntry", _1N, "id", "userId", "A user can have multiple time entries"),
    EntityRelationship("user", "expense", _1N, "id", "submittedBy", "A user can submit multiple expenses"),
)


def get_entity_relationships(entity_type: str) -> list[EntityRelationship]:
    """Relationships where ``entity_type`` is either end."""
    return [
        rel
        for rel in ENTITY_RELATIONSHIPS
        if entity_type in (rel.source_entity, rel.target_entity)
    ]


def find_relationship(entity_type: str, related_entity_type: str) -> EntityRelationship:
    for rel in ENTITY_RELATIONSHIPS:
        if (rel.source_entity, rel.target_entity) in (
            (entity_type, related_entity_type),
            (related_entity_type, entity_type),
        ):
            return rel
    raise RelationshipNotFoundError(
        f"No relationship defined between {entity_type} and {related_entity_type}"
    )


async def get_related_entities(
    api: ApiClient,
    entity_type: str,
    entity_id: str | int,
    related_entity_type: str,
) -> list[Any]:
    """Fetch the ``related_entity_type`` records linked to one entity.

    Raises RelationshipNotFoundError for undeclared pairs; API failures
    yield an empty list.
    """
    relationship = find_relationship(entity_type, related_entity_type)
    if relationship.source_entity == entity_type:
        path = f"/api/{related_entity_type}s"
        params = {relationship.target_field: str(entity_id)}
    else:
        path = f"/api/{related_entity_type}s/{entity_id}/related/{entity_type}"
        params = None

    try:
        body = await api.get(path, params=params)
    except ApiError as exc:
        LOGGER.warning(
            "entity_map.related.fetch_failed",
            extra={"event": "entity_map.related.fetch_failed", "path": path, "error": str(exc)},
        )
        return []
    if isinstance(body, list):
        return body
    if isinstance(body, Mapping):
        return [body]
    return []


async def update_related_entities(
    api: ApiClient,
    entity_type: str,
    entity_id: str | int,
    updates: Mapping[str, Any],
) -> int:
    """Tell the API about updates that touch a relationship's source field.

    Returns the number of relationships the API was notified about.
    """
    notified = 0
    for relationship in get_entity_relationships(entity_type):
        if relationship.source_entity != entity_type or relationship.source_field not in updates:
            continue
        try:
            await api.post(
                "/api/integration/update-related",
                json={
                    "sourceEntity": entity_type,
                    "sourceId": entity_id,
                    "targetEntity": relationship.target_entity,
                    "relationship": relationship.to_api(),
                    "updates": dict(updates),
                },
            )
        except ApiError as exc:
            LOGGER.warning(
                "entity_map.related.update_failed",
                extra={
                    "event": "entity_map.related.update_failed",
                    "target_entity": relationship.target_entity,
                    "error": str(exc),
                },
            )
            continue
        notified += 1
    return notified
