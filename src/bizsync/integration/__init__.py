"""Cross-module integration: bus service, relationships and sync."""

from .entity_map import (
    ENTITY_RELATIONSHIPS,
    Cardinality,
    EntityRelationship,
    find_relationship,
    get_entity_relationships,
    get_related_entities,
    update_related_entities,
)
from .propagator import RelationshipPropagator
from .relationships import DEFAULT_RELATIONSHIPS, RelationshipRegistry
from .service import IntegrationService
from .sync import ModuleSync

__all__ = [
    "Cardinality",
    "DEFAULT_RELATIONSHIPS",
    "ENTITY_RELATIONSHIPS",
    "EntityRelationship",
    "IntegrationService",
    "ModuleSync",
    "RelationshipPropagator",
    "RelationshipRegistry",
    "find_relationship",
    "get_entity_relationships",
    "get_related_entities",
    "update_related_entities",
]
