"""Fan entity mutations out to related modules as interaction events."""

from __future__ import annotations

from collections.abc import Callable

from ..events.payloads import (
    EntityType,
    EventName,
    IntegrationEventPayload,
    InteractionData,
)
from .relationships import RelationshipRegistry, relationship_key

SYSTEM_ENTITY_ID = "system"


class RelationshipPropagator:
    """Emit one ``module:interaction`` per relationship type leaving the source module."""

    def __init__(
        self,
        registry: RelationshipRegistry,
        emit: Callable[[str, IntegrationEventPayload], bool],
    ) -> None:
        self.registry = registry
        self._emit = emit

    def interactions_for(
        self, payload: IntegrationEventPayload
    ) -> list[IntegrationEventPayload]:
        interactions: list[IntegrationEventPayload] = []
        for target, relationship_types in self.registry.edges_from(payload.module):
            for relationship_type in relationship_types:
                interactions.append(
                    IntegrationEventPayload(
                        module=target,
                        entity_type=EntityType.TRANSACTION,
                        entity_id=SYSTEM_ENTITY_ID,
                        timestamp=payload.timestamp,
                        relationship_type=relationship_type,
                        relationship_id=relationship_key(payload.module, target),
                        user_id=payload.user_id,
                        data=InteractionData(
                            source_module=payload.module,
                            source_entity_type=payload.entity_type,
                            source_entity_id=payload.entity_id,
                            relationship_type=relationship_type,
                        ),
                    )
                )
        return interactions

    def propagate(self, payload: IntegrationEventPayload) -> int:
        """Emit the interactions for ``payload`` one by one; returns how many."""
        interactions = self.interactions_for(payload)
        for interaction in interactions:
            self._emit(EventName.MODULE_INTERACTION, interaction)
        return len(interactions)
