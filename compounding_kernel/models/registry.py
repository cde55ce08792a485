"""
EntityType -> ORM model resolution, plus one-line summaries used when
listing the entities that carry audit history.
"""

from __future__ import annotations

from compounding_kernel.db.base import Base
from compounding_kernel.domain.entity_registry import EntityType
from compounding_kernel.models.catalog import (
    Container,
    Laboratory,
    Medicine,
    Stability,
    User,
    Vehicle,
)
from compounding_kernel.models.production_order import ProductionOrder

ENTITY_MODELS: dict[EntityType, type[Base]] = {
    EntityType.PRODUCTION_ORDER: ProductionOrder,
    EntityType.MEDICINE: Medicine,
    EntityType.LABORATORY: Laboratory,
    EntityType.VEHICLE: Vehicle,
    EntityType.CONTAINER: Container,
    EntityType.STABILITY: Stability,
    EntityType.USER: User,
}


def model_for(entity_type: EntityType) -> type[Base]:
    return ENTITY_MODELS[entity_type]


def summarize(entity: Base) -> str:
    """Short human label for an entity row."""
    if isinstance(entity, ProductionOrder):
        return f"{entity.code} ({entity.production_line}, {entity.state})"
    if isinstance(entity, Medicine):
        return f"{entity.name} {entity.concentration}"
    if isinstance(entity, (Laboratory, Vehicle, User)):
        return entity.name
    if isinstance(entity, Container):
        return entity.container_type
    if isinstance(entity, Stability):
        return f"{entity.hours}h"
    return str(entity.id)
