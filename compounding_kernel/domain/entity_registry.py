"""
Closed registry of auditable entity types.

Audit records name their subject by a string entity type.  Only the values
below are accepted, so a typo cannot create a new, silently empty trail.
The ORM model behind each type is resolved in ``models.registry``.
"""

from __future__ import annotations

from enum import Enum


class EntityType(str, Enum):
    PRODUCTION_ORDER = "ProductionOrder"
    MEDICINE = "Medicine"
    LABORATORY = "Laboratory"
    VEHICLE = "Vehicle"
    CONTAINER = "Container"
    STABILITY = "Stability"
    USER = "User"


def parse_entity_type(value: EntityType | str) -> EntityType:
    """
    Resolve ``value`` to an EntityType.

    Raises:
        ValueError: ``value`` is not a registered entity type.
    """
    if isinstance(value, EntityType):
        return value
    try:
        return EntityType(value)
    except ValueError:
        raise ValueError(
            f"Unknown entity type {value!r}; expected one of "
            f"{', '.join(e.value for e in EntityType)}"
        ) from None
