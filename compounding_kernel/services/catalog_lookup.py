"""
CatalogLookup -- read access to the reference catalog.

The validator and calculation engine depend on this collaborator only
through the ``find_*`` methods below, each returning the ORM row or
``None``.  Catalog maintenance lives outside the kernel.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from compounding_kernel.models.catalog import (
    Container,
    Laboratory,
    Medicine,
    Stability,
    User,
    Vehicle,
)


class CatalogLookup:
    """Primary-key and exact-tuple lookups over the catalog tables."""

    def __init__(self, session: Session):
        self._session = session

    def find_medicine(self, medicine_id: UUID) -> Medicine | None:
        return self._session.get(Medicine, medicine_id)

    def find_lab(self, laboratory_id: UUID) -> Laboratory | None:
        return self._session.get(Laboratory, laboratory_id)

    def find_vehicle(self, vehicle_id: UUID) -> Vehicle | None:
        return self._session.get(Vehicle, vehicle_id)

    def find_container(self, container_id: UUID) -> Container | None:
        return self._session.get(Container, container_id)

    def find_stability(
        self,
        medicine_id: UUID,
        laboratory_id: UUID,
        vehicle_id: UUID,
        container_id: UUID,
    ) -> Stability | None:
        """Stability for the exact 4-tuple; no partial matching."""
        return self._session.execute(
            select(Stability).where(
                Stability.medicine_id == medicine_id,
                Stability.laboratory_id == laboratory_id,
                Stability.vehicle_id == vehicle_id,
                Stability.container_id == container_id,
            )
        ).scalar_one_or_none()

    def find_user(self, user_id: UUID) -> User | None:
        return self._session.get(User, user_id)

    def find_users(self, user_ids: list[UUID]) -> dict[UUID, User]:
        if not user_ids:
            return {}
        rows = self._session.execute(
            select(User).where(User.id.in_(user_ids))
        ).scalars()
        return {u.id: u for u in rows}
