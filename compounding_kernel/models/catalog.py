"""
Module: compounding_kernel.models.catalog
Responsibility: ORM persistence for the reference catalog read by the
    validator and calculation engine: medicines (with presentations),
    laboratories, vehicles, containers, stability records, and the users
    whose ids appear as actors on orders and audit records.
Architecture position: Kernel > Models.  May import from db/ and domain/
    value enums only.

Invariants enforced:
    - At most one Stability row per (medicine, laboratory, vehicle,
      container) tuple (unique constraint).
    - Presentations keep their listed order (``position``); the first one
      drives supply-unit calculation.

Catalog maintenance (CRUD screens) is owned by an outer layer; the kernel
only reads these tables.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compounding_kernel.db.base import TrackedBase, UUIDString
from compounding_kernel.db.types import Hours, LongText, Name, ShortCode, Volume
from compounding_kernel.domain.values import Presentation, ProductionLine


class Medicine(TrackedBase):
    """A drug that may be compounded, with its concentration per ml."""

    __tablename__ = "medicines"

    name: Mapped[Name] = mapped_column(nullable=False, index=True)
    active_ingredient: Mapped[Name] = mapped_column(nullable=False)
    concentration: Mapped[ShortCode] = mapped_column(nullable=False)
    route: Mapped[ShortCode] = mapped_column(nullable=False)
    production_line: Mapped[str] = mapped_column(String(20), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    presentations: Mapped[list[MedicinePresentation]] = relationship(
        back_populates="medicine",
        order_by="MedicinePresentation.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def presentation_values(self) -> tuple[Presentation, ...]:
        return tuple(p.to_value() for p in self.presentations)

    def __repr__(self) -> str:
        return f"<Medicine {self.name} {self.concentration}>"


class MedicinePresentation(TrackedBase):
    """One listed presentation of a medicine (volume x count per unit)."""

    __tablename__ = "medicine_presentations"

    medicine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("medicines.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    volume: Mapped[Volume] = mapped_column(nullable=False)
    unit: Mapped[ShortCode] = mapped_column(nullable=False, default="ml")
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    container_type: Mapped[ShortCode] = mapped_column(nullable=False)

    medicine: Mapped[Medicine] = relationship(back_populates="presentations")

    def to_value(self) -> Presentation:
        return Presentation(
            volume=Decimal(self.volume),
            unit=self.unit,
            count=self.count,
            container_type=self.container_type,
        )


class Laboratory(TrackedBase):
    """Manufacturer of a medicine."""

    __tablename__ = "laboratories"

    name: Mapped[Name] = mapped_column(nullable=False, unique=True)
    country: Mapped[ShortCode] = mapped_column(nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Vehicle(TrackedBase):
    """Diluent (saline, dextrose ...) and the lines it is approved for."""

    __tablename__ = "vehicles"

    name: Mapped[Name] = mapped_column(nullable=False, unique=True)
    compatible_lines: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    def is_compatible_with(self, line: ProductionLine) -> bool:
        return line.value in (self.compatible_lines or [])


class Container(TrackedBase):
    """Final container (bag, syringe, elastomer ...)."""

    __tablename__ = "containers"

    container_type: Mapped[ShortCode] = mapped_column(nullable=False, unique=True)
    max_volume: Mapped[Volume] = mapped_column(nullable=False)
    material: Mapped[ShortCode] = mapped_column(nullable=False)


class Stability(TrackedBase):
    """Stability window for an exact (medicine, lab, vehicle, container) tuple."""

    __tablename__ = "stabilities"

    __table_args__ = (
        UniqueConstraint(
            "medicine_id",
            "laboratory_id",
            "vehicle_id",
            "container_id",
            name="uq_stability_tuple",
        ),
    )

    medicine_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("medicines.id"), nullable=False
    )
    laboratory_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("laboratories.id"), nullable=False
    )
    vehicle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vehicles.id"), nullable=False
    )
    container_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("containers.id"), nullable=False
    )
    hours: Mapped[Hours] = mapped_column(nullable=False)
    conditions: Mapped[LongText] = mapped_column(nullable=False, default="")


class User(TrackedBase):
    """An actor: pharmacist, auxiliary, coordinator or auditor."""

    __tablename__ = "users"

    name: Mapped[Name] = mapped_column(nullable=False)
    email: Mapped[Name] = mapped_column(nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
