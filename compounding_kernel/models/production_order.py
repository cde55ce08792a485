"""
Module: compounding_kernel.models.production_order
Responsibility: ORM persistence for the ProductionOrder aggregate and its
    embedded Mix rows.
Architecture position: Kernel > Models.  May import from db/ and domain/
    enums only.

Invariants enforced:
    - ``code`` is unique.
    - Per-stage actor/timestamp columns (``<stage>_by_id`` / ``<stage>_at``)
      are populated for the current state and every earlier state, and empty
      for every later state.  Only the workflow compare-and-swap writes them.
    - Mix rows are immutable after insert (db/immutability.py).
    - ``total_volume == extraction_volume + vehicle_volume`` for every Mix.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compounding_kernel.db.base import Base, UTCDateTime, UUIDString
from compounding_kernel.db.types import Dose, LongText, Name, ShortCode, Units, Volume
from compounding_kernel.domain.values import ProductionLine
from compounding_kernel.domain.workflow import OrderState, stage_order

# Columns owned by the workflow state machine
WORKFLOW_COLUMNS: frozenset[str] = frozenset(
    {"state"}
    | {f"{s.stage_key}_at" for s in OrderState}
    | {f"{s.stage_key}_by_id" for s in OrderState}
)


class ProductionOrder(Base):
    """
    A production batch of patient-specific admixtures.

    Contract:
        ``state`` only moves forward along the workflow chain, through
        ``OrderRepository.conditional_update_state``.
    """

    __tablename__ = "production_orders"

    code: Mapped[ShortCode] = mapped_column(nullable=False, unique=True)
    production_line: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    state: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True, default=OrderState.CREATED.value
    )
    production_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    mix_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    calculation_engine_version: Mapped[ShortCode] = mapped_column(nullable=False)

    interpretation_pharmacist: Mapped[str | None] = mapped_column(String(200), nullable=True)
    production_pharmacist: Mapped[str | None] = mapped_column(String(200), nullable=True)
    quality_pharmacist: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Stage stamps, one pair per OrderState
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    validated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    validated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    calculated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    calculated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    scheduled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    scheduled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    produced_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    produced_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    qc_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    qc_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    labeled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    labeled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    finalized_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    mixes: Mapped[list[Mix]] = relationship(
        back_populates="order",
        order_by="Mix.position",
        cascade="all",
        lazy="selectin",
    )

    @property
    def order_state(self) -> OrderState:
        return OrderState(self.state)

    @property
    def line(self) -> ProductionLine:
        return ProductionLine(self.production_line)

    @property
    def stage_actors(self) -> dict[OrderState, UUID]:
        return {
            s: getattr(self, f"{s.stage_key}_by_id")
            for s in stage_order()
            if getattr(self, f"{s.stage_key}_by_id") is not None
        }

    @property
    def stage_timestamps(self) -> dict[OrderState, datetime]:
        return {
            s: getattr(self, f"{s.stage_key}_at")
            for s in stage_order()
            if getattr(self, f"{s.stage_key}_at") is not None
        }

    def __repr__(self) -> str:
        return f"<ProductionOrder {self.code} {self.state}>"


class Mix(Base):
    """
    One patient/drug preparation within an order.

    Descriptive catalog fields (medicine name, concentration, route,
    container type, vehicle name) are snapshotted at creation so the order
    keeps reading the same after catalog edits.
    """

    __tablename__ = "production_mixes"

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("production_orders.id"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    patient_name: Mapped[Name] = mapped_column(nullable=False)
    patient_document: Mapped[ShortCode] = mapped_column(nullable=False, index=True)
    patient_insurer: Mapped[Name] = mapped_column(nullable=False, default="")
    patient_diagnosis: Mapped[LongText] = mapped_column(nullable=False, default="")

    medicine_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)
    medicine_name: Mapped[Name] = mapped_column(nullable=False)
    concentration: Mapped[ShortCode] = mapped_column(nullable=False)
    route: Mapped[ShortCode] = mapped_column(nullable=False)
    prescribed_dose: Mapped[Dose] = mapped_column(nullable=False)
    dose_unit: Mapped[ShortCode] = mapped_column(nullable=False)

    laboratory_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    container_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    container_type: Mapped[ShortCode] = mapped_column(nullable=False)
    vehicle_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    vehicle_name: Mapped[Name] = mapped_column(nullable=False)

    vehicle_volume: Mapped[Volume] = mapped_column(nullable=False)
    extraction_volume: Mapped[Volume] = mapped_column(nullable=False)
    total_volume: Mapped[Volume] = mapped_column(nullable=False)
    supply_units: Mapped[Units] = mapped_column(nullable=False)
    quantity: Mapped[Units] = mapped_column(nullable=False, default=1)

    lot_code: Mapped[ShortCode] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    order: Mapped[ProductionOrder] = relationship(back_populates="mixes")
