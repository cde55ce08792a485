"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable structures crossing the kernel boundary:
    CreateOrderRequest/MixRequest/PatientInfo (input), OrderSnapshot and
    MixSnapshot (read model of an order), OrderFilters/OrderPage (listing),
    and the audit read models AuditEntry, AuditPage, ActorIdentity and
    EntitySummary.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only by services and selectors.

Invariants enforced:
    - Snapshots are frozen; callers never receive live ORM rows.
    - ``OrderSnapshot.to_dict()`` is deterministic for a given database
      state, so two reads of an unchanged order serialize identically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from compounding_kernel.domain.values import ProductionLine
from compounding_kernel.domain.workflow import OrderState, Role
from compounding_kernel.utils.hashing import hash_payload

if TYPE_CHECKING:
    from compounding_kernel.models.audit_record import AuditRecord as AuditRecordModel
    from compounding_kernel.models.production_order import (
        Mix as MixModel,
        ProductionOrder as ProductionOrderModel,
    )


# ---------------------------------------------------------------------------
# Order creation input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatientInfo:
    name: str
    document: str
    insurer: str = ""
    diagnosis: str = ""


@dataclass(frozen=True)
class MixRequest:
    """One requested preparation: who it is for, what goes in it, how much."""

    patient: PatientInfo
    medicine_id: UUID
    laboratory_id: UUID
    vehicle_id: UUID
    container_id: UUID
    dose: Decimal
    dose_unit: str
    vehicle_volume: Decimal = Decimal("0")
    quantity: int = 1


@dataclass(frozen=True)
class CreateOrderRequest:
    production_line: ProductionLine
    mixes: tuple[MixRequest, ...]
    actor_id: UUID
    actor_role: Role | str
    production_date: datetime | None = None
    interpretation_pharmacist: str | None = None
    production_pharmacist: str | None = None
    quality_pharmacist: str | None = None


# ---------------------------------------------------------------------------
# Order read model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MixSnapshot:
    id: UUID
    position: int
    patient: PatientInfo
    medicine_id: UUID
    medicine_name: str
    concentration: str
    route: str
    prescribed_dose: Decimal
    dose_unit: str
    laboratory_id: UUID
    container_id: UUID
    container_type: str
    vehicle_id: UUID
    vehicle_name: str
    vehicle_volume: Decimal
    extraction_volume: Decimal
    total_volume: Decimal
    supply_units: int
    quantity: int
    lot_code: str
    expires_at: datetime

    @classmethod
    def from_model(cls, mix: MixModel) -> MixSnapshot:
        return cls(
            id=mix.id,
            position=mix.position,
            patient=PatientInfo(
                name=mix.patient_name,
                document=mix.patient_document,
                insurer=mix.patient_insurer,
                diagnosis=mix.patient_diagnosis,
            ),
            medicine_id=mix.medicine_id,
            medicine_name=mix.medicine_name,
            concentration=mix.concentration,
            route=mix.route,
            prescribed_dose=Decimal(mix.prescribed_dose),
            dose_unit=mix.dose_unit,
            laboratory_id=mix.laboratory_id,
            container_id=mix.container_id,
            container_type=mix.container_type,
            vehicle_id=mix.vehicle_id,
            vehicle_name=mix.vehicle_name,
            vehicle_volume=Decimal(mix.vehicle_volume),
            extraction_volume=Decimal(mix.extraction_volume),
            total_volume=Decimal(mix.total_volume),
            supply_units=mix.supply_units,
            quantity=mix.quantity,
            lot_code=mix.lot_code,
            expires_at=mix.expires_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "position": self.position,
            "patient": {
                "name": self.patient.name,
                "document": self.patient.document,
                "insurer": self.patient.insurer,
                "diagnosis": self.patient.diagnosis,
            },
            "medicine_id": str(self.medicine_id),
            "medicine_name": self.medicine_name,
            "concentration": self.concentration,
            "route": self.route,
            "prescribed_dose": str(self.prescribed_dose),
            "dose_unit": self.dose_unit,
            "laboratory_id": str(self.laboratory_id),
            "container_id": str(self.container_id),
            "container_type": self.container_type,
            "vehicle_id": str(self.vehicle_id),
            "vehicle_name": self.vehicle_name,
            "vehicle_volume": str(self.vehicle_volume),
            "extraction_volume": str(self.extraction_volume),
            "total_volume": str(self.total_volume),
            "supply_units": self.supply_units,
            "quantity": self.quantity,
            "lot_code": self.lot_code,
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class OrderSnapshot:
    """Immutable read model of a ProductionOrder and its mixes."""

    id: UUID
    code: str
    production_line: ProductionLine
    state: OrderState
    production_date: datetime
    mix_count: int
    calculation_engine_version: str
    interpretation_pharmacist: str | None
    production_pharmacist: str | None
    quality_pharmacist: str | None
    stage_actors: tuple[tuple[OrderState, UUID], ...]
    stage_timestamps: tuple[tuple[OrderState, datetime], ...]
    mixes: tuple[MixSnapshot, ...] = field(default_factory=tuple)

    @classmethod
    def from_model(cls, order: ProductionOrderModel) -> OrderSnapshot:
        return cls(
            id=order.id,
            code=order.code,
            production_line=ProductionLine(order.production_line),
            state=OrderState(order.state),
            production_date=order.production_date,
            mix_count=order.mix_count,
            calculation_engine_version=order.calculation_engine_version,
            interpretation_pharmacist=order.interpretation_pharmacist,
            production_pharmacist=order.production_pharmacist,
            quality_pharmacist=order.quality_pharmacist,
            stage_actors=tuple(order.stage_actors.items()),
            stage_timestamps=tuple(order.stage_timestamps.items()),
            mixes=tuple(MixSnapshot.from_model(m) for m in order.mixes),
        )

    def actor_for(self, state: OrderState) -> UUID | None:
        return dict(self.stage_actors).get(state)

    def timestamp_for(self, state: OrderState) -> datetime | None:
        return dict(self.stage_timestamps).get(state)

    @property
    def total_volume(self) -> Decimal:
        return sum((m.total_volume for m in self.mixes), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "code": self.code,
            "production_line": self.production_line.value,
            "state": self.state.value,
            "production_date": self.production_date.isoformat(),
            "mix_count": self.mix_count,
            "calculation_engine_version": self.calculation_engine_version,
            "interpretation_pharmacist": self.interpretation_pharmacist,
            "production_pharmacist": self.production_pharmacist,
            "quality_pharmacist": self.quality_pharmacist,
            "stage_actors": {s.value: str(a) for s, a in self.stage_actors},
            "stage_timestamps": {s.value: t.isoformat() for s, t in self.stage_timestamps},
            "mixes": [m.to_dict() for m in self.mixes],
        }

    def fingerprint(self) -> str:
        """SHA-256 of the canonical JSON form; stable across reads."""
        return hash_payload(self.to_dict())


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderFilters:
    """Order listing filters; ``None`` means "no constraint"."""

    state: OrderState | None = None
    production_line: ProductionLine | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    limit: int = 50
    skip: int = 0


@dataclass(frozen=True)
class OrderPage:
    items: tuple[OrderSnapshot, ...]
    total: int
    limit: int
    skip: int


# ---------------------------------------------------------------------------
# Audit read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditEntry:
    id: UUID
    seq: int
    entity_type: str
    entity_id: UUID
    action: str
    changes: dict[str, Any]
    actor_id: UUID
    occurred_at: datetime

    @classmethod
    def from_model(cls, record: AuditRecordModel) -> AuditEntry:
        return cls(
            id=record.id,
            seq=record.seq,
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            action=record.action,
            changes=dict(record.changes or {}),
            actor_id=record.actor_id,
            occurred_at=record.occurred_at,
        )


@dataclass(frozen=True)
class AuditPage:
    items: tuple[AuditEntry, ...]
    total: int
    limit: int
    skip: int


@dataclass(frozen=True)
class ActorIdentity:
    """Display identity of an audit actor; fields are None when unresolved."""

    actor_id: UUID
    name: str | None
    email: str | None
    role: str | None


@dataclass(frozen=True)
class EntitySummary:
    entity_type: str
    entity_id: UUID
    label: str | None
