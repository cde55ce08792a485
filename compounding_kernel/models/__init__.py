"""ORM models for the compounding kernel."""

from compounding_kernel.models.audit_record import AuditAction, AuditRecord
from compounding_kernel.models.catalog import (
    Container,
    Laboratory,
    Medicine,
    MedicinePresentation,
    Stability,
    User,
    Vehicle,
)
from compounding_kernel.models.production_order import Mix, ProductionOrder

__all__ = [
    "AuditAction",
    "AuditRecord",
    "Container",
    "Laboratory",
    "Medicine",
    "MedicinePresentation",
    "Stability",
    "User",
    "Vehicle",
    "Mix",
    "ProductionOrder",
]
