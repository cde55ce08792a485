"""
DomainValidator -- pharmaceutical compatibility checks.

Responsibility:
    Decides whether a (medicine, laboratory, vehicle, container, line)
    combination may be compounded: every referenced entity exists, the
    medicine and laboratory are enabled, the vehicle is approved for the
    line, and a stability record exists for the exact 4-tuple.

Architecture position:
    Kernel > Services.  Read-only over the catalog (via CatalogLookup).

Invariants enforced:
    - ``validate_all`` runs all five checks without short-circuit and
      reports every message, in check order.
    - A missing entity yields exactly one "not found" message for that
      check; the other checks still run.

Failure modes:
    - DomainValidationError from ``validate_all`` carrying all messages.
"""

from uuid import UUID

from compounding_kernel.domain.values import (
    ProductionLine,
    ValidationInput,
    ValidationResult,
)
from compounding_kernel.exceptions import DomainValidationError
from compounding_kernel.logging_config import get_logger
from compounding_kernel.services.catalog_lookup import CatalogLookup

logger = get_logger("services.domain_validator")


class DomainValidator:
    """Stateless checks over the catalog; holds only its lookup."""

    def __init__(self, catalog: CatalogLookup):
        self._catalog = catalog

    def validate_medicine(self, medicine_id: UUID) -> ValidationResult:
        medicine = self._catalog.find_medicine(medicine_id)
        if medicine is None:
            return ValidationResult.failure(f"Medicine {medicine_id} not found")
        if not medicine.enabled:
            return ValidationResult.failure(
                f"Medicine '{medicine.name}' is not enabled for production"
            )
        return ValidationResult.success()

    def validate_lab(self, laboratory_id: UUID) -> ValidationResult:
        lab = self._catalog.find_lab(laboratory_id)
        if lab is None:
            return ValidationResult.failure(f"Laboratory {laboratory_id} not found")
        if not lab.enabled:
            return ValidationResult.failure(f"Laboratory '{lab.name}' is not enabled")
        return ValidationResult.success()

    def validate_vehicle(self, vehicle_id: UUID, line: ProductionLine) -> ValidationResult:
        vehicle = self._catalog.find_vehicle(vehicle_id)
        if vehicle is None:
            return ValidationResult.failure(f"Vehicle {vehicle_id} not found")
        line = ProductionLine(line)
        if not vehicle.is_compatible_with(line):
            return ValidationResult.failure(
                f"Vehicle '{vehicle.name}' is not compatible with line {line.value}"
            )
        return ValidationResult.success()

    def validate_container(self, container_id: UUID) -> ValidationResult:
        if self._catalog.find_container(container_id) is None:
            return ValidationResult.failure(f"Container {container_id} not found")
        return ValidationResult.success()

    def validate_stability(
        self,
        medicine_id: UUID,
        laboratory_id: UUID,
        vehicle_id: UUID,
        container_id: UUID,
    ) -> ValidationResult:
        stability = self._catalog.find_stability(
            medicine_id, laboratory_id, vehicle_id, container_id
        )
        if stability is None:
            return ValidationResult.failure(
                "No stability registered for this combination of medicine, "
                "laboratory, vehicle and container"
            )
        return ValidationResult.success()

    def validate_all(self, validation_input: ValidationInput) -> ValidationResult:
        """
        Run every check and aggregate the messages.

        Raises:
            DomainValidationError: one or more checks failed.
        """
        v = validation_input
        results = (
            self.validate_medicine(v.medicine_id),
            self.validate_lab(v.laboratory_id),
            self.validate_vehicle(v.vehicle_id, v.production_line),
            self.validate_container(v.container_id),
            self.validate_stability(
                v.medicine_id, v.laboratory_id, v.vehicle_id, v.container_id
            ),
        )
        errors = [e for r in results for e in r.errors]
        if errors:
            logger.warning(
                "domain_validation_failed",
                extra={
                    "medicine_id": str(v.medicine_id),
                    "laboratory_id": str(v.laboratory_id),
                    "vehicle_id": str(v.vehicle_id),
                    "container_id": str(v.container_id),
                    "production_line": ProductionLine(v.production_line).value,
                    "error_count": len(errors),
                },
            )
            raise DomainValidationError(errors)
        return ValidationResult.success()
