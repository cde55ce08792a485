"""
CalculationEngine -- catalog-aware dose-to-volume calculation.

Responsibility:
    Wraps the pure functions of ``domain.calculation`` with the injected
    clock and code generator, and resolves calculation inputs (medicine
    concentration, first presentation, stability hours) from the catalog.

Architecture position:
    Kernel > Services.  Read-only over the catalog; writes nothing.

Invariants enforced:
    - The arithmetic lives in ``domain.calculation`` only; this class adds
      lookups, never its own rounding.
    - A non-positive dose is rejected before any lookup or sub-step.

Failure modes:
    - EntityNotFoundError: medicine id unknown.
    - StabilityNotFoundError: no stability for the exact 4-tuple (checked
      before presentations).
    - NoPresentationsError: medicine lists no presentation.
    - ConcentrationFormatError / UnitMismatchError / NonPositiveQuantityError
      / NegativeQuantityError from the pure layer.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from compounding_kernel.domain import calculation
from compounding_kernel.domain.clock import Clock
from compounding_kernel.domain.codes import CodeGenerator
from compounding_kernel.domain.values import (
    CalculationInput,
    CalculationResult,
    Concentration,
    to_decimal,
)
from compounding_kernel.exceptions import (
    EntityNotFoundError,
    NonPositiveQuantityError,
    NoPresentationsError,
    StabilityNotFoundError,
)
from compounding_kernel.logging_config import get_logger
from compounding_kernel.services.catalog_lookup import CatalogLookup

logger = get_logger("services.calculation_engine")


class CalculationEngine:
    """
    Contract:
        Given the same catalog rows and the same clock reading, every method
        returns the same result.  ``lot_code`` additionally depends on the
        code generator's random source.
    """

    version = calculation.CALCULATION_ENGINE_VERSION

    def __init__(self, catalog: CatalogLookup, clock: Clock, codes: CodeGenerator):
        self._catalog = catalog
        self._clock = clock
        self._codes = codes

    # Pure steps, re-exposed for callers holding an engine instance

    @staticmethod
    def volume_to_extract(dose: Any, dose_unit: str, concentration: str | Concentration) -> Decimal:
        return calculation.volume_to_extract(dose, dose_unit, concentration)

    @staticmethod
    def supplies_needed(volume: Any, presentation_volume: Any, presentation_count: int) -> int:
        return calculation.supplies_needed(volume, presentation_volume, presentation_count)

    @staticmethod
    def final_volume(volume: Any, vehicle_volume: Any = 0) -> Decimal:
        return calculation.final_volume(volume, vehicle_volume)

    def expiry_instant(self, stability_hours: Any, start: datetime | None = None) -> datetime:
        return calculation.expiry_instant(start or self._clock.now(), stability_hours)

    def lot_code(self) -> str:
        return self._codes.lot_code()

    def calculate(self, calc_input: CalculationInput, start: datetime | None = None) -> CalculationResult:
        return calculation.calculate(calc_input, start or self._clock.now())

    def calculate_from_catalog(
        self,
        medicine_id: UUID,
        laboratory_id: UUID,
        vehicle_id: UUID,
        container_id: UUID,
        dose: Any,
        dose_unit: str,
        vehicle_volume: Any = 0,
        start: datetime | None = None,
    ) -> CalculationResult:
        """
        Resolve inputs from the catalog, then run ``calculate``.

        ``start`` anchors the expiry instant (an order's production date);
        defaults to the clock.
        """
        dose_value = to_decimal(dose, "dose")
        if dose_value <= 0:
            raise NonPositiveQuantityError("dose", dose_value)

        medicine = self._catalog.find_medicine(medicine_id)
        if medicine is None:
            raise EntityNotFoundError("Medicine", str(medicine_id))

        stability = self._catalog.find_stability(
            medicine_id, laboratory_id, vehicle_id, container_id
        )
        if stability is None:
            raise StabilityNotFoundError(
                str(medicine_id), str(laboratory_id), str(vehicle_id), str(container_id)
            )

        presentations = medicine.presentation_values()
        if not presentations:
            raise NoPresentationsError(str(medicine_id))
        first = presentations[0]

        result = self.calculate(
            CalculationInput(
                dose=dose_value,
                dose_unit=dose_unit,
                concentration=medicine.concentration,
                presentation_volume=first.volume,
                presentation_count=first.count,
                stability_hours=Decimal(stability.hours),
                vehicle_volume=to_decimal(vehicle_volume, "vehicle volume"),
            ),
            start,
        )
        logger.debug(
            "mix_calculated",
            extra={
                "medicine_id": str(medicine_id),
                "extraction_volume": result.extraction_volume,
                "final_volume": result.final_volume,
                "supply_units": result.supply_units,
            },
        )
        return result
