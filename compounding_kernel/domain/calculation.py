"""
Calculation -- pure dose-to-volume arithmetic.

Responsibility:
    Converts a prescribed dose into production quantities: volume to
    extract, supply units to consume, final volume and expiry instant.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The catalog-aware
    wrapper is ``services.calculation_engine.CalculationEngine``.

Invariants enforced:
    - Units are never converted: dose unit must equal concentration unit.
    - Each derived volume is rounded exactly once (2 dp, ROUND_HALF_UP);
      supply units are always rounded up.
    - A non-positive dose is rejected before any sub-calculation runs.
    - The vehicle volume is never negative, so the final volume is never
      below the extraction volume.

Failure modes:
    - ConcentrationFormatError, UnitMismatchError, NonPositiveQuantityError,
      NegativeQuantityError (vehicle volume).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_CEILING, Decimal
from typing import Any

from compounding_kernel.domain.values import (
    CalculationInput,
    CalculationResult,
    Concentration,
    round_volume,
    to_decimal,
)
from compounding_kernel.exceptions import (
    NegativeQuantityError,
    NonPositiveQuantityError,
    UnitMismatchError,
)

CALCULATION_ENGINE_VERSION = "1.0.0"


def volume_to_extract(dose: Any, dose_unit: str, concentration: str | Concentration) -> Decimal:
    """Millilitres of drug to draw for ``dose`` at ``concentration``."""
    dose_value = to_decimal(dose, "dose")
    parsed = (
        concentration
        if isinstance(concentration, Concentration)
        else Concentration.parse(concentration)
    )
    unit = (dose_unit or "").strip().lower()
    if unit != parsed.unit:
        raise UnitMismatchError(dose_unit, parsed.unit)
    return round_volume(dose_value / parsed.value)


def supplies_needed(volume: Any, presentation_volume: Any, presentation_count: int) -> int:
    """Whole supply units consumed; a partial unit still costs a full one."""
    volume_value = to_decimal(volume, "volume to extract")
    per_presentation = to_decimal(presentation_volume, "presentation volume")
    if per_presentation <= 0:
        raise NonPositiveQuantityError("presentation volume", per_presentation)
    units = (volume_value / per_presentation) * Decimal(presentation_count)
    return int(units.to_integral_value(rounding=ROUND_CEILING))


def final_volume(volume: Any, vehicle_volume: Any = 0) -> Decimal:
    vehicle = to_decimal(vehicle_volume, "vehicle volume")
    if vehicle < 0:
        raise NegativeQuantityError("vehicle volume", vehicle)
    return round_volume(to_decimal(volume, "volume to extract") + vehicle)


def expiry_instant(now: datetime, stability_hours: Any) -> datetime:
    hours = to_decimal(stability_hours, "stability hours")
    if hours <= 0:
        raise NonPositiveQuantityError("stability hours", hours)
    return now + timedelta(seconds=int(hours * 3600))


def calculate(calc_input: CalculationInput, now: datetime) -> CalculationResult:
    """
    Run the four calculation steps for one mix.

    Preconditions:
        ``calc_input.dose`` > 0 (checked first).
    Postconditions:
        ``final_volume == extraction_volume + vehicle_volume`` rounded once.
    """
    dose = to_decimal(calc_input.dose, "dose")
    if dose <= 0:
        raise NonPositiveQuantityError("dose", dose)

    extraction = volume_to_extract(dose, calc_input.dose_unit, calc_input.concentration)
    units = supplies_needed(
        extraction,
        calc_input.presentation_volume,
        calc_input.presentation_count,
    )
    total = final_volume(extraction, calc_input.vehicle_volume)
    expires_at = expiry_instant(now, calc_input.stability_hours)

    return CalculationResult(
        extraction_volume=extraction,
        final_volume=total,
        supply_units=units,
        expires_at=expires_at,
    )
