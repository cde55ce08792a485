"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the value types flowing through the order pipeline:
    ProductionLine, Concentration, Presentation, ValidationResult,
    CalculationInput and CalculationResult.  These replace primitive
    types (str, Decimal) wherever pharmaceutical quantities appear in
    domain logic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Concentration is parsed once, against an explicit grammar, into a
      positive Decimal value and a lowercase unit.
    - All derived volumes are rounded to 2 decimal places, ROUND_HALF_UP,
      through ``round_volume`` only.
    - No floats: numeric inputs are converted via their string form.

Failure modes:
    - ConcentrationFormatError on text that does not match the grammar.
    - NonPositiveQuantityError on a zero concentration.
    - CalculationError on a value that is not a number.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from compounding_kernel.exceptions import (
    CalculationError,
    ConcentrationFormatError,
    NonPositiveQuantityError,
)

VOLUME_DECIMAL_PLACES = 2
_VOLUME_QUANTUM = Decimal(1).scaleb(-VOLUME_DECIMAL_PLACES)


class ProductionLine(str, Enum):
    """Production line an order is compounded on."""

    ONCO = "ONCO"
    STERILE = "STERILE"

    @property
    def lot_prefix(self) -> str:
        return "ON" if self is ProductionLine.ONCO else "ET"


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """Convert int/str/Decimal (or float via its repr) to Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise CalculationError(f"{name} is not a number: {value!r}")
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise CalculationError(f"{name} is not a number: {value!r}") from exc


def round_volume(value: Decimal) -> Decimal:
    """The only sanctioned rounding for volumes: 2 dp, ROUND_HALF_UP."""
    return value.quantize(_VOLUME_QUANTUM, rounding=ROUND_HALF_UP)


# <number><unit>/ml, e.g. "50mg/ml", "100 UI / mL", "2.5g/ml"
_CONCENTRATION_GRAMMAR = re.compile(
    r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>[a-zA-Zµ]+)\s*/\s*ml\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class Concentration:
    """
    Amount of drug per millilitre.

    Contract:
        ``value`` > 0, ``unit`` lowercase (``mg``, ``ui``, ``g`` ...).
        Only "per ml" concentrations are representable.
    """

    value: Decimal
    unit: str

    def __post_init__(self) -> None:
        if self.value <= 0:
            raise NonPositiveQuantityError("concentration", self.value)
        object.__setattr__(self, "unit", self.unit.strip().lower())

    @classmethod
    def parse(cls, text: str) -> Concentration:
        match = _CONCENTRATION_GRAMMAR.match(text or "")
        if match is None:
            raise ConcentrationFormatError(text)
        return cls(value=Decimal(match.group("value")), unit=match.group("unit"))

    def __str__(self) -> str:
        return f"{self.value}{self.unit}/ml"


@dataclass(frozen=True, slots=True)
class Presentation:
    """One commercial presentation of a medicine (vial, ampoule, bag)."""

    volume: Decimal
    unit: str
    count: int
    container_type: str


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a domain check. Transient, never persisted."""

    is_valid: bool
    errors: tuple[str, ...] = ()

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True)

    @classmethod
    def failure(cls, *errors: str) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors))


@dataclass(frozen=True)
class ValidationInput:
    """The (drug, lab, vehicle, container, line) tuple to validate."""

    medicine_id: UUID
    laboratory_id: UUID
    vehicle_id: UUID
    container_id: UUID
    production_line: ProductionLine


@dataclass(frozen=True)
class CalculationInput:
    """Scalar inputs of the dose-to-volume calculation."""

    dose: Decimal
    dose_unit: str
    concentration: str
    presentation_volume: Decimal
    presentation_count: int
    stability_hours: Decimal
    vehicle_volume: Decimal = field(default=Decimal("0"))


@dataclass(frozen=True)
class CalculationResult:
    """Scalar outputs of the dose-to-volume calculation."""

    extraction_volume: Decimal
    final_volume: Decimal
    supply_units: int
    expires_at: datetime
