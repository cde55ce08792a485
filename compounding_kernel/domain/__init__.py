"""Pure domain layer: values, workflow rules, calculation, clock. Zero I/O."""

from compounding_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from compounding_kernel.domain.values import (
    CalculationInput,
    CalculationResult,
    Concentration,
    Presentation,
    ProductionLine,
    ValidationInput,
    ValidationResult,
)
from compounding_kernel.domain.workflow import OrderState, Role, next_state

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CalculationInput",
    "CalculationResult",
    "Concentration",
    "Presentation",
    "ProductionLine",
    "ValidationInput",
    "ValidationResult",
    "OrderState",
    "Role",
    "next_state",
]
