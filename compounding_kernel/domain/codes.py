"""
Order and lot code generation.

Codes combine the injected clock with a random suffix.  They are unique
per call only up to the entropy of the suffix: callers treat a collision
as a low-probability retry condition (the order ``code`` column is
unique, so a duplicate surfaces as an IntegrityError).
"""

from __future__ import annotations

import random

from compounding_kernel.domain.clock import Clock
from compounding_kernel.domain.values import ProductionLine


class CodeGenerator:
    """Generates human-readable order codes and lot codes."""

    def __init__(
        self,
        clock: Clock,
        rng: random.Random | None = None,
        order_prefix: str = "PROD",
        lot_prefix: str = "LOT",
        mix_lot_prefix: str = "HG",
    ):
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._order_prefix = order_prefix
        self._lot_prefix = lot_prefix
        self._mix_lot_prefix = mix_lot_prefix

    def order_code(self) -> str:
        """``PROD-YYYYMMDD-NNNN``"""
        now = self._clock.now()
        return f"{self._order_prefix}-{now:%Y%m%d}-{self._rng.randrange(10_000):04d}"

    def lot_code(self) -> str:
        """``LOT-YYYYMMDD-HHMMSS-NNN``"""
        now = self._clock.now()
        return f"{self._lot_prefix}-{now:%Y%m%d}-{now:%H%M%S}-{self._rng.randrange(1_000):03d}"

    def mix_lot_code(self, line: ProductionLine) -> str:
        """``HGYYMMDD-ON-NNNNN`` (ONCO) or ``HGYYMMDD-ET-NNNNN`` (STERILE)."""
        now = self._clock.now()
        return (
            f"{self._mix_lot_prefix}{now:%y%m%d}-{line.lot_prefix}-"
            f"{self._rng.randrange(100_000):05d}"
        )
