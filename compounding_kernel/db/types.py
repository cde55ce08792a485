"""
Module: compounding_kernel.db.types
Responsibility: Annotated column types for pharmaceutical quantities, so that
    every model stores doses, volumes and codes with identical precision.
Architecture position: Kernel > DB.  May be imported by models/.  MUST NOT
    import from services/, selectors/ or domain/.

Invariants enforced:
    - Volumes are stored at exactly 2 decimal places (the rounding precision
      of the calculation engine).  No floats.

Usage:
    extraction_volume: Mapped[Volume] = mapped_column(nullable=False)
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Integer, Numeric, String
from sqlalchemy.orm import mapped_column

# Millilitres, 2 decimal places
Volume = Annotated[Decimal, mapped_column(Numeric(12, 2))]

# Prescribed dose amount; unit is stored separately
Dose = Annotated[Decimal, mapped_column(Numeric(14, 4))]

# Stability window in hours
Hours = Annotated[Decimal, mapped_column(Numeric(10, 2))]

# Whole supply units
Units = Annotated[int, mapped_column(Integer)]

# Short identifier strings (codes, enum values, units)
ShortCode = Annotated[str, mapped_column(String(50))]

# Names and descriptive text
Name = Annotated[str, mapped_column(String(200))]

LongText = Annotated[str, mapped_column(String(4000))]
