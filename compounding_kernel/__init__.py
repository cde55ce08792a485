"""
compounding_kernel -- order-processing core for a compounding pharmacy.

Domain validation of ingredient compatibility, deterministic dose-to-volume
calculation, a role-gated eight-stage workflow, and an append-only audit
trail, persisted with SQLAlchemy.
"""

__version__ = "0.1.0"
