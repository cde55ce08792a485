"""
Module: compounding_kernel.models.audit_record
Responsibility: ORM persistence for the append-only audit trail.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM listeners in
      db/immutability.py).
    - ``seq`` is strictly increasing in allocation order.  On PostgreSQL it
      comes from the ``audit_record_seq`` sequence, which no transaction
      locks, so appends for different orders never wait on each other.
    - ``occurred_at`` is assigned by the Audit Log from its injected clock,
      never by the caller.

Audit relevance:
    AuditRecord IS the audit trail.  The workflow state machine writes one
    STATE_TRANSITION record per transition; order creation writes CREATE;
    catalog maintenance (outer layer) writes CREATE/UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Index, Sequence, String
from sqlalchemy.orm import Mapped, mapped_column

from compounding_kernel.db.base import Base, UTCDateTime, UUIDString

AUDIT_RECORD_SEQ = Sequence("audit_record_seq")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATE_TRANSITION = "STATE_TRANSITION"


class AuditRecord(Base):
    """
    One immutable audit entry.

    Contract:
        Rows are append-only -- never updated or deleted.
    """

    __tablename__ = "audit_records"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_actor", "actor_id"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    # Allocation order; tie-breaks equal timestamps
    seq: Mapped[int] = mapped_column(BigInteger, AUDIT_RECORD_SEQ, nullable=False, unique=True)

    # Type of entity being audited (e.g. "ProductionOrder", "Medicine")
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[str] = mapped_column(String(30), nullable=False)

    # Old/new values relevant to the action
    changes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditRecord {self.action} on {self.entity_type}:{self.entity_id}>"
