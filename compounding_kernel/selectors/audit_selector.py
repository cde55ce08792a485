"""
AuditSelector -- read access to the audit trail.

Every query returns newest first: ``occurred_at`` descending, then ``seq``
descending for records sharing a timestamp.
"""

from uuid import UUID

from sqlalchemy import func, select

from compounding_kernel.domain.dtos import AuditEntry, AuditPage
from compounding_kernel.models.audit_record import AuditRecord
from compounding_kernel.selectors.base import BaseSelector

_NEWEST_FIRST = (AuditRecord.occurred_at.desc(), AuditRecord.seq.desc())


class AuditSelector(BaseSelector[AuditRecord]):
    """Queries over audit records."""

    def _entries(self, stmt) -> list[AuditEntry]:
        rows = self.session.execute(stmt).scalars().all()
        return [AuditEntry.from_model(r) for r in rows]

    def history(self, entity_type: str, entity_id: UUID, limit: int) -> list[AuditEntry]:
        return self._entries(
            select(AuditRecord)
            .where(
                AuditRecord.entity_type == entity_type,
                AuditRecord.entity_id == entity_id,
            )
            .order_by(*_NEWEST_FIRST)
            .limit(limit)
        )

    def by_actor(self, actor_id: UUID, limit: int) -> list[AuditEntry]:
        return self._entries(
            select(AuditRecord)
            .where(AuditRecord.actor_id == actor_id)
            .order_by(*_NEWEST_FIRST)
            .limit(limit)
        )

    def by_entity_type(self, entity_type: str, limit: int) -> list[AuditEntry]:
        return self._entries(
            select(AuditRecord)
            .where(AuditRecord.entity_type == entity_type)
            .order_by(*_NEWEST_FIRST)
            .limit(limit)
        )

    def page(self, limit: int, skip: int) -> AuditPage:
        total = self.session.execute(
            select(func.count()).select_from(AuditRecord)
        ).scalar_one()
        items = self._entries(
            select(AuditRecord).order_by(*_NEWEST_FIRST).offset(skip).limit(limit)
        )
        return AuditPage(items=tuple(items), total=total, limit=limit, skip=skip)

    def distinct_entity_types(self) -> list[str]:
        return list(
            self.session.execute(
                select(AuditRecord.entity_type)
                .distinct()
                .order_by(AuditRecord.entity_type)
            ).scalars()
        )

    def distinct_actor_ids(self) -> list[UUID]:
        return list(
            self.session.execute(
                select(AuditRecord.actor_id).distinct().order_by(AuditRecord.actor_id)
            ).scalars()
        )

    def distinct_entity_ids(self, entity_type: str) -> list[UUID]:
        return list(
            self.session.execute(
                select(AuditRecord.entity_id)
                .where(AuditRecord.entity_type == entity_type)
                .distinct()
                .order_by(AuditRecord.entity_id)
            ).scalars()
        )
