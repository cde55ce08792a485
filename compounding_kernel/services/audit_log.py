"""
AuditLog -- append-only audit trail with best-effort writes.

Responsibility:
    Appends immutable AuditRecord rows stamped by the injected clock, and
    answers the audit queries (per entity, per actor, per entity type,
    paged, distinct types, distinct actors, audited entities).

Architecture position:
    Kernel > Services -- imperative shell.  Called by the workflow state
    machine (STATE_TRANSITION) and the production service (CREATE).
    Reads are delegated to ``selectors.audit_selector``.

Invariants enforced:
    - Append-only: records are never updated or deleted (ORM listeners).
    - ``occurred_at`` comes from the injected clock, never the caller.
    - ``seq`` comes from the database sequence ``audit_record_seq``; no
      shared row is locked, so appends for different orders are
      independent.
    - A storage failure never propagates: the write is isolated in a
      savepoint, rolled back on error, and reported as an
      ``audit_write_failed`` log entry carrying an AuditWriteFailure.

Failure modes:
    - ValueError for an entity type outside the EntityType registry or an
      action outside AuditAction (programming errors, raised before any
      write is attempted).

Audit relevance:
    This IS the audit log.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from compounding_kernel.domain.clock import Clock, SystemClock
from compounding_kernel.domain.dtos import (
    ActorIdentity,
    AuditEntry,
    AuditPage,
    EntitySummary,
)
from compounding_kernel.domain.entity_registry import EntityType, parse_entity_type
from compounding_kernel.exceptions import AuditWriteFailure
from compounding_kernel.logging_config import get_logger
from compounding_kernel.models.audit_record import AUDIT_RECORD_SEQ, AuditAction, AuditRecord
from compounding_kernel.models.registry import model_for, summarize
from compounding_kernel.selectors.audit_selector import AuditSelector
from compounding_kernel.services.catalog_lookup import CatalogLookup

logger = get_logger("services.audit_log")


class AuditLog:
    """
    Contract:
        ``append`` returns the stored entry, or None when the write failed.
        Every query returns entries newest first.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        catalog: CatalogLookup | None = None,
        history_limit: int = 100,
        actor_actions_limit: int = 100,
        entity_type_limit: int = 100,
        page_size: int = 50,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._catalog = catalog or CatalogLookup(session)
        self._selector = AuditSelector(session)
        self._history_limit = history_limit
        self._actor_actions_limit = actor_actions_limit
        self._entity_type_limit = entity_type_limit
        self._page_size = page_size

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(
        self,
        entity_type: EntityType | str,
        entity_id: UUID,
        action: AuditAction | str,
        changes: dict[str, Any] | None,
        actor_id: UUID,
    ) -> AuditEntry | None:
        """
        Store one audit record inside a savepoint.

        Postconditions:
            On success the record is flushed in the caller's transaction.
            On a storage error the savepoint is rolled back, the caller's
            earlier work is untouched, and None is returned.
        """
        kind = parse_entity_type(entity_type)
        action_value = AuditAction(action).value

        try:
            with self._session.begin_nested():
                record = AuditRecord(
                    seq=self._next_seq(),
                    entity_type=kind.value,
                    entity_id=entity_id,
                    action=action_value,
                    changes=dict(changes or {}),
                    actor_id=actor_id,
                    occurred_at=self._clock.now(),
                )
                self.insert_audit_record(record)
        except SQLAlchemyError as exc:
            failure = AuditWriteFailure(
                entity_type=kind.value,
                entity_id=str(entity_id),
                action=action_value,
                cause=f"{type(exc).__name__}: {exc}",
            )
            failure.__cause__ = exc
            logger.error(
                "audit_write_failed",
                exc_info=failure,
                extra={
                    "entity_type": kind.value,
                    "entity_id": str(entity_id),
                    "action": action_value,
                    "actor_id": str(actor_id),
                },
            )
            return None

        logger.debug(
            "audit_record_appended",
            extra={
                "entity_type": kind.value,
                "entity_id": str(entity_id),
                "action": action_value,
                "seq": record.seq,
            },
        )
        return AuditEntry.from_model(record)

    def _next_seq(self) -> int:
        if self._session.get_bind().dialect.supports_sequences:
            return self._session.execute(select(AUDIT_RECORD_SEQ.next_value())).scalar_one()
        # SQLite: one writer at a time, so max + 1 cannot be taken twice
        return self._session.execute(
            select(func.coalesce(func.max(AuditRecord.seq), 0) + 1)
        ).scalar_one()

    def insert_audit_record(self, record: AuditRecord) -> None:
        """Add and flush one record.  Storage errors propagate to the caller."""
        self._session.add(record)
        self._session.flush()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def history(
        self,
        entity_type: EntityType | str,
        entity_id: UUID,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        return self._selector.history(
            parse_entity_type(entity_type).value,
            entity_id,
            limit or self._history_limit,
        )

    def actor_actions(self, actor_id: UUID, limit: int | None = None) -> list[AuditEntry]:
        return self._selector.by_actor(actor_id, limit or self._actor_actions_limit)

    def by_entity_type(
        self, entity_type: EntityType | str, limit: int | None = None
    ) -> list[AuditEntry]:
        return self._selector.by_entity_type(
            parse_entity_type(entity_type).value,
            limit or self._entity_type_limit,
        )

    def list_all(self, limit: int | None = None, skip: int = 0) -> AuditPage:
        return self._selector.page(limit or self._page_size, max(0, skip))

    def entity_types_with_audit(self) -> list[str]:
        return self._selector.distinct_entity_types()

    def actors_with_audit(self) -> list[ActorIdentity]:
        """Distinct actors, resolved to a display identity where known."""
        actor_ids = self._selector.distinct_actor_ids()
        users = self._catalog.find_users(actor_ids)
        identities = []
        for actor_id in actor_ids:
            user = users.get(actor_id)
            identities.append(
                ActorIdentity(
                    actor_id=actor_id,
                    name=user.name if user else None,
                    email=user.email if user else None,
                    role=user.role if user else None,
                )
            )
        return identities

    def entities_with_audit(self, entity_type: EntityType | str) -> list[EntitySummary]:
        """Audited entities of one type; ``label`` is None once the row is gone."""
        kind = parse_entity_type(entity_type)
        model = model_for(kind)
        summaries = []
        for entity_id in self._selector.distinct_entity_ids(kind.value):
            entity = self._session.get(model, entity_id)
            summaries.append(
                EntitySummary(
                    entity_type=kind.value,
                    entity_id=entity_id,
                    label=summarize(entity) if entity is not None else None,
                )
            )
        return summaries
