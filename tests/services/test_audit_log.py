"""
Tests for the append-only audit log.

Verifies:
- Appends are stamped by the injected clock and returned newest first
- Per-actor, per-type and paged queries
- Distinct entity types, actors (resolved where known) and entities
- Unknown entity types and actions are programming errors
- A failed insert is logged and leaves earlier records intact
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from compounding_kernel.domain.entity_registry import EntityType
from compounding_kernel.models.audit_record import AuditAction, AuditRecord
from compounding_kernel.services.audit_log import AuditLog
from compounding_kernel.services.catalog_lookup import CatalogLookup


@pytest.fixture
def audit(session, clock, catalog) -> AuditLog:
    return AuditLog(session, clock, CatalogLookup(session), page_size=2)


class _DiskFullAuditLog(AuditLog):
    def insert_audit_record(self, record: AuditRecord) -> None:
        raise OperationalError("INSERT INTO audit_records", {}, Exception("disk I/O error"))


class TestAppend:

    def test_stamped_by_clock(self, audit, clock, catalog):
        entity_id = uuid4()
        entry = audit.append(EntityType.MEDICINE, entity_id, AuditAction.UPDATE, {"enabled": False}, catalog.pharmacist_id)
        assert entry.occurred_at == clock.now()
        assert entry.entity_type == "Medicine"
        assert entry.changes == {"enabled": False}
        assert entry.seq >= 1

    def test_newest_first(self, audit, clock, catalog):
        entity_id = uuid4()
        first = audit.append("Medicine", entity_id, "CREATE", {}, catalog.pharmacist_id)
        clock.advance(5)
        second = audit.append("Medicine", entity_id, "UPDATE", {"route": "IM"}, catalog.pharmacist_id)
        history = audit.history(EntityType.MEDICINE, entity_id)
        assert [e.id for e in history] == [second.id, first.id]

    def test_same_instant_ordered_by_sequence(self, audit, catalog):
        entity_id = uuid4()
        entries = [
            audit.append("Vehicle", entity_id, "UPDATE", {"n": n}, catalog.coordinator_id)
            for n in range(3)
        ]
        history = audit.history("Vehicle", entity_id)
        assert [e.changes["n"] for e in history] == [2, 1, 0]
        assert entries[0].seq < entries[1].seq < entries[2].seq

    def test_sequence_continues_across_instances(self, audit, session, clock, catalog):
        first = audit.append("Vehicle", uuid4(), "CREATE", {}, catalog.coordinator_id)
        second = AuditLog(session, clock).append("Vehicle", uuid4(), "CREATE", {}, catalog.coordinator_id)
        assert second.seq == first.seq + 1

    def test_changes_default_to_empty(self, audit, catalog):
        entry = audit.append("User", uuid4(), "DELETE", None, catalog.coordinator_id)
        assert entry.changes == {}

    def test_unknown_entity_type(self, audit, catalog):
        with pytest.raises(ValueError):
            audit.append("Invoice", uuid4(), "CREATE", {}, catalog.pharmacist_id)

    def test_unknown_action(self, audit, catalog):
        with pytest.raises(ValueError):
            audit.append("Medicine", uuid4(), "ARCHIVE", {}, catalog.pharmacist_id)

    def test_history_limit(self, audit, catalog):
        entity_id = uuid4()
        for _ in range(4):
            audit.append("Container", entity_id, "UPDATE", {}, catalog.pharmacist_id)
        assert len(audit.history("Container", entity_id, limit=3)) == 3


class TestQueries:

    def _populate(self, audit, clock, catalog):
        medicine_entity = uuid4()
        audit.append("Medicine", medicine_entity, "CREATE", {}, catalog.pharmacist_id)
        clock.advance(1)
        audit.append("Laboratory", catalog.lab_id, "UPDATE", {}, catalog.coordinator_id)
        clock.advance(1)
        audit.append("Medicine", catalog.medicine_id, "UPDATE", {}, catalog.pharmacist_id)
        return medicine_entity

    def test_actor_actions(self, audit, clock, catalog):
        self._populate(audit, clock, catalog)
        actions = audit.actor_actions(catalog.pharmacist_id)
        assert [e.entity_type for e in actions] == ["Medicine", "Medicine"]
        assert actions[0].occurred_at > actions[1].occurred_at

    def test_by_entity_type(self, audit, clock, catalog):
        self._populate(audit, clock, catalog)
        entries = audit.by_entity_type(EntityType.LABORATORY)
        assert [e.entity_id for e in entries] == [catalog.lab_id]

    def test_pagination(self, audit, clock, catalog):
        self._populate(audit, clock, catalog)
        first_page = audit.list_all()
        assert first_page.total == 3
        assert first_page.limit == 2
        assert [e.entity_type for e in first_page.items] == ["Medicine", "Laboratory"]

        second_page = audit.list_all(limit=2, skip=2)
        assert len(second_page.items) == 1
        assert second_page.items[0].actor_id == catalog.pharmacist_id

    def test_negative_skip_clamped(self, audit, clock, catalog):
        self._populate(audit, clock, catalog)
        assert audit.list_all(limit=10, skip=-4).skip == 0

    def test_entity_types_with_audit(self, audit, clock, catalog):
        self._populate(audit, clock, catalog)
        assert audit.entity_types_with_audit() == ["Laboratory", "Medicine"]

    def test_actors_with_audit(self, audit, clock, catalog):
        self._populate(audit, clock, catalog)
        stranger = uuid4()
        audit.append("Medicine", uuid4(), "UPDATE", {}, stranger)

        identities = {i.actor_id: i for i in audit.actors_with_audit()}
        assert set(identities) == {catalog.pharmacist_id, catalog.coordinator_id, stranger}
        assert identities[catalog.pharmacist_id].email == "pharmacist@example.org"
        assert identities[catalog.coordinator_id].role == "COORDINATOR"
        assert identities[stranger].name is None
        assert identities[stranger].role is None

    def test_entities_with_audit(self, audit, clock, catalog):
        deleted_entity = self._populate(audit, clock, catalog)
        summaries = {s.entity_id: s for s in audit.entities_with_audit("Medicine")}
        assert summaries[catalog.medicine_id].label == "Cyclophosphamide 50mg/ml"
        assert summaries[deleted_entity].label is None

    def test_entities_with_audit_unknown_type(self, audit):
        with pytest.raises(ValueError):
            audit.entities_with_audit("Invoice")


class TestStorageFailure:

    def test_failed_insert_returns_none(self, session, clock, catalog, captured_logs):
        entity_id = uuid4()
        stored = AuditLog(session, clock).append("Medicine", entity_id, "CREATE", {}, catalog.pharmacist_id)

        failing = _DiskFullAuditLog(session, clock)
        assert failing.append("Medicine", entity_id, "UPDATE", {}, catalog.pharmacist_id) is None

        assert [e.id for e in AuditLog(session, clock).history("Medicine", entity_id)] == [stored.id]
        (failure,) = [r for r in captured_logs() if r["message"] == "audit_write_failed"]
        assert failure["exc_code"] == "AUDIT_WRITE_FAILURE"
        assert failure["action"] == "UPDATE"
        assert "disk I/O error" in failure["exc_cause"]
