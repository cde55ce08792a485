"""
Tests for ORM-level immutability of audit records, mixes and the
workflow-owned order columns.
"""

import pytest
from sqlalchemy import select

from compounding_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from compounding_kernel.domain.entity_registry import EntityType
from compounding_kernel.domain.workflow import OrderState, Role
from compounding_kernel.exceptions import ImmutabilityViolationError
from compounding_kernel.models.audit_record import AuditRecord
from compounding_kernel.models.production_order import Mix, ProductionOrder


def _audit_record(session, order_id) -> AuditRecord:
    return session.execute(
        select(AuditRecord).where(AuditRecord.entity_id == order_id)
    ).scalar_one()


def test_audit_record_update_blocked(session, created_order, captured_logs):
    record = _audit_record(session, created_order.id)
    record.action = "UPDATE"
    with pytest.raises(ImmutabilityViolationError) as exc_info:
        session.flush()
    assert exc_info.value.entity_type == "AuditRecord"
    assert any(r["message"] == "immutability_violation_blocked" for r in captured_logs())


def test_audit_record_delete_blocked(session, created_order):
    session.delete(_audit_record(session, created_order.id))
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_mix_update_blocked(session, created_order):
    mix = session.get(Mix, created_order.mixes[0].id)
    mix.total_volume = mix.total_volume + 1
    with pytest.raises(ImmutabilityViolationError) as exc_info:
        session.flush()
    assert "total_volume" in exc_info.value.reason


def test_mix_delete_blocked(session, created_order):
    session.delete(session.get(Mix, created_order.mixes[0].id))
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


@pytest.mark.parametrize("field_name, value", [("state", OrderState.FINALIZED.value), ("code", "PROD-EDITED")])
def test_order_protected_fields(session, created_order, field_name, value):
    order = session.get(ProductionOrder, created_order.id)
    setattr(order, field_name, value)
    with pytest.raises(ImmutabilityViolationError) as exc_info:
        session.flush()
    assert field_name in exc_info.value.reason


def test_order_pharmacist_names_editable(session, service, created_order):
    order = session.get(ProductionOrder, created_order.id)
    order.quality_pharmacist = "Dr. Vega"
    session.flush()
    assert service.get_order(created_order.id).quality_pharmacist == "Dr. Vega"


def test_order_delete_blocked(session, created_order):
    session.delete(session.get(ProductionOrder, created_order.id))
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_workflow_path_still_writes_state(service, created_order, catalog):
    snapshot = service.transition(created_order.id, OrderState.VALIDATED, catalog.pharmacist_id, Role.PHARMACIST)
    assert snapshot.state is OrderState.VALIDATED
    assert len(service.get_audit_history(EntityType.PRODUCTION_ORDER, created_order.id)) == 2


def test_listeners_can_be_removed_for_tests(session, created_order):
    unregister_immutability_listeners()
    try:
        order = session.get(ProductionOrder, created_order.id)
        order.production_pharmacist = "Dr. Lara"
        order.code = "PROD-EDITED"
        session.flush()
    finally:
        register_immutability_listeners()
    assert session.get(ProductionOrder, created_order.id).code == "PROD-EDITED"
