"""
ORM-level immutability enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Compounding records are regulated artifacts.  Once an audit record or a mix
has been written, inspectors must be able to rely on it never changing:
corrections are new records, never edits.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  We register listeners that intercept them:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable          | What
------------------|-------------------------|------------------------------------
AuditRecord       | ALWAYS (from creation)  | Every field; no delete
Mix               | ALWAYS (from creation)  | Every field; no delete
ProductionOrder   | ALWAYS                  | Workflow columns (state and stage
                  |                         | stamps) and identity fields
                  |                         | (code, line, production date)

The workflow columns move only through the conditional UPDATE issued by
``OrderRepository.conditional_update_state``.  That statement bypasses
mapper events, so it is the one path that can write them.

===============================================================================
USAGE
===============================================================================

    from compounding_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from compounding_kernel.exceptions import ImmutabilityViolationError
from compounding_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_ORDER_IDENTITY_FIELDS = frozenset(
    {"code", "production_line", "production_date", "calculation_engine_version"}
)


def _changed_fields(target) -> list[str]:
    return [attr.key for attr in inspect(target).attrs if attr.history.has_changes()]


def _block(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_audit_record_immutability(mapper, connection, target):
    """Audit records are append-only; any update is rejected."""
    changed = _changed_fields(target)
    if changed:
        _block(
            "AuditRecord",
            target,
            "UPDATE",
            f"Audit records cannot be modified (fields: {', '.join(changed)})",
        )


def _check_audit_record_delete(mapper, connection, target):
    _block("AuditRecord", target, "DELETE", "Audit records cannot be deleted")


def _check_mix_immutability(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block(
            "Mix",
            target,
            "UPDATE",
            f"Mixes are immutable after creation (fields: {', '.join(changed)})",
        )


def _check_mix_delete(mapper, connection, target):
    _block("Mix", target, "DELETE", "Mixes cannot be deleted")


def _check_production_order_immutability(mapper, connection, target):
    """
    Reject ORM edits to workflow columns and identity fields.

    Pharmacist names stay editable; everything the workflow or the order
    code depends on does not.
    """
    from compounding_kernel.models.production_order import WORKFLOW_COLUMNS

    protected = WORKFLOW_COLUMNS | _ORDER_IDENTITY_FIELDS
    for field_name in _changed_fields(target):
        if field_name in protected:
            _block(
                "ProductionOrder",
                target,
                "UPDATE",
                f"Field '{field_name}' can only change through a workflow transition",
            )


def _check_production_order_delete(mapper, connection, target):
    _block("ProductionOrder", target, "DELETE", "Production orders cannot be deleted")


_LISTENERS = (
    ("AuditRecord", "before_update", _check_audit_record_immutability),
    ("AuditRecord", "before_delete", _check_audit_record_delete),
    ("Mix", "before_update", _check_mix_immutability),
    ("Mix", "before_delete", _check_mix_delete),
    ("ProductionOrder", "before_update", _check_production_order_immutability),
    ("ProductionOrder", "before_delete", _check_production_order_delete),
)


def _models() -> dict:
    from compounding_kernel.models.audit_record import AuditRecord
    from compounding_kernel.models.production_order import Mix, ProductionOrder

    return {"AuditRecord": AuditRecord, "Mix": Mix, "ProductionOrder": ProductionOrder}


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already-registered listeners are skipped.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
