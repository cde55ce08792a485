"""
Typed Exception Hierarchy for the Compounding Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A transport layer must map every failure of the order pipeline to a
response code without reading message text.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured attributes naming the violated rule (which role, which
     state pair, which missing combination)

Example:
    try:
        workflow.transition(order_id, OrderState.SCHEDULED, actor_id, role)
    except ForbiddenTransitionError as e:
        api_response(403, code=e.code, role=e.role, allowed=e.allowed_roles)
    except IllegalTransitionError as e:
        api_response(409, code=e.code, current=e.current_state)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CompoundingKernelError (base)
    |
    +-- NotFoundError
    |   +-- EntityNotFoundError
    |       +-- OrderNotFoundError
    |       +-- StabilityNotFoundError
    |
    +-- ValidationFailedError
    |   +-- DomainValidationError
    |   +-- InvalidOrderRequestError
    |
    +-- CalculationError
    |   +-- ConcentrationFormatError
    |   +-- UnitMismatchError
    |   +-- NonPositiveQuantityError
    |   +-- NegativeQuantityError
    |   +-- NoPresentationsError
    |
    +-- WorkflowError
    |   +-- IllegalTransitionError
    |   +-- ForbiddenTransitionError
    |
    +-- AuditError
    |   +-- AuditWriteFailure
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|------------------------------------
Not found    | ENTITY_NOT_FOUND           | Catalog record id doesn't exist
             | ORDER_NOT_FOUND            | Production order id doesn't exist
             | STABILITY_NOT_FOUND        | No stability for the exact 4-tuple
-------------|----------------------------|------------------------------------
Validation   | DOMAIN_VALIDATION_FAILED   | One or more domain rules violated
             | INVALID_ORDER_REQUEST      | Malformed create request
-------------|----------------------------|------------------------------------
Calculation  | CONCENTRATION_FORMAT       | Concentration not "<n><unit>/ml"
             | UNIT_MISMATCH              | Dose unit differs from concentration
             | NON_POSITIVE_QUANTITY      | Dose/volume/hours <= 0
             | NEGATIVE_QUANTITY          | Vehicle volume < 0
             | NO_PRESENTATIONS           | Medicine lists no presentation
-------------|----------------------------|------------------------------------
Workflow     | ILLEGAL_TRANSITION         | Not the single successor, or CAS lost
             | FORBIDDEN_TRANSITION       | Role not admitted for target state
-------------|----------------------------|------------------------------------
Audit        | AUDIT_WRITE_FAILURE        | Audit insert failed (logged only)
-------------|----------------------------|------------------------------------
Immutability | IMMUTABILITY_VIOLATION     | UPDATE/DELETE of append-only record
-------------|----------------------------|------------------------------------
Config       | CONFIGURATION_ERROR        | Settings file invalid

AuditWriteFailure is never raised to callers of the Audit Log.  It is
built from the underlying storage error and attached to the
``audit_write_failed`` log entry.
===============================================================================
"""

from __future__ import annotations


class CompoundingKernelError(Exception):
    """
    Base exception for all compounding kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    identification.
    """

    code: str = "COMPOUNDING_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(CompoundingKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class EntityNotFoundError(NotFoundError):
    """A catalog or order record with the given id does not exist."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


class OrderNotFoundError(EntityNotFoundError):
    """Production order does not exist."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        super().__init__("ProductionOrder", order_id)
        self.order_id = str(order_id)


class StabilityNotFoundError(EntityNotFoundError):
    """No stability record for the exact (drug, lab, vehicle, container) tuple."""

    code: str = "STABILITY_NOT_FOUND"

    def __init__(
        self,
        medicine_id: str,
        laboratory_id: str,
        vehicle_id: str,
        container_id: str,
    ):
        self.medicine_id = str(medicine_id)
        self.laboratory_id = str(laboratory_id)
        self.vehicle_id = str(vehicle_id)
        self.container_id = str(container_id)
        super().__init__(
            "Stability",
            f"{medicine_id}/{laboratory_id}/{vehicle_id}/{container_id}",
        )


# Validation exceptions


class ValidationFailedError(CompoundingKernelError):
    """Base exception for client-correctable validation failures."""

    code: str = "VALIDATION_FAILED"


class DomainValidationError(ValidationFailedError):
    """
    Aggregate domain-rule violation.

    Carries every violation message collected by the validator, in the
    order the checks ran.
    """

    code: str = "DOMAIN_VALIDATION_FAILED"

    def __init__(self, messages: list[str] | tuple[str, ...]):
        self.messages = tuple(messages)
        super().__init__("Domain validation failed: " + "; ".join(self.messages))


class InvalidOrderRequestError(ValidationFailedError):
    """The order creation request is malformed."""

    code: str = "INVALID_ORDER_REQUEST"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid order request: {reason}")


# Calculation exceptions


class CalculationError(CompoundingKernelError):
    """Base exception for dose/volume calculation errors."""

    code: str = "CALCULATION_ERROR"


class ConcentrationFormatError(CalculationError):
    """Concentration text does not match ``<number><unit>/ml``."""

    code: str = "CONCENTRATION_FORMAT"

    def __init__(self, concentration: str):
        self.concentration = concentration
        super().__init__(f"Invalid concentration format: {concentration!r}")


class UnitMismatchError(CalculationError):
    """Dose unit differs from the concentration unit (never auto-converted)."""

    code: str = "UNIT_MISMATCH"

    def __init__(self, dose_unit: str, concentration_unit: str):
        self.dose_unit = dose_unit
        self.concentration_unit = concentration_unit
        super().__init__(
            f"Unit mismatch: dose in {dose_unit}, concentration in {concentration_unit}"
        )


class NonPositiveQuantityError(CalculationError):
    """A quantity that must be strictly positive is zero or negative."""

    code: str = "NON_POSITIVE_QUANTITY"

    def __init__(self, quantity: str, value: object):
        self.quantity = quantity
        self.value = str(value)
        super().__init__(f"{quantity} must be greater than 0, got {value}")


class NegativeQuantityError(CalculationError):
    """A quantity that may be zero is negative."""

    code: str = "NEGATIVE_QUANTITY"

    def __init__(self, quantity: str, value: object):
        self.quantity = quantity
        self.value = str(value)
        super().__init__(f"{quantity} must not be negative, got {value}")


class NoPresentationsError(CalculationError):
    """Medicine has no presentation to draw supply units from."""

    code: str = "NO_PRESENTATIONS"

    def __init__(self, medicine_id: str):
        self.medicine_id = str(medicine_id)
        super().__init__(f"Medicine {medicine_id} has no presentations")


# Workflow exceptions


class WorkflowError(CompoundingKernelError):
    """Base exception for order workflow errors."""

    code: str = "WORKFLOW_ERROR"


class IllegalTransitionError(WorkflowError):
    """
    Target state is not the single successor of the current state.

    Also raised to the losing caller of a concurrent transition, whose
    compare-and-swap found the order already moved.
    """

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, order_id: str, current_state: str, target_state: str, reason: str | None = None):
        self.order_id = str(order_id)
        self.current_state = str(current_state)
        self.target_state = str(target_state)
        self.reason = reason or "not the next state"
        super().__init__(
            f"Illegal transition for order {order_id}: "
            f"{self.current_state} -> {self.target_state} ({self.reason})"
        )


class ForbiddenTransitionError(WorkflowError):
    """Actor role is not admitted to move an order into the target state."""

    code: str = "FORBIDDEN_TRANSITION"

    def __init__(self, role: str, target_state: str, allowed_roles: tuple[str, ...]):
        self.role = str(role)
        self.target_state = str(target_state)
        self.allowed_roles = tuple(allowed_roles)
        super().__init__(
            f"Role {self.role} may not move an order into {self.target_state}. "
            f"Allowed: {', '.join(self.allowed_roles)}"
        )


# Audit exceptions


class AuditError(CompoundingKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditWriteFailure(AuditError):
    """
    An audit record could not be stored.

    Non-fatal: built and logged by the Audit Log, never raised to its
    callers.
    """

    code: str = "AUDIT_WRITE_FAILURE"

    def __init__(self, entity_type: str, entity_id: str, action: str, cause: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.action = action
        self.cause = cause
        super().__init__(
            f"Audit write failed for {action} on {entity_type}:{entity_id}: {cause}"
        )


# Immutability exceptions


class ImmutabilityError(CompoundingKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# Configuration exceptions


class ConfigurationError(CompoundingKernelError):
    """Settings could not be loaded or failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid configuration: {reason}")


_HTTP_STATUS: tuple[tuple[type[CompoundingKernelError], int], ...] = (
    (NotFoundError, 404),
    (ValidationFailedError, 400),
    (CalculationError, 400),
    (ForbiddenTransitionError, 403),
    (IllegalTransitionError, 409),
    (ImmutabilityError, 409),
)


def http_status_for(exc: CompoundingKernelError) -> int:
    """Conventional HTTP status for a kernel error (500 when unmapped)."""
    for exc_type, status in _HTTP_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 500
