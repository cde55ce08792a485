"""
Production order workflow definition (``compounding_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects and lookup tables for the production-order state
machine: the eight lifecycle states, the roles that may act on an order,
the single-successor transition chain, and the role gate for each target
state.  The stateful part (loading, compare-and-swap, audit) lives in
``services.workflow_service``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* The chain is linear: every state except FINALIZED has exactly one
  successor, and no state has a predecessor other than the one before it.
* Every target state has a non-empty permitted-role set.
* Cancellation and backward moves are not part of the chain.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OrderState(str, Enum):
    """Lifecycle states of a production order, in canonical order."""

    CREATED = "CREATED"
    VALIDATED = "VALIDATED"
    CALCULATED = "CALCULATED"
    SCHEDULED = "SCHEDULED"
    PRODUCED = "PRODUCED"
    QC = "QC"
    LABELED = "LABELED"
    FINALIZED = "FINALIZED"

    @property
    def stage_key(self) -> str:
        """Lowercase key used for the per-stage actor/timestamp columns."""
        return self.value.lower()


class Role(str, Enum):
    """Roles an actor may hold when acting on an order."""

    AUXILIARY = "AUXILIARY"
    PHARMACIST = "PHARMACIST"
    COORDINATOR = "COORDINATOR"
    AUDITOR = "AUDITOR"


def parse_role(value: Role | str | None) -> Role | None:
    """Return the Role for ``value``, or None when it names no known role."""
    if isinstance(value, Role):
        return value
    try:
        return Role((value or "").strip().upper())
    except ValueError:
        return None


def parse_state(value: OrderState | str | None) -> OrderState | None:
    """Return the OrderState for ``value``, or None when it names no state."""
    if isinstance(value, OrderState):
        return value
    try:
        return OrderState((value or "").strip().upper())
    except ValueError:
        return None


@dataclass(frozen=True)
class Transition:
    """A valid state transition in the order workflow.

    Contract: frozen.  ``allowed_roles`` is the set of roles that may
    cause the move into ``to_state``.
    """
    from_state: OrderState
    to_state: OrderState
    action: str
    allowed_roles: frozenset[Role]


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for the order lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    """
    name: str
    description: str
    initial_state: OrderState
    initial_roles: frozenset[Role]
    states: tuple[OrderState, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[OrderState, ...] = ()


_ANY_OPERATOR = frozenset({Role.AUXILIARY, Role.PHARMACIST, Role.COORDINATOR})
_PHARMACY = frozenset({Role.PHARMACIST, Role.COORDINATOR})
_COORDINATION = frozenset({Role.COORDINATOR})


ORDER_WORKFLOW = Workflow(
    name="production_order",
    description="Compounding order lifecycle from creation to delivery",
    initial_state=OrderState.CREATED,
    initial_roles=_ANY_OPERATOR,
    states=tuple(OrderState),
    transitions=(
        Transition(OrderState.CREATED, OrderState.VALIDATED, "validate", _PHARMACY),
        Transition(OrderState.VALIDATED, OrderState.CALCULATED, "calculate", _PHARMACY),
        Transition(OrderState.CALCULATED, OrderState.SCHEDULED, "schedule", _COORDINATION),
        Transition(OrderState.SCHEDULED, OrderState.PRODUCED, "produce", _PHARMACY),
        Transition(OrderState.PRODUCED, OrderState.QC, "approve_qc", _PHARMACY),
        Transition(OrderState.QC, OrderState.LABELED, "label", _ANY_OPERATOR),
        Transition(OrderState.LABELED, OrderState.FINALIZED, "finalize", _COORDINATION),
    ),
    terminal_states=(OrderState.FINALIZED,),
)


_NEXT_STATE: dict[OrderState, Transition] = {
    t.from_state: t for t in ORDER_WORKFLOW.transitions
}

_ROLES_BY_TARGET: dict[OrderState, frozenset[Role]] = {
    ORDER_WORKFLOW.initial_state: ORDER_WORKFLOW.initial_roles,
    **{t.to_state: t.allowed_roles for t in ORDER_WORKFLOW.transitions},
}


def next_state(current: OrderState) -> OrderState | None:
    """The single permitted successor of ``current``; None for FINALIZED."""
    transition = _NEXT_STATE.get(current)
    return transition.to_state if transition else None


def allowed_roles(target: OrderState) -> frozenset[Role]:
    """Roles permitted to move an order into ``target``."""
    return _ROLES_BY_TARGET[target]


def is_role_allowed(target: OrderState, role: Role | None) -> bool:
    return role is not None and role in _ROLES_BY_TARGET[target]


def stage_order() -> tuple[OrderState, ...]:
    """States in canonical forward order."""
    return ORDER_WORKFLOW.states


def states_through(state: OrderState) -> tuple[OrderState, ...]:
    """``state`` and every state before it, in canonical order."""
    states = ORDER_WORKFLOW.states
    return states[: states.index(state) + 1]


def workflow_definition() -> list[dict[str, object]]:
    """Introspection view of the chain for UI/API consumers."""
    rows: list[dict[str, object]] = [
        {
            "from_state": None,
            "to_state": ORDER_WORKFLOW.initial_state.value,
            "action": "create",
            "allowed_roles": sorted(r.value for r in ORDER_WORKFLOW.initial_roles),
        }
    ]
    for t in ORDER_WORKFLOW.transitions:
        rows.append(
            {
                "from_state": t.from_state.value,
                "to_state": t.to_state.value,
                "action": t.action,
                "allowed_roles": sorted(r.value for r in t.allowed_roles),
            }
        )
    return rows
