"""
WorkflowService -- the order state machine.

Responsibility:
    Advances a ProductionOrder one step along the linear chain
    CREATED -> VALIDATED -> CALCULATED -> SCHEDULED -> PRODUCED -> QC ->
    LABELED -> FINALIZED, enforcing the per-target role gate, and records
    one STATE_TRANSITION audit entry per successful step.

Architecture position:
    Kernel > Services -- the only component that mutates order state.
    Rules (successor, role sets) live in ``domain.workflow``; persistence
    goes through ``OrderRepository``.

Invariants enforced:
    - Only the single successor of the current state is reachable; no
      skips, no backward moves, nothing after FINALIZED.
    - The successor check runs before the role check.
    - State, stage timestamp and stage actor are written by one
      compare-and-swap; for N concurrent callers targeting the same
      successor exactly one succeeds and the rest get
      IllegalTransitionError.
    - The audit append never fails the transition.

Failure modes:
    - OrderNotFoundError: unknown order id.
    - IllegalTransitionError: target is not the successor (including an
      unknown target value), or a concurrent transition won the race.
    - ForbiddenTransitionError: role (or unknown role value) not admitted
      to the target state.
"""

from __future__ import annotations

from uuid import UUID

from compounding_kernel.domain.clock import Clock, SystemClock
from compounding_kernel.domain.dtos import OrderSnapshot
from compounding_kernel.domain.entity_registry import EntityType
from compounding_kernel.domain.workflow import (
    OrderState,
    Role,
    allowed_roles,
    is_role_allowed,
    next_state,
    parse_role,
    parse_state,
)
from compounding_kernel.exceptions import (
    ForbiddenTransitionError,
    IllegalTransitionError,
    OrderNotFoundError,
)
from compounding_kernel.logging_config import LogContext, get_logger
from compounding_kernel.models.audit_record import AuditAction
from compounding_kernel.services.audit_log import AuditLog
from compounding_kernel.services.order_repository import OrderRepository

logger = get_logger("services.workflow")


def _text(value) -> str:
    return str(getattr(value, "value", value))


class WorkflowService:
    """
    Contract:
        ``transition`` either moves the order exactly one step and returns
        the updated snapshot, or raises and leaves the order untouched.
    """

    def __init__(
        self,
        repository: OrderRepository,
        audit_log: AuditLog,
        clock: Clock | None = None,
    ):
        self._repository = repository
        self._audit = audit_log
        self._clock = clock or SystemClock()

    @staticmethod
    def next_state(state: OrderState) -> OrderState | None:
        return next_state(state)

    def transition(
        self,
        order_id: UUID,
        target_state: OrderState | str,
        actor_id: UUID,
        actor_role: Role | str,
    ) -> OrderSnapshot:
        with LogContext.bind(order_id=str(order_id), actor_id=str(actor_id)):
            order = self._repository.load_order(order_id)
            if order is None:
                raise OrderNotFoundError(str(order_id))

            current = OrderState(order.state)
            target = parse_state(target_state)
            successor = next_state(current)

            if target is None or target != successor:
                if successor is None:
                    reason = f"{current.value} is terminal"
                elif target is None:
                    reason = "unknown target state"
                else:
                    reason = f"next state is {successor.value}"
                logger.warning(
                    "illegal_transition_rejected",
                    extra={
                        "current_state": current.value,
                        "target_state": _text(target_state),
                    },
                )
                raise IllegalTransitionError(
                    str(order_id),
                    current.value,
                    _text(target_state),
                    reason,
                )

            role = parse_role(actor_role)
            if not is_role_allowed(target, role):
                permitted = tuple(sorted(r.value for r in allowed_roles(target)))
                logger.warning(
                    "forbidden_transition_rejected",
                    extra={
                        "role": _text(actor_role),
                        "target_state": target.value,
                    },
                )
                raise ForbiddenTransitionError(
                    _text(actor_role),
                    target.value,
                    permitted,
                )

            now = self._clock.now()
            if not self._repository.conditional_update_state(
                order_id, current, target, actor_id, now
            ):
                latest = self._repository.load_order(order_id)
                observed = latest.state if latest is not None else current.value
                logger.warning(
                    "transition_lost_race",
                    extra={
                        "expected_state": current.value,
                        "observed_state": observed,
                        "target_state": target.value,
                    },
                )
                raise IllegalTransitionError(
                    str(order_id),
                    observed,
                    target.value,
                    "order state changed concurrently",
                )

            self._audit.append(
                EntityType.PRODUCTION_ORDER,
                order_id,
                AuditAction.STATE_TRANSITION,
                {
                    "previous_state": current.value,
                    "new_state": target.value,
                    "actor_id": str(actor_id),
                },
                actor_id,
            )

            logger.info(
                "order_transitioned",
                extra={
                    "previous_state": current.value,
                    "new_state": target.value,
                    "role": role.value,
                },
            )
            return OrderSnapshot.from_model(self._repository.load_order(order_id))

    # Named wrappers, one per forward step

    def validate(self, order_id: UUID, actor_id: UUID, actor_role: Role | str) -> OrderSnapshot:
        return self.transition(order_id, OrderState.VALIDATED, actor_id, actor_role)

    def calculate(self, order_id: UUID, actor_id: UUID, actor_role: Role | str) -> OrderSnapshot:
        return self.transition(order_id, OrderState.CALCULATED, actor_id, actor_role)

    def schedule(self, order_id: UUID, actor_id: UUID, actor_role: Role | str) -> OrderSnapshot:
        return self.transition(order_id, OrderState.SCHEDULED, actor_id, actor_role)

    def produce(self, order_id: UUID, actor_id: UUID, actor_role: Role | str) -> OrderSnapshot:
        return self.transition(order_id, OrderState.PRODUCED, actor_id, actor_role)

    def approve_qc(self, order_id: UUID, actor_id: UUID, actor_role: Role | str) -> OrderSnapshot:
        return self.transition(order_id, OrderState.QC, actor_id, actor_role)

    def label(self, order_id: UUID, actor_id: UUID, actor_role: Role | str) -> OrderSnapshot:
        return self.transition(order_id, OrderState.LABELED, actor_id, actor_role)

    def finalize(self, order_id: UUID, actor_id: UUID, actor_role: Role | str) -> OrderSnapshot:
        return self.transition(order_id, OrderState.FINALIZED, actor_id, actor_role)
