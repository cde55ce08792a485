"""
OrderRepository -- persistence operations on ProductionOrder.

Responsibility:
    The persistence collaborator of the workflow state machine and the
    production service: load, insert, and the compare-and-swap state update.

Invariants enforced:
    - ``conditional_update_state`` is a single UPDATE whose WHERE clause
      names the expected current state.  State, stage timestamp and stage
      actor change together or not at all.
    - Workflow columns are written nowhere else (ORM listeners reject edits
      through the unit of work).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update

from compounding_kernel.domain.workflow import OrderState
from compounding_kernel.logging_config import get_logger
from compounding_kernel.models.production_order import ProductionOrder
from compounding_kernel.services.base import BaseService

logger = get_logger("services.order_repository")


class OrderRepository(BaseService[ProductionOrder]):

    def load_order(self, order_id: UUID) -> ProductionOrder | None:
        """Fresh read of the order row, refreshing any identity-map copy."""
        return self.session.execute(
            select(ProductionOrder)
            .where(ProductionOrder.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def insert_order(self, order: ProductionOrder) -> ProductionOrder:
        self.session.add(order)
        self.session.flush()
        return order

    def code_taken(self, code: str) -> bool:
        return self.session.execute(
            select(ProductionOrder.id).where(ProductionOrder.code == code)
        ).first() is not None

    def conditional_update_state(
        self,
        order_id: UUID,
        expected: OrderState,
        new: OrderState,
        actor_id: UUID,
        timestamp: datetime,
    ) -> bool:
        """
        Move ``order_id`` from ``expected`` to ``new`` if it is still in
        ``expected``.

        Returns:
            True if exactly one row changed; False if the order was no
            longer in ``expected`` (a concurrent transition won).
        """
        key = new.stage_key
        result = self.session.execute(
            update(ProductionOrder)
            .where(
                ProductionOrder.id == order_id,
                ProductionOrder.state == expected.value,
            )
            .values(
                {
                    "state": new.value,
                    f"{key}_at": timestamp,
                    f"{key}_by_id": actor_id,
                }
            )
            .execution_options(synchronize_session=False)
        )
        swapped = result.rowcount == 1
        if not swapped:
            logger.info(
                "order_state_cas_missed",
                extra={
                    "order_id": str(order_id),
                    "expected_state": expected.value,
                    "new_state": new.value,
                },
            )
        return swapped
