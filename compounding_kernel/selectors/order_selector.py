"""
OrderSelector -- read model of production orders.

Returns OrderSnapshot DTOs; never live ORM rows.  Listing is newest first
by creation time, with the order code as a stable tie-break.
"""

from uuid import UUID

from sqlalchemy import func, select

from compounding_kernel.domain.dtos import OrderFilters, OrderPage, OrderSnapshot
from compounding_kernel.exceptions import OrderNotFoundError
from compounding_kernel.models.production_order import ProductionOrder
from compounding_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector[ProductionOrder]):
    """Queries over production orders."""

    def find(self, order_id: UUID) -> OrderSnapshot | None:
        order = self.session.execute(
            select(ProductionOrder)
            .where(ProductionOrder.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return OrderSnapshot.from_model(order) if order is not None else None

    def id_for_code(self, code: str) -> UUID | None:
        return self.session.execute(
            select(ProductionOrder.id).where(ProductionOrder.code == code)
        ).scalar_one_or_none()

    def get(self, order_id: UUID) -> OrderSnapshot:
        """
        Raises:
            OrderNotFoundError: no order with ``order_id``.
        """
        snapshot = self.find(order_id)
        if snapshot is None:
            raise OrderNotFoundError(str(order_id))
        return snapshot

    def list(self, filters: OrderFilters | None = None, max_limit: int = 200) -> OrderPage:
        filters = filters or OrderFilters()
        conditions = []
        if filters.state is not None:
            conditions.append(ProductionOrder.state == filters.state.value)
        if filters.production_line is not None:
            conditions.append(ProductionOrder.production_line == filters.production_line.value)
        if filters.created_from is not None:
            conditions.append(ProductionOrder.created_at >= filters.created_from)
        if filters.created_to is not None:
            conditions.append(ProductionOrder.created_at <= filters.created_to)

        limit = max(0, min(filters.limit, max_limit))
        skip = max(0, filters.skip)

        total = self.session.execute(
            select(func.count()).select_from(ProductionOrder).where(*conditions)
        ).scalar_one()

        rows = self.session.execute(
            select(ProductionOrder)
            .where(*conditions)
            .order_by(ProductionOrder.created_at.desc(), ProductionOrder.code.desc())
            .offset(skip)
            .limit(limit)
        ).scalars().all()

        return OrderPage(
            items=tuple(OrderSnapshot.from_model(o) for o in rows),
            total=total,
            limit=limit,
            skip=skip,
        )
