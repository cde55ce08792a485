"""Tests for OrderSelector listing and lookup."""

from uuid import uuid4

import pytest

from compounding_kernel.domain.dtos import OrderFilters
from compounding_kernel.domain.workflow import OrderState
from compounding_kernel.exceptions import OrderNotFoundError
from compounding_kernel.selectors.order_selector import OrderSelector


@pytest.fixture
def orders(service, order_request, clock):
    created = []
    for _ in range(5):
        created.append(service.create_order(order_request()))
        clock.advance(60)
    return created


@pytest.fixture
def selector(session) -> OrderSelector:
    return OrderSelector(session)


def test_newest_first(selector, orders):
    page = selector.list()
    assert [o.id for o in page.items] == [o.id for o in reversed(orders)]
    assert page.total == 5


def test_skip_and_limit(selector, orders):
    page = selector.list(OrderFilters(limit=2, skip=1))
    assert [o.id for o in page.items] == [orders[3].id, orders[2].id]
    assert page.total == 5
    assert (page.limit, page.skip) == (2, 1)


def test_limit_capped(selector, orders):
    page = selector.list(OrderFilters(limit=1000), max_limit=3)
    assert page.limit == 3
    assert len(page.items) == 3


def test_created_window(selector, orders, clock):
    first = orders[0].timestamp_for(OrderState.CREATED)
    page = selector.list(OrderFilters(created_from=first, created_to=orders[2].timestamp_for(OrderState.CREATED)))
    assert {o.id for o in page.items} == {o.id for o in orders[:3]}


def test_state_filter_empty(selector, orders):
    page = selector.list(OrderFilters(state=OrderState.FINALIZED))
    assert page.items == ()
    assert page.total == 0


def test_find_and_get(selector, orders):
    assert selector.find(uuid4()) is None
    assert selector.get(orders[0].id).code == orders[0].code
    assert selector.id_for_code(orders[1].code) == orders[1].id
    with pytest.raises(OrderNotFoundError):
        selector.get(uuid4())
