"""
Tests for order persistence.
"""

from decimal import Decimal

import pytest

from order_service.errors import InvalidStatus, NoActiveTransaction
from order_service.models import OrderHeader, OrderLine, OrderStatus
from order_service.store import OrderStore


@pytest.fixture
def store():
    return OrderStore()


async def _create(store, uow, user_id, product_id):
    header = OrderHeader(user_id=user_id, total_amount=Decimal("17.00"))
    lines = [
        OrderLine(product_id=product_id, quantity=2, unit_price=Decimal("5.00")),
        OrderLine(product_id=product_id, quantity=1, unit_price=Decimal("7.00")),
    ]
    async with uow:
        return await store.create(uow, header, lines)


@pytest.mark.asyncio
async def test_create_and_get_by_id(store, uow, db, session_factory):
    user_id = await db.add_buyer("Bob")
    product_id = await db.add_product(name="Lamp")

    order_id = await _create(store, uow, user_id, product_id)

    async with session_factory() as session:
        order = await store.get_by_id(session, order_id)
    assert order.order_id == order_id
    assert order.user_id == user_id
    assert order.user_name == "Bob"
    assert order.status is OrderStatus.PENDING
    assert order.total_amount == Decimal("17.00")
    assert order.order_date is not None
    assert [(l.quantity, l.unit_price) for l in order.lines] == [
        (2, Decimal("5.00")),
        (1, Decimal("7.00")),
    ]
    assert {l.product_name for l in order.lines} == {"Lamp"}
    assert order.quantities_by_product() == {product_id: 3}


@pytest.mark.asyncio
async def test_get_missing_order(store, session_factory):
    async with session_factory() as session:
        assert await store.get_by_id(session, 12345) is None


@pytest.mark.asyncio
async def test_create_requires_transaction(store, uow, db):
    user_id = await db.add_buyer()
    with pytest.raises(NoActiveTransaction):
        await store.create(uow, OrderHeader(user_id=user_id, total_amount=Decimal("1")), [])


@pytest.mark.asyncio
async def test_update_status(store, uow, db):
    user_id = await db.add_buyer()
    product_id = await db.add_product()
    order_id = await _create(store, uow, user_id, product_id)

    async with uow:
        assert await store.update_status(uow, order_id, "shipped")
    assert await db.order_status(order_id) == "shipped"

    async with uow:
        assert not await store.update_status(uow, order_id + 100, OrderStatus.DELIVERED)


@pytest.mark.asyncio
async def test_update_status_rejects_unknown_value(store, uow, db):
    user_id = await db.add_buyer()
    product_id = await db.add_product()
    order_id = await _create(store, uow, user_id, product_id)

    with pytest.raises(InvalidStatus) as exc_info:
        async with uow:
            await store.update_status(uow, order_id, "lost")
    assert exc_info.value.valid_statuses == [
        "pending", "processing", "shipped", "delivered", "cancelled",
    ]
    assert await db.order_status(order_id) == "pending"


@pytest.mark.asyncio
async def test_delete_removes_lines(store, uow, db):
    user_id = await db.add_buyer()
    product_id = await db.add_product()
    order_id = await _create(store, uow, user_id, product_id)
    assert await db.line_count() == 2

    async with uow:
        assert await store.delete(uow, order_id)
    assert await db.order_count() == 0
    assert await db.line_count() == 0

    async with uow:
        assert not await store.delete(uow, order_id)


@pytest.mark.asyncio
async def test_lock_loads_order(store, uow, db):
    user_id = await db.add_buyer("Erin")
    product_id = await db.add_product()
    order_id = await _create(store, uow, user_id, product_id)

    async with uow:
        order = await store.lock(uow, order_id)
        missing = await store.lock(uow, order_id + 1)
    assert order.is_pending
    assert len(order.lines) == 2
    assert order.user_name == "Erin"
    assert missing is None

