"""
Tests for the inventory ledger.
"""

from decimal import Decimal

import pytest

from order_service.errors import NoActiveTransaction, ProductNotFound, StockUnderflow
from order_service.ledger import InventoryLedger


@pytest.fixture
def ledger():
    return InventoryLedger()


class TestOutsideUnitOfWork:

    @pytest.mark.asyncio
    async def test_lock_requires_transaction(self, ledger, uow, db):
        product_id = await db.add_product()
        with pytest.raises(NoActiveTransaction):
            await ledger.lock_and_check(uow, product_id)

    @pytest.mark.asyncio
    async def test_decrement_requires_transaction(self, ledger, uow, db):
        product_id = await db.add_product()
        with pytest.raises(NoActiveTransaction):
            await ledger.decrement(uow, product_id, 1)
        assert await db.stock(product_id) == 10

    @pytest.mark.asyncio
    async def test_restore_requires_transaction(self, ledger, uow, db):
        product_id = await db.add_product()
        with pytest.raises(NoActiveTransaction):
            await ledger.restore(uow, product_id, 1)


class TestInsideUnitOfWork:

    @pytest.mark.asyncio
    async def test_lock_and_check_returns_stock_and_price(self, ledger, uow, db):
        product_id = await db.add_product(price="12.50", stock=4)
        async with uow:
            stock, price = await ledger.lock_and_check(uow, product_id)
        assert stock == 4
        assert price == Decimal("12.50")

    @pytest.mark.asyncio
    async def test_lock_missing_product(self, ledger, uow):
        with pytest.raises(ProductNotFound) as exc_info:
            async with uow:
                await ledger.lock_and_check(uow, 999)
        assert exc_info.value.product_id == 999

    @pytest.mark.asyncio
    async def test_lock_many_uses_ascending_order(self, ledger, uow, db):
        first = await db.add_product(stock=1)
        second = await db.add_product(stock=2)
        async with uow:
            locked = await ledger.lock_many(uow, [second, first, second])
        assert list(locked) == [first, second]
        assert locked[second][0] == 2

    @pytest.mark.asyncio
    async def test_decrement_and_restore_commit(self, ledger, uow, db):
        product_id = await db.add_product(stock=10)
        async with uow:
            await ledger.decrement(uow, product_id, 4)
        assert await db.stock(product_id) == 6

        async with uow:
            await ledger.restore(uow, product_id, 3)
        assert await db.stock(product_id) == 9

    @pytest.mark.asyncio
    async def test_decrement_to_zero(self, ledger, uow, db):
        product_id = await db.add_product(stock=3)
        async with uow:
            await ledger.decrement(uow, product_id, 3)
        assert await db.stock(product_id) == 0

    @pytest.mark.asyncio
    async def test_underflow_rolls_back(self, ledger, uow, db):
        first = await db.add_product(stock=5)
        second = await db.add_product(stock=1)
        with pytest.raises(StockUnderflow) as exc_info:
            async with uow:
                await ledger.decrement(uow, first, 2)
                await ledger.decrement(uow, second, 2)
        assert exc_info.value.product_id == second
        assert await db.stock(first) == 5
        assert await db.stock(second) == 1

    @pytest.mark.asyncio
    async def test_restore_missing_product(self, ledger, uow):
        with pytest.raises(ProductNotFound):
            async with uow:
                await ledger.restore(uow, 404, 1)

    @pytest.mark.asyncio
    async def test_uow_inactive_after_exit(self, ledger, uow, db):
        product_id = await db.add_product()
        async with uow:
            assert uow.active
        assert not uow.active
        with pytest.raises(NoActiveTransaction):
            await ledger.decrement(uow, product_id, 1)
