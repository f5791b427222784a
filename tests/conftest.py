"""
Shared fixtures: a throwaway SQLite database per test, seeding helpers
and a recording audit sink.
"""

import itertools
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, insert, select, update

from order_service.database import create_engine, create_session_factory, init_schema
from order_service.schema import order_items, orders, products, users
from order_service.unit_of_work import UnitOfWork


class RecordingAuditSink:
    def __init__(self) -> None:
        self.events = []

    async def record(self, event) -> None:
        self.events.append(event)


class Db:
    """テスト用のデータ投入・確認ヘルパー"""

    _counter = itertools.count(1)

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    async def add_buyer(self, name: str = "Alice") -> int:
        email = f"{name.lower()}{next(self._counter)}@example.com"
        async with self.session_factory() as session:
            result = await session.execute(insert(users).values(name=name, email=email))
            await session.commit()
            return result.inserted_primary_key[0]

    async def add_product(self, price="5.00", stock: int = 10, name: str = "Widget") -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                insert(products).values(name=name, price=Decimal(price), stock=stock)
            )
            await session.commit()
            return result.inserted_primary_key[0]

    async def set_price(self, product_id: int, price) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(products)
                .where(products.c.product_id == product_id)
                .values(price=Decimal(price))
            )
            await session.commit()

    async def stock(self, product_id: int) -> int:
        async with self.session_factory() as session:
            return (
                await session.execute(
                    select(products.c.stock).where(products.c.product_id == product_id)
                )
            ).scalar_one()

    async def order_count(self) -> int:
        async with self.session_factory() as session:
            return (await session.execute(select(func.count()).select_from(orders))).scalar_one()

    async def line_count(self) -> int:
        async with self.session_factory() as session:
            return (
                await session.execute(select(func.count()).select_from(order_items))
            ).scalar_one()

    async def order_status(self, order_id: int) -> str | None:
        async with self.session_factory() as session:
            return (
                await session.execute(select(orders.c.status).where(orders.c.order_id == order_id))
            ).scalar_one_or_none()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def uow(session_factory):
    return UnitOfWork(session_factory)


@pytest.fixture
def db(session_factory):
    return Db(session_factory)


@pytest.fixture
def audit():
    return RecordingAuditSink()
