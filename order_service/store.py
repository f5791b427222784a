"""
Order Service — 注文ストア (Order Store)

注文ヘッダと明細の永続化、ステータス更新、削除を担当する。
書き込み系はすべて呼び出し側の UnitOfWork の中で実行される。
"""

from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import InvalidStatus
from .models import Order, OrderHeader, OrderLine, OrderStatus
from .schema import order_items, orders, products, users
from .unit_of_work import UnitOfWork


def _order_from_rows(header, line_rows) -> Order:
    return Order(
        order_id=header.order_id,
        user_id=header.user_id,
        total_amount=header.total_amount,
        status=OrderStatus(header.status),
        order_date=header.order_date,
        user_name=header.user_name,
        lines=[
            OrderLine(
                order_item_id=row.order_item_id,
                product_id=row.product_id,
                product_name=row.product_name,
                quantity=row.quantity,
                unit_price=row.price,
            )
            for row in line_rows
        ],
    )


class OrderStore:
    async def create(
        self,
        uow: UnitOfWork,
        header: OrderHeader,
        lines: Sequence[OrderLine],
    ) -> int:
        """ヘッダと明細を続けて INSERT し、採番された注文IDを返す。"""
        session = uow.session
        result = await session.execute(
            insert(orders).values(
                user_id=header.user_id,
                total_amount=header.total_amount,
                status=header.status.value,
                order_date=datetime.now(timezone.utc),
            )
        )
        order_id = result.inserted_primary_key[0]

        if lines:
            await session.execute(
                insert(order_items),
                [
                    {
                        "order_id": order_id,
                        "product_id": line.product_id,
                        "quantity": line.quantity,
                        "price": line.unit_price,
                    }
                    for line in lines
                ],
            )
        return order_id

    async def _load(self, session: AsyncSession, order_id: int, for_update: bool) -> Order | None:
        stmt = (
            select(
                orders.c.order_id,
                orders.c.user_id,
                orders.c.total_amount,
                orders.c.status,
                orders.c.order_date,
                users.c.name.label("user_name"),
            )
            .select_from(orders.outerjoin(users, orders.c.user_id == users.c.user_id))
            .where(orders.c.order_id == order_id)
        )
        if for_update:
            # 外部結合の NULL 側はロックできないので orders 行だけをロックする
            stmt = stmt.with_for_update(of=orders)
        header = (await session.execute(stmt)).fetchone()
        if header is None:
            return None

        line_rows = (
            await session.execute(
                select(
                    order_items.c.order_item_id,
                    order_items.c.product_id,
                    order_items.c.quantity,
                    order_items.c.price,
                    products.c.name.label("product_name"),
                )
                .select_from(
                    order_items.outerjoin(
                        products, order_items.c.product_id == products.c.product_id
                    )
                )
                .where(order_items.c.order_id == order_id)
                .order_by(order_items.c.order_item_id)
            )
        ).fetchall()
        return _order_from_rows(header, line_rows)

    async def get_by_id(self, session: AsyncSession, order_id: int) -> Order | None:
        """明細付きで注文を取得する。無ければ None。"""
        return await self._load(session, order_id, for_update=False)

    async def lock(self, uow: UnitOfWork, order_id: int) -> Order | None:
        """注文ヘッダ行をロックして読み込む（同じ注文の同時キャンセル対策）。"""
        return await self._load(uow.session, order_id, for_update=True)

    async def update_status(self, uow: UnitOfWork, order_id: int, status) -> bool:
        new_status = OrderStatus.parse(status)
        if new_status is None:
            raise InvalidStatus(status, OrderStatus.values())
        result = await uow.session.execute(
            update(orders)
            .where(orders.c.order_id == order_id)
            .values(status=new_status.value)
        )
        return result.rowcount > 0

    async def delete(self, uow: UnitOfWork, order_id: int) -> bool:
        """明細ごと注文を削除し、ヘッダ行を削除できたかを返す。"""
        session = uow.session
        await session.execute(delete(order_items).where(order_items.c.order_id == order_id))
        result = await session.execute(delete(orders).where(orders.c.order_id == order_id))
        return result.rowcount > 0
