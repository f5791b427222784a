"""
Order Service — 在庫台帳 (Inventory Ledger)

products.stock を書き換えてよい唯一の経路。
すべての操作はアクティブな UnitOfWork の中でしか呼べない。

ロックの規約:
    - 行ロックは SELECT ... FOR UPDATE（トランザクション終了まで保持）
    - 複数商品をロックするときは商品ID昇順（デッドロック防止）
    - ロック取得後に在庫を読み直した値だけが正しい
"""

import logging
from decimal import Decimal

from sqlalchemy import select, update

from .errors import ProductNotFound, StockUnderflow
from .schema import products
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class InventoryLedger:
    async def lock_and_check(self, uow: UnitOfWork, product_id: int) -> tuple[int, Decimal]:
        """商品行を排他ロックし、(現在の在庫数, 現在価格) を返す。"""
        result = await uow.session.execute(
            select(products.c.stock, products.c.price)
            .where(products.c.product_id == product_id)
            .with_for_update()
        )
        row = result.fetchone()
        if row is None:
            raise ProductNotFound(product_id)
        return row.stock, row.price

    async def lock_many(self, uow: UnitOfWork, product_ids) -> dict[int, tuple[int, Decimal]]:
        """複数商品を商品ID昇順でロックする。"""
        locked: dict[int, tuple[int, Decimal]] = {}
        for product_id in sorted(set(product_ids)):
            locked[product_id] = await self.lock_and_check(uow, product_id)
        return locked

    async def decrement(self, uow: UnitOfWork, product_id: int, quantity: int) -> None:
        """在庫を減らす。マイナスになる場合は StockUnderflow。"""
        result = await uow.session.execute(
            update(products)
            .where(products.c.product_id == product_id)
            .where(products.c.stock >= quantity)
            .values(stock=products.c.stock - quantity)
        )
        if result.rowcount == 0:
            raise StockUnderflow(product_id, quantity)
        logger.debug("Stock decremented: product=%s qty=%s", product_id, quantity)

    async def restore(self, uow: UnitOfWork, product_id: int, quantity: int) -> None:
        """キャンセル時に在庫を戻す。"""
        result = await uow.session.execute(
            update(products)
            .where(products.c.product_id == product_id)
            .values(stock=products.c.stock + quantity)
        )
        if result.rowcount == 0:
            raise ProductNotFound(product_id)
        logger.debug("Stock restored: product=%s qty=%s", product_id, quantity)
