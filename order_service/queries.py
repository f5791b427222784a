"""
Order Service — クエリハンドラ (Read 側)

購入者・商品の参照と、注文一覧・集計などの読み取り専用クエリ。
ここでは何も書き込まない。
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Buyer, Product


def _iso(value):
    # SQLite は日時を文字列で返す
    if value is None or isinstance(value, str):
        return value
    return value.isoformat()


def _money(value) -> float:
    return float(value) if value is not None else 0.0


async def get_buyer(session: AsyncSession, user_id: int) -> Buyer | None:
    result = await session.execute(
        text("SELECT user_id, name, email FROM users WHERE user_id = :id"),
        {"id": user_id},
    )
    row = result.fetchone()
    if not row:
        return None
    return Buyer(user_id=row.user_id, name=row.name, email=row.email)


async def get_product(session: AsyncSession, product_id: int) -> Product | None:
    """ロックなしで商品を読む。事前チェック専用で、在庫の正しさは保証しない。"""
    result = await session.execute(
        text("""
            SELECT product_id, name, description, price, stock
            FROM products
            WHERE product_id = :id
        """),
        {"id": product_id},
    )
    row = result.fetchone()
    if not row:
        return None
    return Product(
        product_id=row.product_id,
        name=row.name,
        description=row.description or "",
        price=Decimal(str(row.price)),
        stock=row.stock,
    )


async def _items_for(session: AsyncSession, order_id: int) -> list[dict]:
    result = await session.execute(
        text("""
            SELECT oi.order_item_id, oi.product_id, oi.quantity, oi.price,
                   p.name AS product_name
            FROM order_items oi
            LEFT JOIN products p ON oi.product_id = p.product_id
            WHERE oi.order_id = :id
            ORDER BY oi.order_item_id
        """),
        {"id": order_id},
    )
    return [
        {
            "order_item_id": row.order_item_id,
            "product_id": row.product_id,
            "product_name": row.product_name,
            "quantity": row.quantity,
            "price": _money(row.price),
        }
        for row in result.fetchall()
    ]


def _order_row(row) -> dict:
    return {
        "order_id": row.order_id,
        "user_id": row.user_id,
        "user_name": row.user_name,
        "total_amount": _money(row.total_amount),
        "status": row.status,
        "order_date": _iso(row.order_date),
    }


async def list_orders(session: AsyncSession) -> list[dict]:
    """全注文を新しい順に返す（明細なし）。"""
    result = await session.execute(
        text("""
            SELECT o.order_id, o.user_id, o.total_amount, o.status, o.order_date,
                   u.name AS user_name
            FROM orders o
            LEFT JOIN users u ON o.user_id = u.user_id
            ORDER BY o.order_date DESC, o.order_id DESC
        """),
    )
    return [_order_row(row) for row in result.fetchall()]


async def list_buyer_orders(session: AsyncSession, user_id: int) -> list[dict]:
    """購入者の注文を明細付きで新しい順に返す。"""
    result = await session.execute(
        text("""
            SELECT o.order_id, o.user_id, o.total_amount, o.status, o.order_date,
                   u.name AS user_name
            FROM orders o
            LEFT JOIN users u ON o.user_id = u.user_id
            WHERE o.user_id = :user_id
            ORDER BY o.order_date DESC, o.order_id DESC
        """),
        {"user_id": user_id},
    )
    orders = []
    for row in result.fetchall():
        order = _order_row(row)
        order["items"] = await _items_for(session, row.order_id)
        orders.append(order)
    return orders


async def order_stats(session: AsyncSession) -> dict:
    """
    注文の集計

    - ステータス別の件数
    - キャンセルを除いた売上合計
    - 数量ベースの売れ筋商品 TOP5（キャンセル除く）
    - 直近10件の注文
    """
    result = await session.execute(
        text("SELECT status, COUNT(*) AS order_count FROM orders GROUP BY status"),
    )
    status_counts = {row.status: int(row.order_count) for row in result.fetchall()}

    result = await session.execute(
        text("SELECT SUM(total_amount) AS total_sales FROM orders WHERE status != 'cancelled'"),
    )
    total_sales = _money(result.scalar())

    result = await session.execute(
        text("""
            SELECT p.product_id, p.name,
                   SUM(oi.quantity) AS total_quantity,
                   SUM(oi.quantity * oi.price) AS total_revenue
            FROM order_items oi
            JOIN products p ON oi.product_id = p.product_id
            JOIN orders o ON oi.order_id = o.order_id
            WHERE o.status != 'cancelled'
            GROUP BY p.product_id, p.name
            ORDER BY total_quantity DESC
            LIMIT 5
        """),
    )
    top_products = [
        {
            "product_id": row.product_id,
            "name": row.name,
            "total_quantity": int(row.total_quantity),
            "total_revenue": _money(row.total_revenue),
        }
        for row in result.fetchall()
    ]

    result = await session.execute(
        text("""
            SELECT o.order_id, o.user_id, o.total_amount, o.status, o.order_date,
                   u.name AS user_name
            FROM orders o
            JOIN users u ON o.user_id = u.user_id
            ORDER BY o.order_date DESC, o.order_id DESC
            LIMIT 10
        """),
    )
    recent_orders = [_order_row(row) for row in result.fetchall()]

    return {
        "status_counts": status_counts,
        "total_sales": total_sales,
        "top_products": top_products,
        "recent_orders": recent_orders,
    }


async def recent_logs(session: AsyncSession, limit: int = 100) -> list[dict]:
    """監査ログ (transaction_logs) を新しい順に返す。"""
    result = await session.execute(
        text("""
            SELECT log_id, type, data, status, error_message, timestamp
            FROM transaction_logs
            ORDER BY timestamp DESC, log_id DESC
            LIMIT :limit
        """),
        {"limit": limit},
    )
    return [
        {
            "log_id": row.log_id,
            "type": row.type,
            "data": row.data,
            "status": row.status,
            "error_message": row.error_message,
            "timestamp": _iso(row.timestamp),
        }
        for row in result.fetchall()
    ]
