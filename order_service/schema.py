"""
Order Service — テーブル定義

users / products / orders / order_items / transaction_logs の5テーブル。
在庫 (products.stock) は InventoryLedger 経由でしか更新しない。
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
)

metadata = MetaData()

# 金額はすべて NUMERIC(10, 2)
MONEY = Numeric(10, 2, asdecimal=True)


users = Table(
    "users",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

products = Table(
    "products",
    metadata,
    Column("product_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("price", MONEY, nullable=False),
    Column("stock", Integer, nullable=False, server_default="0"),
    CheckConstraint("price > 0", name="ck_products_price_positive"),
    CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
)

orders = Table(
    "orders",
    metadata,
    Column("order_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), nullable=False, index=True),
    Column("total_amount", MONEY, nullable=False),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("order_date", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

order_items = Table(
    "order_items",
    metadata,
    Column("order_item_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "order_id",
        Integer,
        ForeignKey("orders.order_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("product_id", Integer, ForeignKey("products.product_id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("price", MONEY, nullable=False),
    CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    CheckConstraint("price > 0", name="ck_order_items_price_positive"),
)

transaction_logs = Table(
    "transaction_logs",
    metadata,
    Column("log_id", Integer, primary_key=True, autoincrement=True),
    Column("type", String(50), nullable=False),
    Column("data", Text, nullable=False),
    Column("status", String(20), nullable=False),
    Column("error_message", Text, nullable=True),
    Column("timestamp", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
