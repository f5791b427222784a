"""
Order Service — ドメインモデル

DB の行から組み立てる型付きの値オブジェクト。
注文明細の単価は注文時点の価格を保持し、後から商品価格が変わっても影響を受けない。
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict


class OrderStatus(str, Enum):
    """
    注文ステータス

    状態遷移:
        PENDING → PROCESSING / SHIPPED / DELIVERED / CANCELLED
        PENDING → CANCELLED のときだけ在庫を戻す
        CANCELLED は終端状態
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]

    @classmethod
    def parse(cls, value) -> "OrderStatus | None":
        try:
            return cls(value)
        except ValueError:
            return None


class Buyer(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    name: str
    email: str


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    name: str
    price: Decimal
    stock: int
    description: str = ""


class OrderLine(BaseModel):
    """注文明細（作成後は不変）"""

    model_config = ConfigDict(frozen=True)

    product_id: int
    quantity: int
    unit_price: Decimal
    order_item_id: int | None = None
    product_name: str | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class OrderHeader(BaseModel):
    """Order Store に渡す注文ヘッダ（ID 採番前）"""

    model_config = ConfigDict(frozen=True)

    user_id: int
    total_amount: Decimal
    status: OrderStatus = OrderStatus.PENDING


class Order(BaseModel):
    order_id: int
    user_id: int
    total_amount: Decimal
    status: OrderStatus
    order_date: datetime | None = None
    user_name: str | None = None
    lines: list[OrderLine] = []

    @property
    def is_pending(self) -> bool:
        return self.status is OrderStatus.PENDING

    def quantities_by_product(self) -> dict[int, int]:
        """商品IDごとの数量合計（在庫を戻すときに使う）。"""
        totals: dict[int, int] = {}
        for line in self.lines:
            totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
        return totals

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "total_amount": float(self.total_amount),
            "status": self.status.value,
            "order_date": self.order_date.isoformat() if self.order_date else None,
            "items": [
                {
                    "order_item_id": line.order_item_id,
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "quantity": line.quantity,
                    "price": float(line.unit_price),
                }
                for line in self.lines
            ],
        }
