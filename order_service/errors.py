"""
Order Service — エラー定義

ワークフローはこれらの例外を送出し、HTTP 層 (main.py) がステータスコードに変換する。
トランザクション開始前に検出したエラーは副作用なし、
開始後に検出したエラーは必ずロールバック後に送出される。
"""

from decimal import Decimal


class OrderServiceError(Exception):
    """全エラーの基底クラス。kind は HTTP 応答や監査ログに載せる識別子。"""

    kind = "OrderServiceError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict:
        return {}


class ValidationError(OrderServiceError):
    kind = "ValidationError"


class BuyerNotFound(OrderServiceError):
    kind = "BuyerNotFound"

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id

    def details(self) -> dict:
        return {"user_id": self.user_id}


class ProductNotFound(OrderServiceError):
    kind = "ProductNotFound"

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id

    def details(self) -> dict:
        return {"product_id": self.product_id}


class OrderNotFound(OrderServiceError):
    kind = "OrderNotFound"

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id

    def details(self) -> dict:
        return {"order_id": self.order_id}


class InsufficientStock(OrderServiceError):
    kind = "InsufficientStock"

    def __init__(self, product_id: int, available: int, requested: int) -> None:
        super().__init__(f"Insufficient stock for product ID: {product_id}")
        self.product_id = product_id
        self.available = available
        self.requested = requested

    def details(self) -> dict:
        return {
            "product_id": self.product_id,
            "available": self.available,
            "requested": self.requested,
        }


class TotalMismatch(OrderServiceError):
    kind = "TotalMismatch"

    def __init__(self, calculated: Decimal, provided: Decimal) -> None:
        super().__init__("Total amount mismatch")
        self.calculated = calculated
        self.provided = provided

    def details(self) -> dict:
        return {"calculated": float(self.calculated), "provided": float(self.provided)}


class InvalidStatus(OrderServiceError):
    kind = "InvalidStatus"

    def __init__(self, status, valid_statuses: list[str], message: str = "Invalid status value") -> None:
        super().__init__(message)
        self.status = status
        self.valid_statuses = valid_statuses

    def details(self) -> dict:
        return {"status": self.status, "valid_statuses": self.valid_statuses}


class StockUnderflow(OrderServiceError):
    kind = "StockUnderflow"

    def __init__(self, product_id: int, requested: int) -> None:
        super().__init__(f"Stock would go negative for product ID: {product_id}")
        self.product_id = product_id
        self.requested = requested

    def details(self) -> dict:
        return {"product_id": self.product_id, "requested": self.requested}


class OrderCreationFailed(OrderServiceError):
    kind = "OrderCreationFailed"

    def __init__(self, reason: str) -> None:
        super().__init__("Failed to create order")
        self.reason = reason

    def details(self) -> dict:
        return {"reason": self.reason}


class OrderUpdateFailed(OrderServiceError):
    kind = "OrderUpdateFailed"

    def __init__(self, reason: str) -> None:
        super().__init__("Failed to update order")
        self.reason = reason

    def details(self) -> dict:
        return {"reason": self.reason}


class NoActiveTransaction(RuntimeError):
    """Unit of work の外から在庫・注文の書き込みを呼んだ（プログラミングエラー）。"""
