"""
Order Service — 注文リクエストのバリデーション

DB に触れない純粋なチェック。最初に失敗した項目の理由を返して打ち切る。
検証を通ったリクエストだけが型付きの OrderRequest に変換される。
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, ConfigDict

from .errors import ValidationError

# snake_case のキーと、旧 API の camelCase キー
_BUYER_KEYS = ("buyer_id", "userId")
_LINES_KEYS = ("lines", "items")
_TOTAL_KEYS = ("total_amount", "totalAmount")
_PRODUCT_KEYS = ("product_id", "productId")
_QUANTITY_KEYS = ("quantity",)
_PRICE_KEYS = ("unit_price", "price")

CENTS = Decimal("0.01")


class OrderRequestLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    quantity: int
    # None のときは商品の現在価格で補う
    unit_price: Decimal | None = None


class OrderRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    buyer_id: int
    lines: tuple[OrderRequestLine, ...]
    total_amount: Decimal


def _lookup(data: Mapping, keys: tuple[str, ...]):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _as_positive_int(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str):
        try:
            number = int(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if number > 0 else None


def _as_decimal(value) -> Decimal | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float, str)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None
    return number if number.is_finite() else None


def _check_line(index: int, line) -> str | None:
    if not isinstance(line, Mapping):
        return f"Line {index} must be an object"
    if _as_positive_int(_lookup(line, _PRODUCT_KEYS)) is None:
        return f"Line {index} has an invalid product id"
    if _as_positive_int(_lookup(line, _QUANTITY_KEYS)) is None:
        return f"Line {index} has an invalid quantity"
    price = _lookup(line, _PRICE_KEYS)
    if price is not None:
        unit_price = _as_decimal(price)
        if unit_price is None:
            return f"Line {index} has an invalid unit price"
        # 明細単価は NUMERIC(10, 2) に保存するので1セント未満は受け付けない
        if unit_price > 0 and unit_price != unit_price.quantize(CENTS):
            return f"Line {index} unit price has more than 2 decimal places"
    return None


def check_order_request(payload) -> str | None:
    """
    注文リクエストを検証し、却下理由を返す（問題なければ None）。

    チェック順:
        1. buyer_id / lines / total_amount が揃っていて lines が空でない
        2. buyer_id が正の整数
        3. total_amount が正の数
        4. 各明細の product_id・quantity が正の整数、unit_price が数値（正なら1セント単位）
           (unit_price が無い・0 以下なら後で現在価格に置き換える)
    """
    if not isinstance(payload, Mapping):
        return "Request body must be an object"

    buyer_id = _lookup(payload, _BUYER_KEYS)
    lines = _lookup(payload, _LINES_KEYS)
    total = _lookup(payload, _TOTAL_KEYS)
    if buyer_id is None or lines is None or total is None:
        return "buyer_id, lines and total_amount are required"
    if not isinstance(lines, list) or not lines:
        return "lines must be a non-empty list"

    if _as_positive_int(buyer_id) is None:
        return "buyer_id must be a positive integer"

    total_value = _as_decimal(total)
    if total_value is None or total_value <= 0:
        return "total_amount must be a positive number"

    for index, line in enumerate(lines):
        reason = _check_line(index, line)
        if reason:
            return reason
    return None


def parse_order_request(payload) -> OrderRequest:
    """検証してから型付きリクエストを組み立てる。失敗時は ValidationError。"""
    reason = check_order_request(payload)
    if reason:
        raise ValidationError(reason)

    lines = []
    for line in _lookup(payload, _LINES_KEYS):
        price = _lookup(line, _PRICE_KEYS)
        unit_price = _as_decimal(price) if price is not None else None
        if unit_price is not None and unit_price <= 0:
            unit_price = None
        lines.append(
            OrderRequestLine(
                product_id=_as_positive_int(_lookup(line, _PRODUCT_KEYS)),
                quantity=_as_positive_int(_lookup(line, _QUANTITY_KEYS)),
                unit_price=unit_price,
            )
        )

    return OrderRequest(
        buyer_id=_as_positive_int(_lookup(payload, _BUYER_KEYS)),
        lines=tuple(lines),
        total_amount=_as_decimal(_lookup(payload, _TOTAL_KEYS)),
    )
