"""
Order Service — コマンドハンドラ (Write 側)

注文の作成・ステータス更新・削除の3つのワークフロー。
どれも呼び出し側から渡された UnitOfWork の中で完結し、
成功か失敗（全ロールバック）のどちらかにしかならない。

注文作成の流れ:
    1. リクエストを検証（DB アクセスなし）
    2. 購入者・商品・在庫・合計金額を事前チェック（ロックなしの読み取り）
    3. トランザクション開始
    4. 商品行を商品ID昇順でロックし、在庫を読み直して減算
    5. 注文ヘッダと明細を INSERT
    6. コミット → 監査イベントを発行

事前チェックは早期に失敗させるための最適化にすぎない。
同時実行時の正しさはロック取得後の再チェックだけが保証する。
"""

import logging
from decimal import Decimal

from . import queries
from .audit import AuditSink, emit
from .errors import (
    BuyerNotFound,
    InsufficientStock,
    InvalidStatus,
    OrderCreationFailed,
    OrderNotFound,
    OrderServiceError,
    OrderUpdateFailed,
    ProductNotFound,
    TotalMismatch,
)
from .events import ORDER_CREATE, ORDER_DELETE, ORDER_UPDATE, AuditEvent
from .ledger import InventoryLedger
from .models import Order, OrderHeader, OrderLine, OrderStatus, Product
from .store import OrderStore
from .unit_of_work import UnitOfWork
from .validator import OrderRequest, parse_order_request

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_TOLERANCE = Decimal("0.01")
CENTS = Decimal("0.01")


def _audit_payload(payload) -> dict:
    return dict(payload) if isinstance(payload, dict) else {"body": payload}


def _requested_by_product(request: OrderRequest) -> dict[int, int]:
    """同じ商品を複数行で頼んだ場合は数量を合算する（リクエスト順を保持）。"""
    requested: dict[int, int] = {}
    for line in request.lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
    return requested


async def _precheck(
    uow: UnitOfWork,
    request: OrderRequest,
    requested: dict[int, int],
) -> dict[int, Product]:
    """購入者・商品の存在と在庫をロックなしで確認する。"""
    async with uow.read_session() as session:
        if await queries.get_buyer(session, request.buyer_id) is None:
            raise BuyerNotFound(request.buyer_id)

        catalog: dict[int, Product] = {}
        for product_id in requested:
            product = await queries.get_product(session, product_id)
            if product is None:
                raise ProductNotFound(product_id)
            catalog[product_id] = product

    for product_id, quantity in requested.items():
        available = catalog[product_id].stock
        if available < quantity:
            raise InsufficientStock(product_id, available, quantity)
    return catalog


def _price_lines(request: OrderRequest, catalog: dict[int, Product]) -> list[OrderLine]:
    # 単価が無い（0 以下だった）明細は商品の現在価格を使う
    return [
        OrderLine(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=line.unit_price if line.unit_price is not None else catalog[line.product_id].price,
        )
        for line in request.lines
    ]


async def _create_order(
    uow: UnitOfWork,
    payload,
    tolerance: Decimal,
    ledger: InventoryLedger,
    store: OrderStore,
) -> int:
    request = parse_order_request(payload)
    requested = _requested_by_product(request)
    catalog = await _precheck(uow, request, requested)

    lines = _price_lines(request, catalog)
    calculated = sum((line.subtotal for line in lines), Decimal("0"))
    if abs(calculated - request.total_amount) > tolerance:
        raise TotalMismatch(calculated, request.total_amount)

    async with uow:
        locked = await ledger.lock_many(uow, requested)
        for product_id in sorted(requested):
            stock, _ = locked[product_id]
            if stock < requested[product_id]:
                raise InsufficientStock(product_id, stock, requested[product_id])
            await ledger.decrement(uow, product_id, requested[product_id])

        header = OrderHeader(user_id=request.buyer_id, total_amount=calculated.quantize(CENTS))
        return await store.create(uow, header, lines)


async def place_order(
    uow: UnitOfWork,
    audit: AuditSink | None,
    payload,
    *,
    tolerance: Decimal = DEFAULT_TOTAL_TOLERANCE,
    ledger: InventoryLedger | None = None,
    store: OrderStore | None = None,
) -> int:
    """
    注文作成コマンド

    成功すると新しい注文IDを返す。失敗時は OrderServiceError のサブクラスを送出し、
    在庫・注文には一切の変更が残らない。
    """
    ledger = ledger or InventoryLedger()
    store = store or OrderStore()
    audit_payload = _audit_payload(payload)

    try:
        order_id = await _create_order(uow, payload, tolerance, ledger, store)
    except OrderServiceError as exc:
        logger.warning("Order rejected: %s: %s", exc.kind, exc.message)
        await emit(audit, AuditEvent.failed(ORDER_CREATE, audit_payload, exc.message))
        raise
    except Exception as exc:
        logger.exception("Order creation failed")
        await emit(audit, AuditEvent.failed(ORDER_CREATE, audit_payload, str(exc)))
        raise OrderCreationFailed(str(exc)) from exc

    logger.info("Order created: order_id=%s", order_id)
    await emit(audit, AuditEvent.success(ORDER_CREATE, audit_payload))
    return order_id


async def _restore_stock(uow: UnitOfWork, ledger: InventoryLedger, order: Order) -> None:
    """注文の明細数量を在庫に戻す（商品ID昇順でロック）。"""
    quantities = order.quantities_by_product()
    await ledger.lock_many(uow, quantities)
    for product_id in sorted(quantities):
        await ledger.restore(uow, product_id, quantities[product_id])


async def _change_status(
    uow: UnitOfWork,
    order_id: int,
    new_status: OrderStatus,
    ledger: InventoryLedger,
    store: OrderStore,
) -> None:
    async with uow:
        order = await store.lock(uow, order_id)
        if order is None:
            raise OrderNotFound(order_id)

        if order.status is OrderStatus.CANCELLED:
            if new_status is OrderStatus.CANCELLED:
                # 二重に在庫を戻さない
                logger.info("Order %s is already cancelled", order_id)
                return
            raise InvalidStatus(
                new_status.value,
                OrderStatus.values(),
                "Cancelled orders cannot change status",
            )

        if new_status is OrderStatus.CANCELLED and order.is_pending:
            await _restore_stock(uow, ledger, order)

        if not await store.update_status(uow, order_id, new_status):
            raise OrderUpdateFailed("Order status was not updated")


async def update_order_status(
    uow: UnitOfWork,
    audit: AuditSink | None,
    order_id: int,
    status,
    *,
    ledger: InventoryLedger | None = None,
    store: OrderStore | None = None,
) -> None:
    """
    注文ステータス更新コマンド

    pending → cancelled のときだけ在庫を戻す。
    すでに cancelled の注文を cancelled にする要求は在庫に触れず成功扱い。
    """
    ledger = ledger or InventoryLedger()
    store = store or OrderStore()
    audit_payload = {"order_id": order_id, "status": status}

    try:
        new_status = OrderStatus.parse(status)
        if new_status is None:
            raise InvalidStatus(status, OrderStatus.values())
        await _change_status(uow, order_id, new_status, ledger, store)
    except OrderServiceError as exc:
        logger.warning("Order update rejected: %s: %s", exc.kind, exc.message)
        await emit(audit, AuditEvent.failed(ORDER_UPDATE, audit_payload, exc.message))
        raise
    except Exception as exc:
        logger.exception("Order update failed: order_id=%s", order_id)
        await emit(audit, AuditEvent.failed(ORDER_UPDATE, audit_payload, str(exc)))
        raise OrderUpdateFailed(str(exc)) from exc

    logger.info("Order updated: order_id=%s status=%s", order_id, status)
    await emit(audit, AuditEvent.success(ORDER_UPDATE, audit_payload))


async def delete_order(
    uow: UnitOfWork,
    audit: AuditSink | None,
    order_id: int,
    *,
    ledger: InventoryLedger | None = None,
    store: OrderStore | None = None,
) -> None:
    """
    注文削除コマンド

    pending のまま削除する場合は先に在庫を戻す。
    """
    ledger = ledger or InventoryLedger()
    store = store or OrderStore()
    audit_payload = {"order_id": order_id}

    try:
        async with uow:
            order = await store.lock(uow, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            if order.is_pending:
                await _restore_stock(uow, ledger, order)
            if not await store.delete(uow, order_id):
                raise OrderNotFound(order_id)
    except OrderServiceError as exc:
        logger.warning("Order delete rejected: %s: %s", exc.kind, exc.message)
        await emit(audit, AuditEvent.failed(ORDER_DELETE, audit_payload, exc.message))
        raise
    except Exception as exc:
        logger.exception("Order delete failed: order_id=%s", order_id)
        await emit(audit, AuditEvent.failed(ORDER_DELETE, audit_payload, str(exc)))
        raise OrderUpdateFailed(str(exc)) from exc

    logger.info("Order deleted: order_id=%s", order_id)
    await emit(audit, AuditEvent.success(ORDER_DELETE, audit_payload))
