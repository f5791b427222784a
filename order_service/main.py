"""
Order Service — FastAPI エントリーポイント

注文ワークフローを HTTP で公開する。
ワークフローが送出するエラーの種類を HTTP ステータスに変換するのはこの層だけ。

    400  ValidationError / InvalidStatus
    404  BuyerNotFound / ProductNotFound / OrderNotFound
    409  InsufficientStock / TotalMismatch / StockUnderflow
    500  OrderCreationFailed / OrderUpdateFailed / その他
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as aioredis
import uvicorn
from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import commands, queries
from .audit import AuditSink, CompositeAuditSink, RedisAuditSink, SqlAuditSink
from .config import Settings
from .database import create_engine, create_session_factory, init_schema
from .errors import (
    BuyerNotFound,
    InsufficientStock,
    InvalidStatus,
    OrderNotFound,
    OrderServiceError,
    ProductNotFound,
    StockUnderflow,
    TotalMismatch,
    ValidationError,
)
from .store import OrderStore
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    InvalidStatus: 400,
    BuyerNotFound: 404,
    ProductNotFound: 404,
    OrderNotFound: 404,
    InsufficientStock: 409,
    TotalMismatch: 409,
    StockUnderflow: 409,
}


def status_code_for(exc: OrderServiceError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


# ── Request Models ───────────────────────────────

class UpdateStatusRequest(BaseModel):
    status: str


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    audit: AuditSink | None = None,
) -> FastAPI:
    """
    アプリケーションを組み立てる。

    session_factory を渡した場合（テスト）は lifespan で接続を作らない。
    渡さない場合は起動時に Settings（省略時は環境変数）から DB と Redis に接続する。
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.session_factory is not None:
            yield
            return

        conf = settings or Settings.from_env()
        logging.basicConfig(level=conf.log_level.upper())
        engine = create_engine(conf.database_url, echo=conf.sql_echo)
        await init_schema(engine)
        factory = create_session_factory(engine)
        redis_pool = aioredis.from_url(conf.redis_url, decode_responses=True)

        sinks: list[AuditSink] = [RedisAuditSink(redis_pool, conf.audit_channel)]
        if conf.audit_to_database:
            sinks.append(SqlAuditSink(factory))

        app.state.session_factory = factory
        app.state.audit = CompositeAuditSink(*sinks)
        app.state.tolerance = conf.total_tolerance
        try:
            yield
        finally:
            await redis_pool.aclose()
            await engine.dispose()

    app = FastAPI(title="Order Service", lifespan=lifespan)
    app.state.session_factory = session_factory
    app.state.audit = audit
    app.state.tolerance = settings.total_tolerance if settings else commands.DEFAULT_TOTAL_TOLERANCE

    @app.exception_handler(OrderServiceError)
    async def handle_order_error(request: Request, exc: OrderServiceError):
        return JSONResponse(
            status_code=status_code_for(exc),
            content={"error": exc.kind, "message": exc.message, **exc.details()},
        )

    def _uow() -> UnitOfWork:
        return UnitOfWork(app.state.session_factory)

    # ── Command Endpoints ────────────────────────────

    @app.post("/orders", status_code=201)
    async def cmd_place_order(payload: Any = Body(...)):
        """注文作成コマンド"""
        order_id = await commands.place_order(
            _uow(), app.state.audit, payload, tolerance=app.state.tolerance
        )
        return {"message": "Order created successfully", "order_id": order_id}

    @app.put("/orders/{order_id}")
    async def cmd_update_order(order_id: int, req: UpdateStatusRequest):
        """注文ステータス更新コマンド"""
        await commands.update_order_status(_uow(), app.state.audit, order_id, req.status)
        return {"message": "Order updated successfully"}

    @app.delete("/orders/{order_id}")
    async def cmd_delete_order(order_id: int):
        """注文削除コマンド"""
        await commands.delete_order(_uow(), app.state.audit, order_id)
        return {"message": "Order deleted successfully"}

    # ── Query Endpoints ──────────────────────────────

    @app.get("/orders")
    async def query_list_orders():
        async with app.state.session_factory() as session:
            return await queries.list_orders(session)

    @app.get("/orders/stats")
    async def query_order_stats():
        async with app.state.session_factory() as session:
            return await queries.order_stats(session)

    @app.get("/orders/{order_id}")
    async def query_get_order(order_id: int):
        async with app.state.session_factory() as session:
            order = await OrderStore().get_by_id(session, order_id)
        if order is None:
            raise HTTPException(404, "Order not found")
        return order.to_dict()

    @app.get("/buyers/{user_id}/orders")
    async def query_buyer_orders(user_id: int):
        async with app.state.session_factory() as session:
            return await queries.list_buyer_orders(session, user_id)

    @app.get("/logs")
    async def query_recent_logs(limit: int = Query(100, ge=1, le=1000)):
        async with app.state.session_factory() as session:
            return await queries.recent_logs(session, limit)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "order-service"}

    return app


app = create_app()


def run() -> None:
    uvicorn.run(
        "order_service.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )
