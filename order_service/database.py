"""
Order Service — データベース接続

非同期エンジンとセッションファクトリを組み立てる。
グローバルなエンジンは持たず、create_app() やテストが明示的に生成して渡す。

SQLite (aiosqlite) の場合は pysqlite の自動トランザクション管理を無効にし、
トランザクション開始時に BEGIN IMMEDIATE を発行する。
これで書き込みトランザクションはDB単位で直列化され、
PostgreSQL の SELECT ... FOR UPDATE と同じ保証が得られる。
"""

import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .schema import metadata

logger = logging.getLogger(__name__)


def _install_sqlite_transaction_hooks(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    connect_args = {"timeout": 30} if database_url.startswith("sqlite") else {}
    engine = create_async_engine(database_url, echo=echo, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        _install_sqlite_transaction_hooks(engine)
    logger.info("Database engine created: dialect=%s", engine.dialect.name)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_schema(engine: AsyncEngine) -> None:
    """テーブルが無ければ作成する（ローカル起動・テスト用）。"""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
