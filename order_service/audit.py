"""
Order Service — 監査シンク

操作の結果を書き込み専用のシンクに流す。
コミット／ロールバックの後に呼ばれ、配信に失敗しても操作の結果は変わらない。

    RedisAuditSink     Redis Pub/Sub に JSON を publish
    SqlAuditSink       transaction_logs テーブルに INSERT（専用セッション）
    CompositeAuditSink 複数シンクへ順に配信
"""

import json
import logging
from typing import Protocol

import redis.asyncio as aioredis
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .events import AuditEvent
from .schema import transaction_logs

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    async def record(self, event: AuditEvent) -> None: ...


class RedisAuditSink:
    def __init__(self, redis: aioredis.Redis, channel: str = "order_audit") -> None:
        self.redis = redis
        self.channel = channel

    async def record(self, event: AuditEvent) -> None:
        await self.redis.publish(
            self.channel,
            json.dumps(
                {
                    "event_type": event.operation_type,
                    "data": event.model_dump(),
                },
                default=str,
            ),
        )


class SqlAuditSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, event: AuditEvent) -> None:
        async with self._session_factory() as session:
            await session.execute(
                insert(transaction_logs).values(
                    type=event.operation_type,
                    data=json.dumps(event.request_payload, default=str),
                    status=event.outcome,
                    error_message=event.failure_reason,
                    timestamp=event.timestamp,
                )
            )
            await session.commit()


class CompositeAuditSink:
    def __init__(self, *sinks: AuditSink) -> None:
        self.sinks = list(sinks)

    async def record(self, event: AuditEvent) -> None:
        for sink in self.sinks:
            await emit(sink, event)


async def emit(sink: AuditSink | None, event: AuditEvent) -> None:
    """ベストエフォートで配信する。失敗はログに残して握りつぶす。"""
    if sink is None:
        return
    try:
        await sink.record(event)
    except Exception:
        logger.exception(
            "Failed to deliver audit event: %s (%s)", event.operation_type, event.outcome
        )
