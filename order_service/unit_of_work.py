"""
Order Service — Unit of Work

1リクエスト = 1つの UnitOfWork。グローバルなトランザクションは持たない。

    uow = UnitOfWork(session_factory)
    async with uow:
        ...              # 正常終了で commit、例外でロールバック

事前チェック用の読み取りは read_session() で別セッションを開き、
トランザクション開始前に閉じる。
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import NoActiveTransaction

logger = logging.getLogger(__name__)


class UnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

    @property
    def active(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> AsyncSession:
        """アクティブなトランザクションのセッション。外から呼ぶと NoActiveTransaction。"""
        if self._session is None:
            raise NoActiveTransaction("No active unit of work")
        return self._session

    def read_session(self) -> AsyncSession:
        """トランザクション外の短命な読み取りセッション（async with で使う）。"""
        return self._session_factory()

    async def __aenter__(self) -> "UnitOfWork":
        if self._session is not None:
            raise RuntimeError("Unit of work is already active")
        session = self._session_factory()
        try:
            await session.begin()
        except BaseException:
            await session.close()
            raise
        self._session = session
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        session, self._session = self._session, None
        try:
            if exc_type is None:
                await session.commit()
            else:
                await session.rollback()
                logger.debug("Unit of work rolled back: %s", exc_type.__name__)
        finally:
            await session.close()
