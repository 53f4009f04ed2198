"""PostgreSQL transaction scope for the danmaku writer."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg

from danmu_archive.db.repositories.postgres.messages import PostgresMessageRepository
from danmu_archive.db.repositories.postgres.senders import PostgresSenderRegistry


class PostgresUnitOfWork:
    """One pooled connection, one transaction; nested transactions are savepoints.

    A failed statement aborts the whole Postgres transaction, so every
    per-item write must run inside ``savepoint()`` to stay recoverable.
    """

    item_errors = (asyncpg.PostgresError,)

    def __init__(self, db: Any):
        self.db = db
        self._conn: asyncpg.Connection | None = None
        self._tx: Any = None
        self._owns_conn = isinstance(db, asyncpg.Pool)

    async def __aenter__(self) -> "PostgresUnitOfWork":
        self._conn = await self.db.acquire() if self._owns_conn else self.db
        try:
            self._tx = self._conn.transaction()
            await self._tx.start()
        except BaseException:
            await self._release()
            raise
        self.senders = PostgresSenderRegistry(self._conn)
        self.messages = PostgresMessageRepository(self._conn)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                await self._tx.commit()
            else:
                await self._tx.rollback()
        finally:
            await self._release()
        return False

    async def _release(self) -> None:
        if self._owns_conn and self._conn is not None:
            await self.db.release(self._conn)
        self._conn = None

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self._conn.transaction():
            yield
