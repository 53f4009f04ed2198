"""SQLite transaction scope for the danmaku writer."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from danmu_archive.db.repositories.messages import SqliteMessageRepository
from danmu_archive.db.repositories.senders import SqliteSenderRegistry


class SqliteUnitOfWork:
    """Explicit BEGIN ... COMMIT with SAVEPOINT scopes for per-item work."""

    item_errors = (aiosqlite.Error,)

    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self.senders = SqliteSenderRegistry(db)
        self.messages = SqliteMessageRepository(db)
        self._savepoints = 0

    async def __aenter__(self) -> "SqliteUnitOfWork":
        await self.db.execute("BEGIN")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            await self.db.rollback()
            return False
        try:
            await self.db.commit()
        except BaseException:
            await self.db.rollback()
            raise
        return False

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        self._savepoints += 1
        name = f"item_{self._savepoints}"
        await self.db.execute(f"SAVEPOINT {name}")
        try:
            yield
        except BaseException:
            await self.db.execute(f"ROLLBACK TO SAVEPOINT {name}")
            await self.db.execute(f"RELEASE SAVEPOINT {name}")
            raise
        await self.db.execute(f"RELEASE SAVEPOINT {name}")
