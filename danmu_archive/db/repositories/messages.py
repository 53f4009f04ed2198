"""SQLite implementation of MessageRepository."""
from __future__ import annotations

from datetime import datetime, timezone

import aiosqlite

SEND_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_INSERT_SQL = (
    "INSERT INTO danmaku (live_id, start_time, send_time, uid, content) "
    "VALUES (?, ?, ?, ?, ?)"
)


def format_send_time(value: datetime) -> str:
    """SQLite keeps send times as UTC ``YYYY-MM-DD HH:MM:SS`` strings."""
    return value.astimezone(timezone.utc).strftime(SEND_TIME_FORMAT)


class SqliteMessageInserter:
    """Reuses one cursor so the insert statement is compiled once."""

    def __init__(self, cursor: aiosqlite.Cursor):
        self.cursor = cursor

    async def insert(
        self, live_id: str, start_time: float, send_time: datetime, uid: int, content: str,
    ) -> None:
        await self.cursor.execute(
            _INSERT_SQL,
            (live_id, start_time, format_send_time(send_time), uid, content),
        )

    async def close(self) -> None:
        await self.cursor.close()


class SqliteMessageRepository:
    """Danmaku rows partitioned by live ID."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def purge(self, live_id: str) -> int:
        async with self.db.execute("DELETE FROM danmaku WHERE live_id = ?", (live_id,)) as cur:
            return max(cur.rowcount, 0)

    async def prepare_insert(self) -> SqliteMessageInserter:
        return SqliteMessageInserter(await self.db.cursor())

    async def list_for_live(self, live_id: str, offset: int = 0, limit: int = 500) -> list[dict]:
        async with self.db.execute(
            """SELECT id, live_id, start_time, send_time, uid, content
               FROM danmaku WHERE live_id = ?
               ORDER BY start_time, id LIMIT ? OFFSET ?""",
            (live_id, limit, offset),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def count_for_live(self, live_id: str) -> int:
        async with self.db.execute(
            "SELECT COUNT(*) FROM danmaku WHERE live_id = ?", (live_id,)
        ) as cur:
            row = await cur.fetchone()
        return row[0] if row else 0
