"""PostgreSQL implementation of MessageRepository."""
from __future__ import annotations

from datetime import datetime

import asyncpg

_INSERT_SQL = """
    INSERT INTO danmaku (live_id, start_time, send_time, uid, content)
    VALUES ($1, $2, $3, $4, $5)
    RETURNING id
"""


def _affected_rows(status: str) -> int:
    # asyncpg returns the command tag, e.g. "DELETE 42"
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgresMessageInserter:
    def __init__(self, statement: asyncpg.prepared_stmt.PreparedStatement):
        self.statement = statement

    async def insert(
        self, live_id: str, start_time: float, send_time: datetime, uid: int, content: str,
    ) -> None:
        await self.statement.fetchval(live_id, start_time, send_time, uid, content)

    async def close(self) -> None:
        # Prepared statements are released with their connection.
        return None


class PostgresMessageRepository:
    """Danmaku rows with native TIMESTAMPTZ send times."""

    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def purge(self, live_id: str) -> int:
        status = await self.db.execute("DELETE FROM danmaku WHERE live_id = $1", live_id)
        return _affected_rows(status)

    async def prepare_insert(self) -> PostgresMessageInserter:
        return PostgresMessageInserter(await self.db.prepare(_INSERT_SQL))

    async def list_for_live(self, live_id: str, offset: int = 0, limit: int = 500) -> list[dict]:
        rows = await self.db.fetch(
            """SELECT id, live_id, start_time, send_time, uid, content
               FROM danmaku WHERE live_id = $1
               ORDER BY start_time, id LIMIT $2 OFFSET $3""",
            live_id, limit, offset,
        )
        items = []
        for r in rows:
            item = dict(r)
            item["send_time"] = r["send_time"].isoformat()
            items.append(item)
        return items

    async def count_for_live(self, live_id: str) -> int:
        val = await self.db.fetchval("SELECT COUNT(*) FROM danmaku WHERE live_id = $1", live_id)
        return val or 0
