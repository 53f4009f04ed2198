"""PostgreSQL live lookups against the recorder's ``live`` table."""
from __future__ import annotations

from datetime import datetime, tzinfo

import asyncpg

from danmu_archive import config


class PostgresLiveRepository:
    """Start times stored as native TIMESTAMPTZ values."""

    def __init__(self, db: asyncpg.Connection, tz: tzinfo | None = None):
        self.db = db
        self.tz = tz or config.live_timezone()

    async def get_start_time(self, live_id: str) -> datetime | None:
        value = await self.db.fetchval('SELECT "startTime" FROM live WHERE "liveId" = $1', live_id)
        if value is None:
            return None
        return value.astimezone(self.tz)

    async def record_start_time(self, live_id: str, start_time: datetime) -> None:
        await self.db.execute(
            """INSERT INTO live ("liveId", "startTime") VALUES ($1, $2)
               ON CONFLICT ("liveId") DO UPDATE SET "startTime" = EXCLUDED."startTime"
            """,
            live_id, start_time,
        )
