"""SQLite live lookups against the recorder's ``acfunlive`` table."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo

import aiosqlite

from danmu_archive import config

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def epoch_ms_to_datetime(value: int, tz: tzinfo) -> datetime:
    return (_EPOCH + timedelta(milliseconds=int(value))).astimezone(tz)


def datetime_to_epoch_ms(value: datetime) -> int:
    return (value - _EPOCH) // timedelta(milliseconds=1)


class SqliteLiveRepository:
    """Start times stored as integer epoch milliseconds."""

    def __init__(self, db: aiosqlite.Connection, tz: tzinfo | None = None):
        self.db = db
        self.tz = tz or config.live_timezone()

    async def get_start_time(self, live_id: str) -> datetime | None:
        async with self.db.execute(
            "SELECT startTime FROM acfunlive WHERE liveId = ?", (live_id,)
        ) as cur:
            row = await cur.fetchone()
        if not row or row[0] is None:
            return None
        return epoch_ms_to_datetime(row[0], self.tz)

    async def record_start_time(self, live_id: str, start_time: datetime) -> None:
        await self.db.execute(
            """INSERT INTO acfunlive (liveId, startTime) VALUES (?, ?)
               ON CONFLICT(liveId) DO UPDATE SET startTime=excluded.startTime""",
            (live_id, datetime_to_epoch_ms(start_time)),
        )
        await self.db.commit()
