"""SQLite implementation of IngestStateRepository."""
from __future__ import annotations

import aiosqlite


class SqliteIngestStateRepository:
    """Track which source file, hash and start time last wrote each live."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_state(self, live_id: str) -> dict | None:
        async with self.db.execute(
            "SELECT * FROM ingest_state WHERE live_id = ?", (live_id,)
        ) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def upsert_state(self, state: dict) -> None:
        try:
            await self._upsert(state)
        except aiosqlite.Error:
            await self.db.rollback()
            raise
        await self.db.commit()

    async def _upsert(self, state: dict) -> None:
        await self.db.execute(
            """INSERT INTO ingest_state
                 (live_id, file_path, file_hash, start_time, persisted_count, last_ingested)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(live_id) DO UPDATE SET
                 file_path=excluded.file_path, file_hash=excluded.file_hash,
                 start_time=excluded.start_time, persisted_count=excluded.persisted_count,
                 last_ingested=excluded.last_ingested""",
            (
                state["live_id"], state["file_path"], state["file_hash"], state["start_time"],
                state.get("persisted_count", 0), state["last_ingested"],
            ),
        )
