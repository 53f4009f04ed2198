"""PostgreSQL implementation of IngestStateRepository."""
from __future__ import annotations

from datetime import datetime

import asyncpg


class PostgresIngestStateRepository:
    def __init__(self, db: asyncpg.Connection):
        self.db = db

    async def get_state(self, live_id: str) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM ingest_state WHERE live_id = $1", live_id)
        if not row:
            return None
        state = dict(row)
        state["start_time"] = row["start_time"].isoformat()
        state["last_ingested"] = row["last_ingested"].isoformat()
        return state

    async def upsert_state(self, state: dict) -> None:
        await self.db.execute(
            """INSERT INTO ingest_state
                 (live_id, file_path, file_hash, start_time, persisted_count, last_ingested)
               VALUES ($1, $2, $3, $4, $5, $6)
               ON CONFLICT(live_id) DO UPDATE SET
                 file_path=EXCLUDED.file_path, file_hash=EXCLUDED.file_hash,
                 start_time=EXCLUDED.start_time, persisted_count=EXCLUDED.persisted_count,
                 last_ingested=EXCLUDED.last_ingested""",
            state["live_id"], state["file_path"], state["file_hash"],
            datetime.fromisoformat(state["start_time"]),
            state.get("persisted_count", 0),
            datetime.fromisoformat(state["last_ingested"]),
        )
