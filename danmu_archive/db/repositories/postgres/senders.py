"""PostgreSQL sender registry with a full naming-interval log."""
from __future__ import annotations

from datetime import datetime

import asyncpg

from danmu_archive import config
from danmu_archive.db.repositories.base import CREATED, RENAMED, UNCHANGED
from danmu_archive.db.repositories.senders import push_former_name, split_former_names


class PostgresSenderRegistry:
    """Current name in ``senders``, every naming interval in ``sender_names``.

    A rename closes the open interval and opens a new one stamped with the
    same ``now``, so at most one interval per uid has ``end_date IS NULL``.
    """

    def __init__(self, db: asyncpg.Connection, former_names_limit: int | None = None):
        self.db = db
        self.former_names_limit = (
            config.FORMER_NAMES_LIMIT if former_names_limit is None else former_names_limit
        )

    async def reconcile(self, uid: int, name: str, now: datetime) -> str:
        row = await self.db.fetchrow(
            "SELECT name, former_names FROM senders WHERE uid = $1", uid
        )
        if row is None:
            await self.db.execute(
                "INSERT INTO senders (uid, name, former_names, updated_at) VALUES ($1, $2, '', $3)",
                uid, name, now,
            )
            await self.db.execute(
                "INSERT INTO sender_names (uid, name, start_date, end_date) VALUES ($1, $2, $3, NULL)",
                uid, name, now,
            )
            return CREATED

        if row["name"] == name:
            return UNCHANGED

        await self.db.execute(
            "UPDATE senders SET name = $2, former_names = $3, updated_at = $4 WHERE uid = $1",
            uid, name,
            push_former_name(row["former_names"], row["name"], self.former_names_limit),
            now,
        )
        await self.db.execute(
            "UPDATE sender_names SET end_date = $2 WHERE uid = $1 AND end_date IS NULL",
            uid, now,
        )
        await self.db.execute(
            "INSERT INTO sender_names (uid, name, start_date, end_date) VALUES ($1, $2, $3, NULL)",
            uid, name, now,
        )
        return RENAMED

    async def get(self, uid: int) -> dict | None:
        row = await self.db.fetchrow(
            "SELECT uid, name, former_names FROM senders WHERE uid = $1", uid
        )
        if not row:
            return None
        intervals = await self.db.fetch(
            """SELECT name, start_date, end_date FROM sender_names
               WHERE uid = $1 ORDER BY start_date, id""",
            uid,
        )
        return {
            "uid": row["uid"],
            "name": row["name"],
            "former_names": split_former_names(row["former_names"]),
            "history": [
                {
                    "name": r["name"],
                    "start_date": r["start_date"].isoformat(),
                    "end_date": r["end_date"].isoformat() if r["end_date"] else None,
                }
                for r in intervals
            ],
        }
