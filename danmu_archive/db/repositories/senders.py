"""SQLite sender registry: current name plus a compact former-name list."""
from __future__ import annotations

from datetime import datetime

import aiosqlite

from danmu_archive import config
from danmu_archive.db.repositories.base import CREATED, RENAMED, UNCHANGED


def split_former_names(value: str | None) -> list[str]:
    return [name for name in (value or "").split(",") if name]


def push_former_name(former_names: str | None, previous: str, limit: int) -> str:
    """Prepend ``previous`` to a comma-joined former-name list, newest first.

    Names cannot contain commas since they come from a comma-delimited
    event field.
    """
    names = [previous] + [name for name in split_former_names(former_names) if name != previous]
    if limit > 0:
        names = names[:limit]
    return ",".join(names)


class SqliteSenderRegistry:
    """Sender identities with the current name and a bounded former-name list."""

    def __init__(self, db: aiosqlite.Connection, former_names_limit: int | None = None):
        self.db = db
        self.former_names_limit = (
            config.FORMER_NAMES_LIMIT if former_names_limit is None else former_names_limit
        )

    async def reconcile(self, uid: int, name: str, now: datetime) -> str:
        stamp = now.isoformat()
        async with self.db.execute(
            "SELECT name, former_names FROM senders WHERE uid = ?", (uid,)
        ) as cur:
            row = await cur.fetchone()

        if row is None:
            await self.db.execute(
                "INSERT INTO senders (uid, name, former_names, updated_at) VALUES (?, ?, '', ?)",
                (uid, name, stamp),
            )
            return CREATED

        current_name, former_names = row[0], row[1]
        if current_name == name:
            return UNCHANGED

        await self.db.execute(
            "UPDATE senders SET name = ?, former_names = ?, updated_at = ? WHERE uid = ?",
            (name, push_former_name(former_names, current_name, self.former_names_limit), stamp, uid),
        )
        return RENAMED

    async def get(self, uid: int) -> dict | None:
        async with self.db.execute(
            "SELECT uid, name, former_names FROM senders WHERE uid = ?", (uid,)
        ) as cur:
            row = await cur.fetchone()
        if not row:
            return None
        return {
            "uid": row[0],
            "name": row[1],
            "former_names": split_former_names(row[2]),
            "history": [],
        }
