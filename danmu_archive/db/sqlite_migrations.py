"""SQLite schema creation and versioning.

Uses IF NOT EXISTS for idempotent runs. The ``acfunlive`` table belongs to
the live recorder; it is only created here so lookups against a fresh
database find an empty table instead of failing.
"""
from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("danmu.db")

SCHEMA_VERSION = 1

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── 1. Recorder live table (start time as epoch milliseconds) ─────
CREATE TABLE IF NOT EXISTS acfunlive (
    liveId    TEXT PRIMARY KEY,
    startTime INTEGER NOT NULL
);

-- ── 2. Sender registry (current name + compact former names) ──────
CREATE TABLE IF NOT EXISTS senders (
    uid          INTEGER NOT NULL PRIMARY KEY,
    name         TEXT NOT NULL,
    former_names TEXT NOT NULL DEFAULT '',
    updated_at   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── 3. Danmaku rows ────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS danmaku (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    live_id    TEXT NOT NULL,
    start_time REAL NOT NULL,
    send_time  TEXT NOT NULL,
    uid        INTEGER NOT NULL,
    content    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_danmaku_live ON danmaku(live_id, start_time);
CREATE INDEX IF NOT EXISTS idx_danmaku_uid  ON danmaku(uid);

-- ── 4. Ingest state (last written source per live) ────────────────
CREATE TABLE IF NOT EXISTS ingest_state (
    live_id         TEXT PRIMARY KEY,
    file_path       TEXT NOT NULL,
    file_hash       TEXT NOT NULL,
    start_time      TEXT NOT NULL,
    persisted_count INTEGER DEFAULT 0,
    last_ingested   TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ingest_state_file ON ingest_state(file_path);
"""


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables. Idempotent."""
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
            current_version = row[0] if row and row[0] else 0
    except aiosqlite.Error:
        current_version = 0

    if current_version >= SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current_version})")
        return

    logger.info(f"Running migrations: {current_version} → {SCHEMA_VERSION}")

    await db.executescript(_TABLES)

    await db.execute(
        "INSERT INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info(f"Migrations complete, schema version {SCHEMA_VERSION}")
