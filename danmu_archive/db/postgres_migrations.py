"""PostgreSQL schema creation and versioning.

The ``live`` table is owned by the live recorder and only created here when
missing. ``sender_names`` keeps one row per naming interval; the partial
unique index allows a single open interval per sender.
"""
from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger("danmu.db")

SCHEMA_VERSION = 1

_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS live (
    "liveId"    TEXT PRIMARY KEY,
    "startTime" TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS senders (
    uid          BIGINT PRIMARY KEY,
    name         TEXT NOT NULL,
    former_names TEXT NOT NULL DEFAULT '',
    updated_at   TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS sender_names (
    id         BIGSERIAL PRIMARY KEY,
    uid        BIGINT NOT NULL REFERENCES senders(uid) ON DELETE CASCADE,
    name       TEXT NOT NULL,
    start_date TIMESTAMPTZ NOT NULL,
    end_date   TIMESTAMPTZ
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_sender_names_current
    ON sender_names(uid) WHERE end_date IS NULL;
CREATE INDEX IF NOT EXISTS idx_sender_names_uid ON sender_names(uid, start_date);

CREATE TABLE IF NOT EXISTS danmaku (
    id         BIGSERIAL PRIMARY KEY,
    live_id    TEXT NOT NULL,
    start_time DOUBLE PRECISION NOT NULL,
    send_time  TIMESTAMPTZ NOT NULL,
    uid        BIGINT NOT NULL,
    content    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_danmaku_live ON danmaku(live_id, start_time);
CREATE INDEX IF NOT EXISTS idx_danmaku_uid  ON danmaku(uid);

CREATE TABLE IF NOT EXISTS ingest_state (
    live_id         TEXT PRIMARY KEY,
    file_path       TEXT NOT NULL,
    file_hash       TEXT NOT NULL,
    start_time      TIMESTAMPTZ NOT NULL,
    persisted_count INTEGER DEFAULT 0,
    last_ingested   TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ingest_state_file ON ingest_state(file_path);
"""


async def run_migrations(pool: asyncpg.Pool) -> None:
    """Create all tables. Idempotent."""
    async with pool.acquire() as conn:
        try:
            current_version = await conn.fetchval("SELECT MAX(version) FROM schema_version") or 0
        except asyncpg.UndefinedTableError:
            current_version = 0

        if current_version >= SCHEMA_VERSION:
            logger.info(f"Schema is up to date (version {current_version})")
            return

        logger.info(f"Running migrations: {current_version} → {SCHEMA_VERSION}")
        async with conn.transaction():
            await conn.execute(_TABLES)
            await conn.execute("INSERT INTO schema_version (version) VALUES ($1)", SCHEMA_VERSION)
        logger.info(f"Migrations complete, schema version {SCHEMA_VERSION}")
