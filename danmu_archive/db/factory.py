"""Repository factory to abstract DB backend (SQLite vs Postgres)."""
from __future__ import annotations

from typing import Any
import aiosqlite

from danmu_archive.db.repositories import (
    SqliteIngestStateRepository,
    SqliteLiveRepository,
    SqliteMessageRepository,
    SqliteSenderRegistry,
    SqliteUnitOfWork,
)

def get_live_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteLiveRepository(db)
    from danmu_archive.db.repositories.postgres.lives import PostgresLiveRepository
    return PostgresLiveRepository(db)

def get_message_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteMessageRepository(db)
    from danmu_archive.db.repositories.postgres.messages import PostgresMessageRepository
    return PostgresMessageRepository(db)

def get_sender_registry(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteSenderRegistry(db)
    from danmu_archive.db.repositories.postgres.senders import PostgresSenderRegistry
    return PostgresSenderRegistry(db)

def get_ingest_state_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteIngestStateRepository(db)
    from danmu_archive.db.repositories.postgres.ingest_state import PostgresIngestStateRepository
    return PostgresIngestStateRepository(db)

def open_unit_of_work(db: Any):
    """Async context manager wrapping one all-or-nothing write transaction."""
    if isinstance(db, aiosqlite.Connection):
        return SqliteUnitOfWork(db)
    from danmu_archive.db.repositories.postgres.unit_of_work import PostgresUnitOfWork
    return PostgresUnitOfWork(db)

def db_errors(db: Any) -> tuple[type[BaseException], ...]:
    """Driver exception classes raised by statements on ``db``."""
    if isinstance(db, aiosqlite.Connection):
        return (aiosqlite.Error,)
    import asyncpg
    return (asyncpg.PostgresError, asyncpg.InterfaceError)
