"""Repository package for database access."""

from .senders import SqliteSenderRegistry
from .messages import SqliteMessageRepository
from .lives import SqliteLiveRepository
from .ingest_state import SqliteIngestStateRepository
from .unit_of_work import SqliteUnitOfWork

__all__ = [
    "SqliteSenderRegistry",
    "SqliteMessageRepository",
    "SqliteLiveRepository",
    "SqliteIngestStateRepository",
    "SqliteUnitOfWork",
]
