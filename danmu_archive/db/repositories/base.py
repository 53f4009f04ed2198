"""Repository protocols shared by the SQLite and Postgres backends."""
from __future__ import annotations

from datetime import datetime
from typing import Any, AsyncContextManager, Protocol, runtime_checkable

CREATED = "created"
RENAMED = "renamed"
UNCHANGED = "unchanged"


@runtime_checkable
class SenderRegistry(Protocol):
    """Registry of chat senders keyed by uid, one current name each."""

    async def reconcile(self, uid: int, name: str, now: datetime) -> str:
        """Register ``name`` as the current name of ``uid``.

        Returns ``CREATED``, ``RENAMED`` or ``UNCHANGED``.
        """
        ...

    async def get(self, uid: int) -> dict | None: ...


@runtime_checkable
class MessageInserter(Protocol):
    async def insert(
        self, live_id: str, start_time: float, send_time: datetime, uid: int, content: str,
    ) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class MessageRepository(Protocol):
    async def purge(self, live_id: str) -> int: ...

    async def prepare_insert(self) -> MessageInserter: ...

    async def list_for_live(self, live_id: str, offset: int = 0, limit: int = 500) -> list[dict]: ...

    async def count_for_live(self, live_id: str) -> int: ...


@runtime_checkable
class LiveRepository(Protocol):
    async def get_start_time(self, live_id: str) -> datetime | None: ...

    async def record_start_time(self, live_id: str, start_time: datetime) -> None: ...


@runtime_checkable
class IngestStateRepository(Protocol):
    async def get_state(self, live_id: str) -> dict | None: ...

    async def upsert_state(self, state: dict) -> None: ...


@runtime_checkable
class UnitOfWork(Protocol):
    """One database transaction exposing the repositories the writer needs."""

    senders: SenderRegistry
    messages: MessageRepository
    item_errors: tuple[type[BaseException], ...]

    def savepoint(self) -> AsyncContextManager[Any]:
        """Scope whose failure rolls back only its own statements."""
        ...
