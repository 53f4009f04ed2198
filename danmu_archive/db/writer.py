"""Transactional danmaku writer.

One call writes one recording inside a single transaction:

1. reconcile the sender registry (one current name per uid),
2. purge every stored row of the live,
3. insert the new rows.

Sender and row failures are logged, recorded and skipped inside their own
savepoint. Failing to begin, purge, prepare the insert or commit aborts
the transaction and propagates to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

from danmu_archive.db.factory import open_unit_of_work
from danmu_archive.db.repositories.base import CREATED, RENAMED
from danmu_archive.models import SkipReason
from danmu_archive.parsers.events import ChatRecord

logger = logging.getLogger("danmu.writer")

_VALUE_ERRORS = (OverflowError, ValueError, TypeError)


@dataclass
class WriteResult:
    live_id: str
    inserted: int = 0
    purged: int = 0
    senders_created: int = 0
    senders_renamed: int = 0
    skipped: list[SkipReason] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for s in self.skipped if s.kind == "insert_failed")


def collect_senders(records: Sequence[ChatRecord]) -> dict[int, str]:
    """Distinct senders of the batch; the last name seen in file order wins."""
    senders: dict[int, str] = {}
    for record in records:
        if record.is_anonymous:
            continue
        senders[record.sender_id] = record.sender_name
    return senders


async def write_danmaku(
    db: Any,
    live_id: str,
    records: Sequence[ChatRecord],
    base_time: datetime,
    *,
    now: datetime | None = None,
) -> WriteResult:
    """Replace the stored danmaku of ``live_id`` with ``records``.

    Anonymous records (uid 0) are never stored. ``now`` stamps sender
    registry changes and defaults to the current time.
    """
    eligible = [record for record in records if not record.is_anonymous]
    senders = collect_senders(eligible)
    stamp = now or datetime.now(base_time.tzinfo or timezone.utc)
    result = WriteResult(live_id=live_id)

    async with open_unit_of_work(db) as uow:
        item_errors = tuple(uow.item_errors) + _VALUE_ERRORS

        for uid, name in senders.items():
            try:
                async with uow.savepoint():
                    outcome = await uow.senders.reconcile(uid, name, stamp)
            except item_errors as exc:
                logger.error("Failed to reconcile sender uid=%s: %s", uid, exc)
                result.skipped.append(
                    SkipReason(kind="sender_failed", detail=f"uid={uid}: {exc}")
                )
                continue
            if outcome == CREATED:
                result.senders_created += 1
                logger.info("New sender uid=%s name=%s", uid, name)
            elif outcome == RENAMED:
                result.senders_renamed += 1
                logger.info("Sender uid=%s renamed to %s", uid, name)

        result.purged = await uow.messages.purge(live_id)
        if result.purged:
            logger.info("Purged %d stored danmaku for liveId=%s", result.purged, live_id)

        inserter = await uow.messages.prepare_insert()
        try:
            for record in eligible:
                try:
                    send_time = base_time + timedelta(seconds=record.offset_seconds)
                    async with uow.savepoint():
                        await inserter.insert(
                            live_id, record.offset_seconds, send_time,
                            record.sender_id, record.text,
                        )
                except item_errors as exc:
                    logger.error(
                        "Failed to insert danmaku uid=%s at %.2fs: %s",
                        record.sender_id, record.offset_seconds, exc,
                    )
                    result.skipped.append(
                        SkipReason(
                            kind="insert_failed",
                            detail=f"uid={record.sender_id} offset={record.offset_seconds}: {exc}",
                        )
                    )
                    continue
                result.inserted += 1
        finally:
            await inserter.close()

    logger.info("Wrote %d danmaku for liveId=%s", result.inserted, live_id)
    return result
