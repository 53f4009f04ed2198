"""Recording ingest pipeline: scan -> parse -> resolve start time -> write."""
from __future__ import annotations

import hashlib
import logging
import time
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from danmu_archive.db.factory import db_errors, get_ingest_state_repository, get_live_repository
from danmu_archive.db.writer import write_danmaku
from danmu_archive.live_start import StartTimeSource, StartTimeUnresolved, default_sources, resolve_start_time
from danmu_archive.models import IngestResult
from danmu_archive.observability import record_ingestion, record_skips, start_span
from danmu_archive.parsers.ass_scanner import extract_live_id
from danmu_archive.parsers.events import parse_events

logger = logging.getLogger("danmu.ingest")


def _file_hash(path: Path) -> str:
    """Compute a fast hash of file content for change detection."""
    h = hashlib.md5()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 16), b""):
            h.update(chunk)
    return h.hexdigest()


def _is_current(state: dict | None, path: Path, digest: str, start_time: datetime) -> bool:
    """True when the live's stored rows came from this exact file and start time."""
    if not state:
        return False
    if state["file_path"] != str(path) or state["file_hash"] != digest:
        return False
    try:
        return datetime.fromisoformat(state["start_time"]) == start_time
    except (TypeError, ValueError):
        return False


def _finish(result: IngestResult, t0: float) -> IngestResult:
    duration_ms = (time.monotonic() - t0) * 1000
    record_ingestion(result.status, duration_ms, persisted=result.persistedCount)
    for kind, count in Counter(s.kind for s in result.skipped).items():
        record_skips(kind, count)
    log = logger.info if result.succeeded else logger.warning
    log(
        "Ingest %s [%s] liveId=%s parsed=%d persisted=%d skipped=%d (%.0f ms)",
        result.sourceFile,
        result.status,
        result.liveId or "-",
        result.parsedCount,
        result.persistedCount,
        len(result.skipped),
        duration_ms,
    )
    return result


async def ingest_file(
    path: Path | str,
    db: Any,
    *,
    force: bool = False,
    sources: Sequence[StartTimeSource] | None = None,
) -> IngestResult:
    """Ingest one finished recording and report what happened.

    File-open errors propagate. Every other outcome, including a failed
    write transaction, is reported through ``IngestResult.status``.
    ``sources`` overrides the default start-time fallback chain.
    """
    path = Path(path)
    result = IngestResult(sourceFile=str(path))
    t0 = time.monotonic()

    with start_span("danmu.ingest", {"danmu.file": str(path)}):
        live_id = extract_live_id(path)
        if not live_id:
            logger.error("No LiveID comment in %s", path)
            result.status = "no_live_id"
            return _finish(result, t0)
        result.liveId = live_id

        parsed = parse_events(path)
        result.skipped.extend(parsed.skipped)
        result.parsedCount = len(parsed.records)
        result.anonymousCount = sum(1 for r in parsed.records if r.is_anonymous)
        if not parsed.records:
            logger.warning("No danmaku events in %s", path)
            result.status = "no_records"
            return _finish(result, t0)

        chain = list(sources) if sources is not None else default_sources(get_live_repository(db), live_id, path)
        try:
            lookup = await resolve_start_time(live_id, chain)
        except StartTimeUnresolved as exc:
            logger.error("%s", exc)
            result.status = "no_start_time"
            result.error = str(exc)
            return _finish(result, t0)
        result.startTime = lookup.value.isoformat()
        result.startTimeSource = lookup.source

        state_repo = get_ingest_state_repository(db)
        digest = _file_hash(path)
        if not force:
            state = await state_repo.get_state(live_id)
            if _is_current(state, path, digest, lookup.value):
                logger.info("Skipping unchanged recording %s (liveId=%s)", path, live_id)
                result.status = "unchanged"
                result.persistedCount = state.get("persisted_count") or 0
                return _finish(result, t0)

        try:
            written = await write_danmaku(db, live_id, parsed.records, lookup.value)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Danmaku write failed for liveId=%s", live_id)
            result.status = "failed"
            result.error = f"{type(exc).__name__}: {exc}"
            return _finish(result, t0)

        result.persistedCount = written.inserted
        result.failedCount = written.failed
        result.sendersCreated = written.senders_created
        result.sendersRenamed = written.senders_renamed
        result.skipped.extend(written.skipped)
        result.status = "ok"

        try:
            await state_repo.upsert_state({
                "live_id": live_id,
                "file_path": str(path),
                "file_hash": digest,
                "start_time": lookup.value.isoformat(),
                "persisted_count": written.inserted,
                "last_ingested": datetime.now(timezone.utc).isoformat(),
            })
        except db_errors(db) as exc:
            # Danmaku are already committed at this point.
            logger.error("Failed to record ingest state for liveId=%s: %s", live_id, exc)
        return _finish(result, t0)
