"""Resolve the absolute start time of a recorded live.

Sources are tried in order and the first hit wins:

1. the live table of the configured store (authoritative when present),
2. a ``; LiveStartTime:`` comment near the top of the recording.

Each source reports ``found``, ``not_found`` or ``error``. Only when every
source comes back empty is resolution considered failed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from itertools import islice
from pathlib import Path
from typing import Any, Protocol, Sequence

from danmu_archive import config
from danmu_archive.parsers.ass_scanner import LIVE_START_TIME_KEY, open_recording, parse_comment_field

logger = logging.getLogger("danmu.live_start")

LIVE_START_FORMATS = ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S")

FOUND = "found"
NOT_FOUND = "not_found"
ERROR = "error"


@dataclass
class StartTimeLookup:
    source: str
    status: str
    value: datetime | None = None
    detail: str = ""


class StartTimeUnresolved(RuntimeError):
    """No source could provide a start time for the live."""

    def __init__(self, live_id: str, attempts: Sequence[StartTimeLookup]):
        self.live_id = live_id
        self.attempts = list(attempts)
        summary = "; ".join(f"{a.source}={a.status}" + (f" ({a.detail})" if a.detail else "") for a in self.attempts)
        super().__init__(f"cannot resolve start time for live {live_id}: {summary or 'no sources'}")


class StartTimeSource(Protocol):
    name: str

    async def lookup(self) -> StartTimeLookup: ...


def parse_live_start_time(value: str, tz: tzinfo) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS[.fff]`` as a civil time already in ``tz``."""
    token = value.strip()
    for fmt in LIVE_START_FORMATS:
        try:
            naive = datetime.strptime(token, fmt)
        except ValueError:
            continue
        return naive.replace(tzinfo=tz)
    raise ValueError(f"unrecognized LiveStartTime: {value!r}")


class LiveTableStartTime:
    """Start time recorded by the live recorder in the store."""

    name = "live_table"

    def __init__(self, live_repo: Any, live_id: str):
        self.live_repo = live_repo
        self.live_id = live_id

    async def lookup(self) -> StartTimeLookup:
        try:
            value = await self.live_repo.get_start_time(self.live_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Live table lookup failed for liveId=%s: %s", self.live_id, exc)
            return StartTimeLookup(self.name, ERROR, detail=str(exc))
        if value is None:
            logger.warning("No live record for liveId=%s, trying other sources", self.live_id)
            return StartTimeLookup(self.name, NOT_FOUND)
        return StartTimeLookup(self.name, FOUND, value=value)


class AssCommentStartTime:
    """``; LiveStartTime:`` comment within the first lines of the recording."""

    name = "ass_comment"

    def __init__(self, path: Path | str, tz: tzinfo | None = None, max_lines: int | None = None):
        self.path = Path(path)
        self.tz = tz or config.live_timezone()
        self.max_lines = config.START_TIME_SCAN_LINES if max_lines is None else max_lines

    async def lookup(self) -> StartTimeLookup:
        with open_recording(self.path) as handle:
            for line in islice(handle, self.max_lines):
                raw = parse_comment_field(line, LIVE_START_TIME_KEY, whole_value=True)
                if raw is None:
                    continue
                try:
                    value = parse_live_start_time(raw, self.tz)
                except ValueError as exc:
                    logger.error("Cannot parse LiveStartTime in %s: %s", self.path, exc)
                    return StartTimeLookup(self.name, ERROR, detail=str(exc))
                return StartTimeLookup(self.name, FOUND, value=value)
        return StartTimeLookup(self.name, NOT_FOUND)


async def resolve_start_time(live_id: str, sources: Sequence[StartTimeSource]) -> StartTimeLookup:
    """Return the first ``found`` lookup, raising ``StartTimeUnresolved`` otherwise."""
    attempts: list[StartTimeLookup] = []
    for source in sources:
        outcome = await source.lookup()
        attempts.append(outcome)
        if outcome.status == FOUND:
            logger.info(
                "Resolved start time for liveId=%s from %s: %s",
                live_id,
                outcome.source,
                outcome.value.isoformat() if outcome.value else "",
            )
            return outcome
    raise StartTimeUnresolved(live_id, attempts)


def default_sources(live_repo: Any, live_id: str, path: Path | str) -> list[StartTimeSource]:
    return [LiveTableStartTime(live_repo, live_id), AssCommentStartTime(path)]
