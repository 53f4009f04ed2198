"""Parse ``[Events]`` Dialogue lines into chat records."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from danmu_archive.models import SkipReason
from danmu_archive.parsers.ass_scanner import EVENTS_SECTION, iter_section, open_recording
from danmu_archive.parsers.timecodes import TimecodeError, timecode_to_seconds

logger = logging.getLogger("danmu.parser")

DIALOGUE_PREFIX = "Dialogue:"
EVENT_FIELD_COUNT = 10
START_FIELD = 1
NAME_FIELD = 4
TEXT_FIELD = 9
ANONYMOUS_UID = 0
_MAX_UID = 2**63 - 1


@dataclass(frozen=True)
class ChatRecord:
    offset_seconds: float
    sender_name: str
    sender_id: int
    text: str

    @property
    def is_anonymous(self) -> bool:
        return self.sender_id == ANONYMOUS_UID


@dataclass
class EventParseResult:
    records: list[ChatRecord] = field(default_factory=list)
    skipped: list[SkipReason] = field(default_factory=list)


def split_event_fields(line: str) -> list[str] | None:
    """Split a Dialogue line into its ten fields.

    The text field is last and may itself contain commas, so the split is
    capped and the final field keeps the remainder. Returns ``None`` for
    non-Dialogue lines and lines with too few fields.
    """
    if not line.startswith(DIALOGUE_PREFIX):
        return None
    fields = line[len(DIALOGUE_PREFIX):].split(",", EVENT_FIELD_COUNT - 1)
    if len(fields) < EVENT_FIELD_COUNT:
        return None
    return fields


def parse_identity(raw: str) -> tuple[str, int]:
    """``"Alice (12345)"`` -> ``("Alice", 12345)``; no numeric suffix -> uid 0."""
    token = raw.strip()
    if token.endswith(")"):
        open_idx = token.rfind("(")
        digits = token[open_idx + 1:-1]
        if open_idx > 0 and digits.isascii() and digits.isdigit():
            name = token[:open_idx].strip()
            if name:
                uid = int(digits)
                if uid > _MAX_UID:
                    return name, ANONYMOUS_UID
                return name, uid
    return token, ANONYMOUS_UID


def _strip_tags_once(text: str) -> str:
    out: list[str] = []
    pos = 0
    while True:
        start = text.find("{\\", pos)
        if start == -1:
            out.append(text[pos:])
            break
        end = text.find("}", start + 2)
        if end == -1:
            out.append(text[pos:])
            break
        out.append(text[pos:start])
        pos = end + 1
    return "".join(out)


def strip_format_tags(raw: str) -> str:
    """Remove ``{\\...}`` override blocks and trim the result."""
    text = raw
    while True:
        stripped = _strip_tags_once(text)
        if stripped == text:
            break
        text = stripped
    return text.strip()


def parse_dialogue(line: str, line_number: int = 0) -> ChatRecord | SkipReason | None:
    """Parse one event-section line.

    Returns ``None`` for lines that are not Dialogue events, a
    ``SkipReason`` for malformed ones.
    """
    if not line.startswith(DIALOGUE_PREFIX):
        return None
    fields = split_event_fields(line)
    if fields is None:
        return SkipReason(
            lineNumber=line_number,
            kind="malformed_event",
            detail=f"expected {EVENT_FIELD_COUNT} fields",
        )
    try:
        offset = timecode_to_seconds(fields[START_FIELD])
    except TimecodeError as exc:
        return SkipReason(lineNumber=line_number, kind="bad_timestamp", detail=str(exc))

    name, uid = parse_identity(fields[NAME_FIELD])
    return ChatRecord(
        offset_seconds=offset,
        sender_name=name,
        sender_id=uid,
        text=strip_format_tags(fields[TEXT_FIELD]),
    )


def parse_event_lines(lines: Iterable[str]) -> EventParseResult:
    result = EventParseResult()
    for line_number, line in iter_section(lines, EVENTS_SECTION):
        parsed = parse_dialogue(line, line_number)
        if parsed is None:
            continue
        if isinstance(parsed, SkipReason):
            if parsed.kind == "bad_timestamp":
                logger.warning("Skipping line %d: %s", line_number, parsed.detail)
            else:
                logger.debug("Skipping malformed event on line %d", line_number)
            result.skipped.append(parsed)
            continue
        result.records.append(parsed)
    return result


def parse_events(path: Path | str) -> EventParseResult:
    """Parse every chat event of a recording, in file order."""
    with open_recording(path) as handle:
        return parse_event_lines(handle)
