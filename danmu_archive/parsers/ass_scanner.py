"""Section-aware line scanning for ASS chat recordings.

An ASS file is split into bracket-headed sections (``[Script Info]``,
``[V4+ Styles]``, ``[Events]`` ...). Recorder metadata lives in comment
lines of the ``[Script Info]`` section::

    [Script Info]
    ; LiveID: abc123
    ; LiveStartTime: 2025-01-01 08:00:00.000

All helpers here are single pass and never look past the current line.
"""
from __future__ import annotations

from pathlib import Path
from typing import IO, Iterable, Iterator

SCRIPT_INFO_SECTION = "Script Info"
EVENTS_SECTION = "Events"
LIVE_ID_KEY = "LiveID"
LIVE_START_TIME_KEY = "LiveStartTime"


def open_recording(path: Path | str) -> IO[str]:
    """Open a recording for line iteration. ``OSError`` propagates to the caller."""
    return open(path, "r", encoding="utf-8-sig", errors="replace")


def parse_section_header(line: str) -> str | None:
    """Return ``Name`` for a ``[Name]`` header line, else ``None``."""
    token = line.strip()
    if len(token) < 2 or not token.startswith("[") or not token.endswith("]"):
        return None
    return token[1:-1].strip() or None


def parse_comment_field(line: str, key: str, *, whole_value: bool = False) -> str | None:
    """Extract ``value`` from a ``; Key: value`` comment line.

    By default only the first whitespace-delimited token of the value is
    returned (identifiers never contain spaces). ``whole_value`` keeps the
    trimmed remainder, which timestamps need.
    """
    token = line.strip()
    if not token.startswith(";"):
        return None
    body = token[1:].lstrip()
    prefix = f"{key}:"
    if not body.startswith(prefix):
        return None
    value = body[len(prefix):].strip()
    if not value:
        return None
    if whole_value:
        return value
    return value.split(None, 1)[0]


def iter_section(lines: Iterable[str], name: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, stripped_line)`` for lines inside section ``name``.

    Iteration ends at the first header after the section or at end of input.
    Line numbers are 1-based and count every line of the input.
    """
    inside = False
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        header = parse_section_header(line)
        if header is not None:
            if inside:
                return
            inside = header == name
            continue
        if inside:
            yield line_number, line


def find_comment_field(
    lines: Iterable[str],
    key: str,
    *,
    section: str = SCRIPT_INFO_SECTION,
    whole_value: bool = False,
) -> str | None:
    for _, line in iter_section(lines, section):
        value = parse_comment_field(line, key, whole_value=whole_value)
        if value is not None:
            return value
    return None


def extract_comment_field(
    path: Path | str,
    key: str,
    *,
    section: str = SCRIPT_INFO_SECTION,
    whole_value: bool = False,
) -> str | None:
    """First ``key`` comment inside ``section`` of the file, ``None`` if absent."""
    with open_recording(path) as handle:
        return find_comment_field(handle, key, section=section, whole_value=whole_value)


def extract_live_id(path: Path | str) -> str | None:
    return extract_comment_field(path, LIVE_ID_KEY)
