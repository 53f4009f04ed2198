"""ASS timecode helpers."""
from __future__ import annotations


class TimecodeError(ValueError):
    """Raised when a Dialogue start field is not a usable timecode."""


def _is_digits(token: str) -> bool:
    return token.isascii() and token.isdigit()


def _component(token: str, timecode: str, *, fractional: bool = False) -> float:
    token = token.strip()
    if fractional:
        whole, dot, frac = token.partition(".")
        valid = _is_digits(whole) and (not dot or _is_digits(frac))
    else:
        valid = _is_digits(token)
    if not valid:
        raise TimecodeError(f"invalid time format: {timecode!r}")
    return float(token) if fractional else int(token)


def timecode_to_seconds(timecode: str) -> float:
    """Convert ``H:MM:SS.cc`` or ``MM:SS.cc`` into seconds from recording start.

    >>> timecode_to_seconds("1:02:03.500")
    3723.5
    >>> timecode_to_seconds("02:03.5")
    123.5
    """
    parts = timecode.strip().split(":")
    if len(parts) == 2:
        hours_raw, minutes_raw, seconds_raw = "0", parts[0], parts[1]
    elif len(parts) == 3:
        hours_raw, minutes_raw, seconds_raw = parts
    else:
        raise TimecodeError(f"invalid time format: {timecode!r}")

    hours = _component(hours_raw, timecode)
    minutes = _component(minutes_raw, timecode)
    seconds = _component(seconds_raw, timecode, fractional=True)
    return float(hours * 3600 + minutes * 60) + seconds
