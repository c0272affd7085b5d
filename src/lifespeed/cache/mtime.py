"""Modification time normalization.

Entry mtimes arrive either as epoch milliseconds (native directory listings)
or as ISO-8601 strings (metadata reads and older cache rows). Every comparison
goes through :func:`normalize_mtime` on both sides.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Union

Mtime = Union[int, float, str, None]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalize_mtime(value: Mtime) -> int:
    """Return ``value`` as epoch milliseconds.

    Args:
        value: Epoch milliseconds, an ISO-8601 string, or ``None``.

    Returns:
        int: Epoch milliseconds; ``0`` for absent or unparseable input.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else 0
    if isinstance(value, str):
        return _parse_mtime_string(value.strip())
    return 0


def format_mtime(millis: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string with millisecond precision."""
    moment = datetime.fromtimestamp(millis // 1000, tz=timezone.utc)
    moment += timedelta(milliseconds=millis % 1000)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def _parse_mtime_string(text: str) -> int:
    if not text:
        return 0
    if text.lstrip("-").isdigit():
        return int(text)
    candidate = text[:-1] + "+00:00" if text[-1] in "zZ" else text
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    delta = parsed - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


__all__ = ["Mtime", "normalize_mtime", "format_mtime", "now_ms"]
