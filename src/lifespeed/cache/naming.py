"""Entry directory naming conventions (``YYYY-MM-DD-slug``)."""

from __future__ import annotations

import re
from datetime import datetime, timezone

_DATED_SLUG = re.compile(r"^(\d{4}-\d{2}-\d{2})-(.+)$")
_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def title_from_dirname(dirname: str | None) -> str:
    """Return a display title derived from the slug, e.g. ``hello world``."""
    if not dirname:
        return "Untitled"
    match = _DATED_SLUG.match(dirname)
    return match.group(2).replace("-", " ") if match else dirname


def date_from_dirname(dirname: str | None) -> str:
    """Return the leading ``YYYY-MM-DD`` date, or the current time when absent."""
    match = _DATE_PREFIX.match(dirname or "")
    if match:
        return match.group(1)
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


__all__ = ["title_from_dirname", "date_from_dirname"]
