"""Store versus filesystem diffing."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence, Union

from .errors import DiffComputeError
from .models import DiffResult, EntrySummary, FsEntry
from .mtime import Mtime, normalize_mtime

LOGGER = logging.getLogger(__name__)


def compute_diff(
    stored: Union[Mapping[str, Mtime], Iterable[EntrySummary]],
    listing: Sequence[FsEntry],
) -> DiffResult:
    """Classify listing entries against the store contents.

    Added and modified entries keep listing order; deleted paths keep store
    enumeration order. Both sides are normalized before comparison, so an ISO
    string and epoch milliseconds denoting the same instant are unchanged.

    Args:
        stored: Either a ``path -> mtime`` mapping or the stored summaries.
        listing: Current filesystem listing.

    Returns:
        DiffResult: Added, modified, and deleted sets.

    Raises:
        DiffComputeError: If an entry on either side has no usable path.
    """
    if isinstance(stored, Mapping):
        items = stored.items()
    else:
        items = ((summary.path, summary.mtime) for summary in stored)

    known: dict[str, int] = {}
    for path, mtime in items:
        if not isinstance(path, str) or not path:
            raise DiffComputeError(f"Stored entry has an invalid path: {path!r}")
        known[path] = normalize_mtime(mtime)

    result = DiffResult()
    seen: set[str] = set()
    for entry in listing:
        if not isinstance(entry, FsEntry) or not entry.path:
            raise DiffComputeError(f"Listing entry has an invalid path: {entry!r}")
        if entry.path in seen:
            continue
        seen.add(entry.path)

        if entry.path not in known:
            result.added.append(entry)
        elif known[entry.path] != entry.mtime_ms:
            result.modified.append(entry)

    result.deleted = [path for path in known if path not in seen]
    LOGGER.info(
        "Comparison: added=%d modified=%d deleted=%d",
        len(result.added),
        len(result.modified),
        len(result.deleted),
    )
    return result


__all__ = ["compute_diff"]
