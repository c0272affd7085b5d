"""Post-render check that every entry on disk is visible."""

from __future__ import annotations

import logging
from typing import Sequence

from lifespeed.cache import (
    CacheError,
    EntryStore,
    EntrySummary,
    FsEntry,
    StoreError,
    date_from_dirname,
    title_from_dirname,
)
from lifespeed.platform import JournalPlatform

from .events import ChangeNotifier, EntriesDiscovered

LOGGER = logging.getLogger(__name__)


def synthesize_summary(entry: FsEntry) -> EntrySummary:
    """Return a minimal summary derived from the entry's directory name.

    The stored mtime is left unset so the next reconciliation classifies the
    entry as modified and replaces the summary with full metadata.
    """
    return EntrySummary(
        path=entry.path,
        dirname=entry.dirname,
        entry_ref=entry.entry_ref,
        title=title_from_dirname(entry.dirname),
        date=date_from_dirname(entry.dirname),
    )


class FilesystemVerifier:
    """Compare a fresh listing against the rendered entries.

    An on-disk entry matching no rendered entry by path or by directory name is
    synthesized, persisted, and announced through :class:`EntriesDiscovered`.
    Verification never raises; failures are logged and produce no findings.
    """

    def __init__(
        self, store: EntryStore, platform: JournalPlatform, notifier: ChangeNotifier
    ) -> None:
        self._store = store
        self._platform = platform
        self._notifier = notifier

    async def verify(self, rendered: Sequence[EntrySummary]) -> list[EntrySummary]:
        """Return summaries for entries that were missing from ``rendered``."""
        try:
            listing = await self._platform.list_entries_fast()
        except (CacheError, OSError) as exc:
            LOGGER.warning("Filesystem verification skipped: %s", exc)
            return []

        paths = {entry.path for entry in rendered}
        dirnames = {entry.dirname for entry in rendered if entry.dirname}
        missing = [
            entry
            for entry in listing
            if entry.path not in paths and not (entry.dirname and entry.dirname in dirnames)
        ]
        if not missing:
            LOGGER.debug("Verified %d entries against the rendered view", len(listing))
            return []

        LOGGER.info("Found %d entries on disk missing from the view", len(missing))
        discovered = [synthesize_summary(entry) for entry in missing]
        for summary in discovered:
            try:
                self._store.put(summary)
            except StoreError as exc:
                LOGGER.warning("Could not persist discovered entry %s: %s", summary.path, exc)
        self._notifier.emit(EntriesDiscovered(entries=list(discovered)))
        return discovered


__all__ = ["FilesystemVerifier", "synthesize_summary"]
