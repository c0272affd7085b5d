"""In-memory snapshot of the rendered entry list."""

from __future__ import annotations

from lifespeed.cache import EntrySummary

from .events import CacheEvent, EntriesChanged, EntriesDiscovered, JournalSwitched, PartialResults


class EntryView:
    """Read-mostly entry list refreshed only through engine events.

    Subscribe an instance to :class:`~lifespeed.sync.engine.CacheEngine` and
    read :attr:`entries`; the engine never mutates it directly.
    """

    def __init__(self) -> None:
        self._entries: list[EntrySummary] = []
        self.partial = False
        self.refreshes = 0

    @property
    def entries(self) -> list[EntrySummary]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __call__(self, event: CacheEvent) -> None:
        if isinstance(event, EntriesChanged):
            self._replace(event.entries, partial=False)
        elif isinstance(event, PartialResults):
            self._replace(event.entries, partial=True)
        elif isinstance(event, EntriesDiscovered):
            known = {entry.path for entry in self._entries}
            fresh = [entry for entry in event.entries if entry.path not in known]
            self._entries[:0] = fresh
        elif isinstance(event, JournalSwitched):
            self._replace([], partial=False)

    def _replace(self, entries: list[EntrySummary], *, partial: bool) -> None:
        self._entries = list(entries)
        self.partial = partial
        self.refreshes += 1


__all__ = ["EntryView"]
