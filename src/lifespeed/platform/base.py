"""Contract for the platform layer that performs journal file I/O."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from lifespeed.cache import EntrySummary, FsEntry


@runtime_checkable
class JournalPlatform(Protocol):
    """Filesystem primitives consumed by the entry cache engine.

    Implementations raise :class:`~lifespeed.cache.ListingError` when the
    journal cannot be enumerated and :class:`~lifespeed.cache.BatchMetadataError`
    when a metadata batch cannot be read. Entries that individually fail to read
    may simply be omitted from a batch result.
    """

    async def list_entries_fast(self) -> list[FsEntry]:
        """Enumerate entries with paths and mtimes only, without reading content."""
        ...

    async def batch_get_metadata(self, entries: Sequence[FsEntry]) -> list[EntrySummary]:
        """Read content for ``entries`` and return their summaries."""
        ...

    async def get_entries_dir(self) -> str:
        """Return the identifier of the journal folder being served."""
        ...


__all__ = ["JournalPlatform"]
