"""Local filesystem implementation of the journal platform primitives."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterator, Sequence

from lifespeed.cache import (
    BatchMetadataError,
    EntrySummary,
    FsEntry,
    ListingError,
    date_from_dirname,
    format_mtime,
    title_from_dirname,
)

from .frontmatter import clean_excerpt, coerce_date, parse_frontmatter

LOGGER = logging.getLogger(__name__)

ENTRY_FILENAME = "index.md"


def _mtime_ms(path: Path) -> int:
    return path.stat().st_mtime_ns // 1_000_000


class LocalJournalPlatform:
    """Serve a journal laid out as ``<root>/<YYYY-MM-DD-slug>/index.md``.

    Listings report mtimes as epoch milliseconds while metadata reads report
    them as ISO-8601 strings; the cache normalizes both.
    """

    def __init__(
        self,
        root: Path,
        *,
        entry_filename: str = ENTRY_FILENAME,
        include_hidden: bool = False,
        excerpt_length: int = 300,
    ) -> None:
        self.root = root.expanduser()
        self.entry_filename = entry_filename
        self.include_hidden = include_hidden
        self.excerpt_length = excerpt_length

    async def get_entries_dir(self) -> str:
        """Return the journal root as a string."""
        return str(self.root)

    async def list_entries_fast(self) -> list[FsEntry]:
        """Enumerate entry directories without reading entry content.

        Raises:
            ListingError: If the journal root cannot be created or read.
        """
        try:
            return await asyncio.to_thread(lambda: list(self._scan()))
        except OSError as exc:
            raise ListingError(f"Failed to list entries in {self.root}: {exc}") from exc

    async def batch_get_metadata(self, entries: Sequence[FsEntry]) -> list[EntrySummary]:
        """Read frontmatter and body excerpts for ``entries``.

        Raises:
            BatchMetadataError: If the journal root has disappeared.
        """
        if not entries:
            return []
        return await asyncio.to_thread(self._read_batch, list(entries))

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _scan(self) -> Iterator[FsEntry]:
        self.root.mkdir(parents=True, exist_ok=True)
        found: list[FsEntry] = []
        for directory in self.root.iterdir():
            if not directory.is_dir():
                continue
            if not self.include_hidden and directory.name.startswith("."):
                continue
            entry_file = directory / self.entry_filename
            try:
                mtime = _mtime_ms(entry_file)
            except OSError:
                # Not an entry directory.
                continue
            found.append(
                FsEntry(
                    path=str(entry_file),
                    dirname=directory.name,
                    mtime=mtime,
                    entry_ref=str(directory),
                )
            )
        found.sort(key=lambda item: (-item.mtime_ms, item.dirname))
        yield from found

    def _read_batch(self, entries: list[FsEntry]) -> list[EntrySummary]:
        if not self.root.is_dir():
            raise BatchMetadataError(f"Journal folder {self.root} is not available.")

        summaries: list[EntrySummary] = []
        for entry in entries:
            path = Path(entry.path)
            try:
                content = path.read_text(encoding="utf-8", errors="replace")
                modified = _mtime_ms(path)
            except OSError as exc:
                LOGGER.warning("Failed to get metadata for %s: %s", entry.dirname or path, exc)
                continue

            data, body = parse_frontmatter(content)
            dirname = entry.dirname or path.parent.name
            summaries.append(
                EntrySummary(
                    path=entry.path,
                    dirname=dirname,
                    entry_ref=entry.entry_ref,
                    title=str(data.get("title") or title_from_dirname(dirname)),
                    date=coerce_date(data.get("date")) or date_from_dirname(dirname),
                    tags=data.get("tags") or [],
                    excerpt=clean_excerpt(body, self.excerpt_length),
                    mtime=format_mtime(modified),
                )
            )
        return summaries


__all__ = ["ENTRY_FILENAME", "LocalJournalPlatform"]
