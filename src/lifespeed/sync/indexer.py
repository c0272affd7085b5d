"""Cold-start indexing of a journal folder into the entry store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from lifespeed.cache import BatchMetadataError, CacheMeta, EntryStore, now_ms
from lifespeed.platform import JournalPlatform

from .events import ChangeNotifier, EntriesChanged, IndexProgress, PartialResults

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class IndexResult:
    """Outcome of an indexing pass.

    Attributes:
        folder: Journal folder that was indexed.
        total: Number of entries in the listing.
        indexed: Number of summaries persisted.
        batches: Number of metadata batches attempted.
        failed_batches: Number of batches skipped after a metadata failure.
        skipped: ``True`` when another pass was already running.
        meta: Meta record written at the end of the pass.
    """

    folder: str = ""
    total: int = 0
    indexed: int = 0
    batches: int = 0
    failed_batches: int = 0
    skipped: bool = False
    meta: Optional[CacheMeta] = None


class IndexingPipeline:
    """Build the store from scratch in fixed-size metadata batches.

    The existing summaries are cleared only once a listing for the folder has
    been obtained, so a failed listing leaves the previous cache untouched.
    Batches whose metadata cannot be read are skipped; their entries are picked
    up by a later reconciliation. A second call while a pass is running
    returns immediately with ``skipped=True``.
    """

    def __init__(
        self,
        store: EntryStore,
        platform: JournalPlatform,
        notifier: ChangeNotifier,
        *,
        batch_size: int = 100,
        preview_threshold: int = 50,
        long_yield_every: int = 500,
        long_yield_seconds: float = 0.01,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._platform = platform
        self._notifier = notifier
        self._batch_size = max(1, batch_size)
        self._preview_threshold = preview_threshold
        self._long_yield_every = long_yield_every
        self._long_yield_seconds = long_yield_seconds
        self._sleep = sleep
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self) -> IndexResult:
        """Index the platform's current folder.

        Returns:
            IndexResult: Counts and the meta record written by the pass.

        Raises:
            ListingError: If the folder cannot be enumerated.
            StoreError: If the store rejects a write.
        """
        if self._running:
            LOGGER.debug("Indexing already in progress; skipping")
            return IndexResult(skipped=True)
        self._running = True
        try:
            return await self._index()
        finally:
            self._running = False

    async def _index(self) -> IndexResult:
        folder = await self._platform.get_entries_dir()
        listing = await self._platform.list_entries_fast()
        self._store.clear()

        result = IndexResult(folder=folder, total=len(listing))
        if not listing:
            result.meta = self._store.update_meta(
                folder_path=folder, last_sync=now_ms(), entry_count=0
            )
            LOGGER.info("Indexed empty folder %s", folder)
            self._notifier.emit(EntriesChanged(entries=[], reason="index"))
            return result

        processed = 0
        preview_sent = False
        for start in range(0, result.total, self._batch_size):
            batch = listing[start : start + self._batch_size]
            result.batches += 1
            try:
                summaries = await self._platform.batch_get_metadata(batch)
            except (BatchMetadataError, OSError) as exc:
                result.failed_batches += 1
                LOGGER.warning(
                    "Skipping metadata batch %d-%d of %s: %s",
                    start,
                    start + len(batch),
                    folder,
                    exc,
                )
            else:
                result.indexed += self._store.put_batch(summaries)

            previous = processed
            processed += len(batch)
            self._notifier.emit(IndexProgress(processed=processed, total=result.total))
            if not preview_sent and result.indexed >= self._preview_threshold:
                preview_sent = True
                self._notifier.emit(
                    PartialResults(
                        entries=self._store.list_all(),
                        processed=processed,
                        total=result.total,
                    )
                )
            await self._yield(previous, processed)

        result.meta = self._store.update_meta(
            folder_path=folder, last_sync=now_ms(), entry_count=result.indexed
        )
        LOGGER.info(
            "Indexed %d of %d entries for %s (%d failed batches)",
            result.indexed,
            result.total,
            folder,
            result.failed_batches,
        )
        self._notifier.emit(EntriesChanged(entries=self._store.list_all(), reason="index"))
        return result

    async def _yield(self, previous: int, processed: int) -> None:
        every = self._long_yield_every
        if every > 0 and processed // every > previous // every:
            await self._sleep(self._long_yield_seconds)
        else:
            await self._sleep(0)


__all__ = ["IndexResult", "IndexingPipeline"]
