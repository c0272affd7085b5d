"""Warm-path incremental sync between the store and the journal folder."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from lifespeed.cache import BatchMetadataError, DiffResult, EntryStore, compute_diff, now_ms
from lifespeed.platform import JournalPlatform

from .events import ChangeNotifier, EntriesChanged

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileResult:
    """Outcome of a reconciliation pass."""

    diff: DiffResult = field(default_factory=DiffResult)
    deleted: int = 0
    written: int = 0
    failed_batches: int = 0

    @property
    def changed(self) -> bool:
        return not self.diff.is_empty


class Reconciler:
    """Apply the difference between the store and a fresh listing.

    Deletions are applied first, then added and modified entries are read in
    batches and upserted in listing order. The meta record is touched only
    when the diff was non-empty, and ``last_sync`` only advances when every
    batch settled.
    """

    def __init__(
        self,
        store: EntryStore,
        platform: JournalPlatform,
        notifier: ChangeNotifier,
        *,
        batch_size: int = 50,
    ) -> None:
        self._store = store
        self._platform = platform
        self._notifier = notifier
        self._batch_size = max(1, batch_size)

    async def run(self) -> ReconcileResult:
        """Run one reconciliation pass.

        Raises:
            ListingError: If the folder cannot be enumerated or diffed.
            StoreError: If the store rejects a write.
        """
        listing = await self._platform.list_entries_fast()
        diff = compute_diff(self._store.get_mtime_map(), listing)
        result = ReconcileResult(diff=diff)
        if diff.is_empty:
            LOGGER.debug("Store already matches the folder; nothing to reconcile")
            return result

        result.deleted = self._store.delete_batch(diff.deleted)

        pending = diff.to_fetch
        for start in range(0, len(pending), self._batch_size):
            batch = pending[start : start + self._batch_size]
            try:
                summaries = await self._platform.batch_get_metadata(batch)
            except (BatchMetadataError, OSError) as exc:
                result.failed_batches += 1
                LOGGER.warning("Skipping metadata batch during reconciliation: %s", exc)
            else:
                result.written += self._store.put_batch(summaries)
            await asyncio.sleep(0)

        changes: dict[str, int] = {"entry_count": self._store.count()}
        if not result.failed_batches:
            changes["last_sync"] = now_ms()
        self._store.update_meta(**changes)

        LOGGER.info(
            "Reconciled store: %d added, %d modified, %d deleted",
            len(diff.added),
            len(diff.modified),
            len(diff.deleted),
        )
        self._notifier.emit(EntriesChanged(entries=self._store.list_all(), reason="reconcile"))
        return result


__all__ = ["ReconcileResult", "Reconciler"]
