"""Engine facade owning the active journal's store and sync passes."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from lifespeed.cache import (
    DEFAULT_JOURNAL_ID,
    MEMORY_STORE,
    BatchMetadataError,
    CacheError,
    CacheMeta,
    EntryStore,
    EntrySummary,
    StoreClosedError,
    StoreError,
    StoreUnavailableError,
    now_ms,
    store_path_for,
)
from lifespeed.config import CacheSettings
from lifespeed.platform import JournalPlatform

from .events import ChangeNotifier, EntriesChanged, JournalSwitched, Listener
from .indexer import IndexingPipeline, IndexResult
from .reconciler import Reconciler, ReconcileResult
from .scheduler import SingleFlightScheduler
from .verifier import FilesystemVerifier

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ActivationResult:
    """How the entry list was produced when a journal view was activated.

    Attributes:
        source: ``cache`` (fast render from the store), ``index`` (cold-start
            build), ``direct`` (uncached fallback), or ``cancelled`` (a journal
            switch superseded the activation).
        entries: Entries available to render, newest first.
        index: Indexing outcome when ``source`` is ``index``.
    """

    source: str
    entries: list[EntrySummary] = field(default_factory=list)
    index: Optional[IndexResult] = None


class CacheEngine:
    """Explicitly constructed owner of one journal's entry store.

    The engine is the only holder of the store handle. UI code and the search
    collaborator subscribe to change notifications and read through the
    engine; switching journals closes the current handle before the next one
    is opened, so late writes from a superseded pass fail instead of leaking
    into the new journal.
    """

    def __init__(
        self,
        platform: JournalPlatform,
        *,
        journal_id: str = DEFAULT_JOURNAL_ID,
        settings: CacheSettings | None = None,
        state_dir: Path | None = None,
        clock: Callable[[], float] = time.monotonic,
        resolve_platform: Optional[Callable[[str], JournalPlatform]] = None,
    ) -> None:
        """Initialize the engine without opening the store.

        Args:
            platform: Filesystem primitives for the active journal.
            journal_id: Identifier selecting the journal's store.
            settings: Cache tuning; defaults apply when omitted.
            state_dir: Directory holding store files; overrides ``settings.state_dir``.
            clock: Monotonic clock used for the quiet window.
            resolve_platform: Returns the filesystem primitives for a journal id;
                used by :meth:`switch_journal` when no platform is passed.
        """
        self._settings = settings or CacheSettings()
        self._state_dir = (state_dir or Path(self._settings.state_dir)).expanduser()
        self._platform = platform
        self._resolve_platform = resolve_platform
        self._journal_id = journal_id
        self._notifier = ChangeNotifier()
        self._store: EntryStore | None = None
        self._degraded = False
        self._generation = 0
        self._background: set[asyncio.Task[list[EntrySummary]]] = set()
        self._indexer: IndexingPipeline | None = None
        self._reconciler: Reconciler | None = None
        self._verifier: FilesystemVerifier | None = None
        self._scheduler: SingleFlightScheduler[ReconcileResult] = SingleFlightScheduler(
            self.reconcile,
            quiet_window=self._settings.quiet_window_seconds,
            clock=clock,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    @property
    def journal_id(self) -> str:
        return self._journal_id

    @property
    def platform(self) -> JournalPlatform:
        return self._platform

    @property
    def degraded(self) -> bool:
        """Return whether the session runs on an in-memory store."""
        return self._degraded

    @property
    def is_open(self) -> bool:
        return self._store is not None and self._store.is_open

    @property
    def store_path(self) -> Path | str:
        """Return the store location for the active journal."""
        if self._store is not None:
            return self._store.path
        return store_path_for(self._state_dir, self._journal_id)

    def open(self) -> "CacheEngine":
        """Open the active journal's store, degrading to memory when unavailable."""
        if self.is_open:
            return self
        path = store_path_for(self._state_dir, self._journal_id)
        try:
            store = EntryStore.open_path(path)
            self._degraded = False
        except StoreUnavailableError as exc:
            LOGGER.warning("Entry store unavailable; using a session-only cache: %s", exc)
            store = EntryStore.open_path(MEMORY_STORE)
            self._degraded = True
        self._bind(store)
        LOGGER.debug("Engine serving journal %s from %s", self._journal_id, store.path)
        return self

    def close(self) -> None:
        """Cancel background work and close the store handle."""
        self._cancel_background()
        if self._store is not None:
            self._store.close()
            self._store = None

    def __enter__(self) -> "CacheEngine":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener and return its unsubscribe callable."""
        return self._notifier.subscribe(listener)

    def switch_journal(self, journal_id: str, platform: JournalPlatform | None = None) -> bool:
        """Serve ``journal_id`` from its own store.

        Args:
            journal_id: Journal to activate.
            platform: Filesystem primitives for the new journal's folder;
                resolved from ``journal_id`` when omitted.

        Returns:
            bool: ``False`` when ``journal_id`` was already active.

        Raises:
            ValueError: If the folder of another journal cannot be resolved.
                The current journal stays open.
        """
        if journal_id == self._journal_id and self.is_open:
            LOGGER.debug("Journal %s already active", journal_id)
            return False

        if platform is None and journal_id != self._journal_id:
            if self._resolve_platform is None:
                raise ValueError(f"No journal folder is known for {journal_id}.")
            platform = self._resolve_platform(journal_id)

        previous = self._journal_id
        self._generation += 1
        self.close()
        self._journal_id = journal_id
        if platform is not None:
            self._platform = platform
        self.open()
        LOGGER.info("Switched journal %s -> %s", previous, journal_id)
        self._notifier.emit(JournalSwitched(previous=previous, current=journal_id))
        return True

    # ------------------------------------------------------------------ #
    # Store access                                                       #
    # ------------------------------------------------------------------ #

    def has_cache_for_folder(self, folder: str | Path) -> bool:
        return self._require_store().has_cache_for_folder(folder)

    def get_all_entries(self) -> list[EntrySummary]:
        """Return every cached summary, newest modification first."""
        return self._require_store().list_all()

    def get_entry(self, path: str) -> Optional[EntrySummary]:
        return self._require_store().get(path)

    def get_meta(self) -> CacheMeta:
        """Return the meta record, or an empty record before the first sync."""
        return self._require_store().get_meta() or CacheMeta()

    def search(self, query: str) -> list[EntrySummary]:
        return self._require_store().search(query)

    def save_entry(self, summary: EntrySummary) -> None:
        """Upsert one summary, e.g. after the user created or edited an entry."""
        self._require_store().put(summary)
        self._changed("save")

    def save_entries(self, summaries: Iterable[EntrySummary]) -> int:
        written = self._require_store().put_batch(summaries)
        if written:
            self._changed("save")
        return written

    def delete_entry(self, path: str) -> None:
        """Remove a summary after the user deleted the entry."""
        self._require_store().delete(path)
        self._changed("delete")

    def delete_entries(self, paths: Iterable[str]) -> int:
        removed = self._require_store().delete_batch(paths)
        if removed:
            self._changed("delete")
        return removed

    def rename_entry(self, old_path: str, summary: EntrySummary) -> None:
        """Replace the summary stored under ``old_path`` with ``summary``."""
        store = self._require_store()
        if old_path != summary.path:
            store.delete(old_path)
        store.put(summary)
        self._changed("rename")

    def save_on_exit(self, current: EntrySummary | None) -> bool:
        """Persist the entry being edited before the app goes away.

        The summary is stamped with the current time. Failures are logged and
        reported as ``False``; exiting is never blocked.
        """
        if current is None or not self.is_open:
            return False
        stamp = now_ms()
        summary = current.model_copy(update={"mtime": stamp})
        try:
            self._require_store().put(summary)
        except StoreError as exc:
            LOGGER.warning(
                "Failed to save %s to cache on exit: %s", current.dirname or current.path, exc
            )
            return False
        LOGGER.debug("Saved current entry to cache on exit: %s", current.dirname or current.path)
        return True

    # ------------------------------------------------------------------ #
    # Sync passes                                                        #
    # ------------------------------------------------------------------ #

    async def activate(self) -> ActivationResult:
        """Produce the entry list for the active journal's view.

        A usable cache renders immediately and schedules a background
        verification pass. Otherwise the folder is indexed; when indexing
        fails the entries are loaded directly without caching.
        """
        generation = self._generation
        folder = await self._platform.get_entries_dir()
        if generation != self._generation:
            return ActivationResult(source="cancelled")

        if self.has_cache_for_folder(folder):
            entries = self.get_all_entries()
            if entries:
                LOGGER.info("Rendering %d cached entries for %s", len(entries), folder)
                self._notifier.emit(EntriesChanged(entries=entries, reason="cache"))
                self._spawn_verification(entries)
                return ActivationResult(source="cache", entries=entries)
            LOGGER.info("Cache for %s holds no readable entries; rebuilding", folder)

        try:
            result = await self.index()
        except (CacheError, OSError) as exc:
            if generation != self._generation:
                LOGGER.debug("Activation superseded by a journal switch")
                return ActivationResult(source="cancelled")
            LOGGER.warning("Indexing failed; loading entries directly: %s", exc)
            entries = await self.load_entries_direct()
            self._notifier.emit(EntriesChanged(entries=entries, reason="direct"))
            return ActivationResult(source="direct", entries=entries)
        return ActivationResult(source="index", entries=self.get_all_entries(), index=result)

    async def index(self) -> IndexResult:
        """Rebuild the store for the platform's folder."""
        self._require_store()
        assert self._indexer is not None
        return await self._indexer.run()

    async def reconcile(self) -> ReconcileResult:
        """Run a reconciliation pass immediately, propagating failures."""
        self._require_store()
        assert self._reconciler is not None
        return await self._reconciler.run()

    def note_input(self) -> None:
        """Record a keystroke so reconciliation waits for the quiet window."""
        self._scheduler.note_input()

    async def attempt_reconciliation(self) -> Optional[ReconcileResult]:
        """Reconcile unless a pass is running or the user typed recently."""
        return await self._scheduler.attempt()

    async def on_exit(self, current: EntrySummary | None = None) -> Optional[ReconcileResult]:
        """Save the entry being edited, then attempt one reconciliation.

        This is the hook for the app going to the background or exiting; it
        is subject to the same single-flight and quiet-window rules as any
        other attempt.
        """
        self.save_on_exit(current)
        if not self.is_open:
            return None
        return await self.attempt_reconciliation()

    async def verify_filesystem(self, rendered: Sequence[EntrySummary]) -> list[EntrySummary]:
        """Persist and announce on-disk entries missing from ``rendered``."""
        self._require_store()
        assert self._verifier is not None
        return await self._verifier.verify(rendered)

    async def wait_for_background(self) -> None:
        """Wait for scheduled verification passes to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def load_entries_direct(self) -> list[EntrySummary]:
        """List and read every entry without touching the store.

        Raises:
            ListingError: If the folder cannot be enumerated.
        """
        listing = await self._platform.list_entries_fast()
        size = self._settings.index_batch_size
        entries: list[EntrySummary] = []
        for start in range(0, len(listing), size):
            try:
                batch = listing[start : start + size]
                entries.extend(await self._platform.batch_get_metadata(batch))
            except (BatchMetadataError, OSError) as exc:
                LOGGER.warning("Skipping unreadable entries while loading directly: %s", exc)
            await asyncio.sleep(0)
        entries.sort(key=lambda entry: (-entry.mtime_ms, entry.path))
        return entries

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _bind(self, store: EntryStore) -> None:
        settings = self._settings
        self._store = store
        self._indexer = IndexingPipeline(
            store,
            self._platform,
            self._notifier,
            batch_size=settings.index_batch_size,
            preview_threshold=settings.preview_threshold,
            long_yield_every=settings.long_yield_every,
            long_yield_seconds=settings.long_yield_seconds,
        )
        self._reconciler = Reconciler(
            store, self._platform, self._notifier, batch_size=settings.sync_batch_size
        )
        self._verifier = FilesystemVerifier(store, self._platform, self._notifier)

    def _require_store(self) -> EntryStore:
        if self._store is None:
            raise StoreClosedError(f"No entry store is open for journal {self._journal_id}.")
        return self._store

    def _changed(self, reason: str) -> None:
        self._notifier.emit(EntriesChanged(entries=self.get_all_entries(), reason=reason))

    def _spawn_verification(self, entries: list[EntrySummary]) -> None:
        task = asyncio.get_running_loop().create_task(self.verify_filesystem(entries))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _cancel_background(self) -> None:
        for task in list(self._background):
            task.cancel()
        self._background.clear()


__all__ = ["ActivationResult", "CacheEngine"]
