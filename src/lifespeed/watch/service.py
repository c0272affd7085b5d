"""Debounced filesystem watching of a journal folder."""

from __future__ import annotations

import logging
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

LOGGER = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = frozenset({".md", ".markdown"})


class JournalWatcher:
    """Collect filesystem events under a journal root into debounced batches.

    A batch is delivered once no event has arrived for ``debounce_seconds``,
    or once ``max_batch_seconds`` elapsed since its first event, whichever
    comes first.
    """

    def __init__(
        self,
        root: Path,
        *,
        debounce_seconds: float = 1.0,
        max_batch_seconds: float = 10.0,
    ) -> None:
        """Initialize the watcher.

        Args:
            root: Journal folder to observe recursively.
            debounce_seconds: Quiet period that closes a batch.
            max_batch_seconds: Upper bound on how long a batch may stay open.
        """
        self._root = root.expanduser().resolve()
        self._debounce_seconds = max(0.01, debounce_seconds)
        self._max_batch_seconds = max(self._debounce_seconds, max_batch_seconds)
        self._queue: queue.Queue[Optional[Path]] = queue.Queue()
        self._stop_event = threading.Event()
        self._observer: Optional[Observer] = None

    @property
    def root(self) -> Path:
        return self._root

    def enqueue(self, path: Path) -> None:
        """Record a changed path; used by the event handler."""
        self._queue.put(path)

    def watch(self, callback: Callable[[list[Path]], None]) -> None:
        """Observe the root and invoke ``callback`` per batch until :meth:`stop`.

        Raises:
            RuntimeError: If the watcher is already running.
        """
        if self._observer is not None:
            raise RuntimeError("JournalWatcher is already running.")

        self._stop_event.clear()
        self._observer = Observer()
        self._observer.schedule(_JournalEventHandler(self), str(self._root), recursive=True)
        self._observer.start()
        LOGGER.info("Watching %s", self._root)
        try:
            while not self._stop_event.is_set():
                batch = self.next_batch()
                if batch:
                    callback(batch)
        finally:
            self.stop()

    def next_batch(self, timeout: Optional[float] = None) -> list[Path]:
        """Block for the next debounced batch of changed paths.

        Args:
            timeout: Seconds to wait for the first event; ``None`` waits until
                an event arrives or the watcher stops.

        Returns:
            list[Path]: Distinct paths in arrival order; empty on timeout or stop.
        """
        try:
            first = self._queue.get(timeout=timeout)
        except queue.Empty:
            return []
        if first is None:
            return []

        pending: list[Path] = [first]
        started = time.monotonic()
        while True:
            remaining = self._max_batch_seconds - (time.monotonic() - started)
            if remaining <= 0:
                break
            try:
                path = self._queue.get(timeout=min(self._debounce_seconds, remaining))
            except queue.Empty:
                break
            if path is None:
                self._stop_event.set()
                break
            if path not in pending:
                pending.append(path)
        LOGGER.debug("Collected %d changed paths", len(pending))
        return pending

    def stop(self) -> None:
        """Stop observing and unblock any pending :meth:`next_batch` call."""
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._queue.put(None)


class _JournalEventHandler(FileSystemEventHandler):
    """Forward entry-relevant filesystem events into the watcher queue."""

    def __init__(self, watcher: JournalWatcher) -> None:
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        self._enqueue(event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._enqueue(event.src_path, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._enqueue(event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:  # pragma: no cover - watchdog-specific
        self._enqueue(event.src_path, event.is_directory)
        self._enqueue(getattr(event, "dest_path", ""), event.is_directory)

    def _enqueue(self, raw: str | bytes, is_directory: bool) -> None:
        if not raw:
            return
        path = Path(raw.decode() if isinstance(raw, bytes) else raw)
        try:
            relative = path.relative_to(self._watcher.root)
        except ValueError:
            return
        if any(part.startswith(".") for part in relative.parts):
            return
        # Directory events matter only for entry folders directly under the root.
        if is_directory and path.parent != self._watcher.root:
            return
        if not is_directory and path.suffix.lower() not in MARKDOWN_SUFFIXES:
            return
        self._watcher.enqueue(path)


__all__ = ["JournalWatcher", "MARKDOWN_SUFFIXES"]
