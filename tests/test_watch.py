"""Tests for the journal watcher."""

from __future__ import annotations

from pathlib import Path

from watchdog.events import DirCreatedEvent, FileCreatedEvent, FileModifiedEvent

from lifespeed.watch import JournalWatcher
from lifespeed.watch.service import _JournalEventHandler


def test_next_batch_collects_distinct_paths(tmp_path: Path) -> None:
    watcher = JournalWatcher(tmp_path, debounce_seconds=0.05)
    first = watcher.root / "a" / "index.md"
    second = watcher.root / "b" / "index.md"

    watcher.enqueue(first)
    watcher.enqueue(second)
    watcher.enqueue(first)

    assert watcher.next_batch(timeout=1) == [first, second]
    assert watcher.next_batch(timeout=0.05) == []


def test_stop_unblocks_pending_batch(tmp_path: Path) -> None:
    watcher = JournalWatcher(tmp_path, debounce_seconds=0.05)

    watcher.stop()

    assert watcher.next_batch(timeout=1) == []


def test_event_handler_filters_irrelevant_paths(tmp_path: Path) -> None:
    watcher = JournalWatcher(tmp_path, debounce_seconds=0.05)
    handler = _JournalEventHandler(watcher)
    root = watcher.root

    handler.on_created(FileCreatedEvent(str(root / "2024-01-01-a" / "index.md")))
    handler.on_modified(FileModifiedEvent(str(root / "2024-01-01-a" / "photo.jpg")))
    handler.on_created(FileCreatedEvent(str(root / ".git" / "notes.md")))
    handler.on_created(DirCreatedEvent(str(root / "2024-01-02-b")))
    handler.on_created(DirCreatedEvent(str(root / "2024-01-02-b" / "images")))
    handler.on_created(FileCreatedEvent(str(tmp_path.parent / "elsewhere.md")))

    assert watcher.next_batch(timeout=1) == [
        root / "2024-01-01-a" / "index.md",
        root / "2024-01-02-b",
    ]
