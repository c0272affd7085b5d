"""Tests for the filesystem verification pass and the entry view."""

from __future__ import annotations

import asyncio
from typing import Iterator

import pytest
from fakes import BASE_MTIME, FakePlatform, failing_listing

from lifespeed.cache import MEMORY_STORE, EntryStore, EntrySummary, FsEntry
from lifespeed.sync import (
    CacheEvent,
    ChangeNotifier,
    EntriesChanged,
    EntriesDiscovered,
    EntryView,
    FilesystemVerifier,
    JournalSwitched,
    PartialResults,
    synthesize_summary,
)


@pytest.fixture()
def store() -> Iterator[EntryStore]:
    handle = EntryStore.open_path(MEMORY_STORE)
    yield handle
    handle.close()


def _rendered(platform: FakePlatform, dirname: str, *, path: str | None = None) -> EntrySummary:
    return EntrySummary(path=path or platform.path_for(dirname), dirname=dirname, title=dirname)


def test_missing_entry_is_synthesized_persisted_and_announced(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add("2024-01-01-known")
    missing_path = platform.add("2024-05-06-late-night-idea", mtime=BASE_MTIME + 9)
    notifier = ChangeNotifier()
    events: list[CacheEvent] = []
    notifier.subscribe(events.append)
    rendered = [_rendered(platform, "2024-01-01-known")]

    found = asyncio.run(FilesystemVerifier(store, platform, notifier).verify(rendered))

    assert [entry.path for entry in found] == [missing_path]
    assert found[0].title == "late night idea"
    assert found[0].date == "2024-05-06"
    assert store.get(missing_path) is not None
    assert isinstance(events[-1], EntriesDiscovered)


def test_match_by_dirname_counts_as_present(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add("2024-01-01-renamed")
    rendered = [_rendered(platform, "2024-01-01-renamed", path="/elsewhere/index.md")]

    found = asyncio.run(FilesystemVerifier(store, platform, ChangeNotifier()).verify(rendered))

    assert found == []
    assert store.count() == 0


def test_listing_failure_is_not_fatal(store: EntryStore) -> None:
    platform = FakePlatform()
    failing_listing(platform)

    found = asyncio.run(FilesystemVerifier(store, platform, ChangeNotifier()).verify([]))

    assert found == []


def test_synthesized_summary_falls_back_for_undated_dirnames() -> None:
    entry = FsEntry(path="/j/scratch/index.md", dirname="scratch", mtime=BASE_MTIME)

    summary = synthesize_summary(entry)

    assert summary.title == "scratch"
    assert summary.date.endswith("Z")
    assert summary.mtime_ms == 0


def test_entry_view_follows_events() -> None:
    view = EntryView()
    first = EntrySummary(path="/j/a/index.md", dirname="a")
    second = EntrySummary(path="/j/b/index.md", dirname="b")

    view(PartialResults(entries=[first], processed=1, total=2))
    assert view.partial is True

    view(EntriesChanged(entries=[first], reason="index"))
    view(EntriesDiscovered(entries=[second, first]))
    assert [entry.dirname for entry in view.entries] == ["b", "a"]
    assert view.partial is False

    view(JournalSwitched(previous="default", current="work"))
    assert len(view) == 0
