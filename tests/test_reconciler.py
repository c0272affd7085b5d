"""Tests for the background reconciliation pass."""

from __future__ import annotations

import asyncio
from typing import Iterator

import pytest
from fakes import BASE_MTIME, FakePlatform, failing_listing

from lifespeed.cache import MEMORY_STORE, EntryStore, ListingError
from lifespeed.sync import CacheEvent, ChangeNotifier, EntriesChanged, IndexingPipeline, Reconciler


@pytest.fixture()
def store() -> Iterator[EntryStore]:
    handle = EntryStore.open_path(MEMORY_STORE)
    yield handle
    handle.close()


def _indexed(store: EntryStore, platform: FakePlatform) -> None:
    asyncio.run(IndexingPipeline(store, platform, ChangeNotifier()).run())
    platform.metadata_calls.clear()


def _reconciler(
    store: EntryStore, platform: FakePlatform, events: list[CacheEvent], batch_size: int = 50
) -> Reconciler:
    notifier = ChangeNotifier()
    notifier.subscribe(events.append)
    return Reconciler(store, platform, notifier, batch_size=batch_size)


def test_warm_no_op_performs_no_writes(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add_many(5)
    _indexed(store, platform)
    before = store.get_meta()
    events: list[CacheEvent] = []

    result = asyncio.run(_reconciler(store, platform, events).run())

    assert result.changed is False
    assert platform.metadata_calls == []
    assert events == []
    assert store.get_meta() == before


def test_external_add_is_fetched_and_stored(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add_many(3)
    _indexed(store, platform)
    new_path = platform.add("2024-02-01-new-thought", mtime=BASE_MTIME + 1_000)
    events: list[CacheEvent] = []

    result = asyncio.run(_reconciler(store, platform, events).run())

    assert [entry.path for entry in result.diff.added] == [new_path]
    assert platform.metadata_calls == [[new_path]]
    assert new_path in {entry.path for entry in store.list_all()}
    assert isinstance(events[-1], EntriesChanged)
    assert events[-1].entries[0].path == new_path


def test_external_delete_is_removed(store: EntryStore) -> None:
    platform = FakePlatform()
    paths = platform.add_many(3)
    _indexed(store, platform)
    platform.remove("2024-01-01-entry-0001")

    result = asyncio.run(_reconciler(store, platform, []).run())

    assert result.diff.deleted == [paths[1]]
    assert paths[1] not in {entry.path for entry in store.list_all()}
    meta = store.get_meta()
    assert meta is not None
    assert meta.entry_count == 2


def test_modified_entry_is_refreshed(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add("2024-01-01-draft", title="Draft")
    _indexed(store, platform)
    platform.entries["2024-01-01-draft"].title = "Final"
    platform.touch("2024-01-01-draft", BASE_MTIME + 60_000)

    result = asyncio.run(_reconciler(store, platform, []).run())

    assert len(result.diff.modified) == 1
    assert store.list_all()[0].title == "Final"


def test_changes_are_fetched_in_sync_batches(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add_many(120)

    asyncio.run(_reconciler(store, platform, [], batch_size=50).run())

    assert [len(batch) for batch in platform.metadata_calls] == [50, 50, 20]
    assert store.count() == 120


def test_failed_batch_does_not_advance_last_sync(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add_many(2)
    _indexed(store, platform)
    store.update_meta(last_sync=1)
    platform.add("2024-03-01-late", mtime=BASE_MTIME + 5_000)
    platform.failing_batches = {0}

    result = asyncio.run(_reconciler(store, platform, []).run())

    assert result.failed_batches == 1
    meta = store.get_meta()
    assert meta is not None
    assert meta.last_sync == 1

    platform.failing_batches = set()
    retry = asyncio.run(_reconciler(store, platform, []).run())

    assert [entry.dirname for entry in retry.diff.added] == ["2024-03-01-late"]
    meta = store.get_meta()
    assert meta is not None
    assert meta.last_sync and meta.last_sync > 1


def test_listing_failure_propagates_without_changes(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add_many(2)
    _indexed(store, platform)
    failing_listing(platform)

    with pytest.raises(ListingError):
        asyncio.run(_reconciler(store, platform, []).run())

    assert store.count() == 2
