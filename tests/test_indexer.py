"""Tests for the cold-start indexing pipeline."""

from __future__ import annotations

import asyncio
from typing import Iterator

import pytest
from fakes import FakePlatform, failing_listing

from lifespeed.cache import MEMORY_STORE, EntryStore, EntrySummary, ListingError
from lifespeed.sync import (
    CacheEvent,
    ChangeNotifier,
    EntriesChanged,
    IndexingPipeline,
    IndexProgress,
    PartialResults,
)


@pytest.fixture()
def store() -> Iterator[EntryStore]:
    handle = EntryStore.open_path(MEMORY_STORE)
    yield handle
    handle.close()


def _pipeline(
    store: EntryStore,
    platform: FakePlatform,
    events: list[CacheEvent],
    sleeps: list[float] | None = None,
    **options: int,
) -> IndexingPipeline:
    notifier = ChangeNotifier()
    notifier.subscribe(events.append)

    async def _sleep(delay: float) -> None:
        if sleeps is not None:
            sleeps.append(delay)

    return IndexingPipeline(store, platform, notifier, sleep=_sleep, **options)


def test_cold_start_indexes_in_batches_with_partial_signal(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add_many(120)
    events: list[CacheEvent] = []

    result = asyncio.run(_pipeline(store, platform, events, batch_size=100).run())

    assert [len(batch) for batch in platform.metadata_calls] == [100, 20]
    assert result.indexed == 120
    assert store.count() == 120

    meta = store.get_meta()
    assert meta is not None
    assert meta.entry_count == 120
    assert meta.folder_path == platform.folder
    assert meta.last_sync

    progress = [event for event in events if isinstance(event, IndexProgress)]
    assert [(item.processed, item.total) for item in progress] == [(100, 120), (120, 120)]
    partial = [event for event in events if isinstance(event, PartialResults)]
    assert len(partial) == 1
    assert len(partial[0].entries) == 100
    assert events.index(partial[0]) < events.index(progress[-1])
    assert isinstance(events[-1], EntriesChanged)
    assert len(events[-1].entries) == 120


def test_listing_failure_leaves_previous_cache_untouched(store: EntryStore) -> None:
    store.put(EntrySummary(path="/old/index.md", dirname="old", mtime=1))
    store.update_meta(folder_path="/journals/main", entry_count=1, last_sync=5)
    platform = FakePlatform()
    failing_listing(platform)

    with pytest.raises(ListingError):
        asyncio.run(_pipeline(store, platform, []).run())

    assert store.count() == 1
    meta = store.get_meta()
    assert meta is not None
    assert meta.last_sync == 5


def test_empty_folder_is_a_complete_index(store: EntryStore) -> None:
    store.put(EntrySummary(path="/stale/index.md", dirname="stale", mtime=1))
    events: list[CacheEvent] = []

    result = asyncio.run(_pipeline(store, FakePlatform(), events).run())

    assert result.total == 0
    assert store.count() == 0
    meta = store.get_meta()
    assert meta is not None
    assert meta.entry_count == 0
    assert meta.folder_path == "/journals/main"
    assert meta.last_sync
    assert isinstance(events[-1], EntriesChanged)


def test_failed_batch_is_skipped_and_pass_continues(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add_many(25)
    platform.failing_batches = {1}

    result = asyncio.run(_pipeline(store, platform, [], batch_size=10).run())

    assert result.batches == 3
    assert result.failed_batches == 1
    assert result.indexed == 15
    meta = store.get_meta()
    assert meta is not None
    assert meta.entry_count == 15


def test_yields_after_every_batch_and_longer_periodically(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add_many(12)
    sleeps: list[float] = []

    asyncio.run(
        _pipeline(store, platform, [], sleeps, batch_size=2, long_yield_every=5).run()
    )

    # processed counts 2,4,6,8,10,12 cross a multiple of 5 at 6 and 10
    assert len(sleeps) == 6
    assert sleeps.count(0) == 4
    assert sleeps.count(0.01) == 2


def test_second_concurrent_run_is_a_no_op(store: EntryStore) -> None:
    platform = FakePlatform()
    platform.add_many(30)

    async def _scenario() -> tuple[int, bool]:
        pipeline = IndexingPipeline(store, platform, ChangeNotifier(), batch_size=10)
        first = asyncio.create_task(pipeline.run())
        await asyncio.sleep(0)
        second = await pipeline.run()
        result = await first
        return result.indexed, second.skipped

    indexed, skipped = asyncio.run(_scenario())

    assert indexed == 30
    assert skipped is True
