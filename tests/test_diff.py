"""Tests for diffing the store against a filesystem listing."""

from __future__ import annotations

import pytest

from lifespeed.cache import DiffComputeError, EntrySummary, FsEntry, compute_diff


def _fs(path: str, mtime: int | str) -> FsEntry:
    return FsEntry(path=path, dirname=path.split("/")[0], mtime=mtime)


def test_mixed_representations_of_same_instant_are_unchanged() -> None:
    stored = {"a/index.md": "2024-01-01T00:00:00.000Z"}
    listing = [_fs("a/index.md", 1_704_067_200_000)]

    diff = compute_diff(stored, listing)

    assert diff.is_empty


def test_classifies_added_modified_and_deleted() -> None:
    stored = {
        "keep/index.md": 100,
        "edit/index.md": 100,
        "gone/index.md": 100,
        "also-gone/index.md": 50,
    }
    listing = [
        _fs("new/index.md", 300),
        _fs("edit/index.md", 200),
        _fs("keep/index.md", 100),
    ]

    diff = compute_diff(stored, listing)

    assert [entry.path for entry in diff.added] == ["new/index.md"]
    assert [entry.path for entry in diff.modified] == ["edit/index.md"]
    assert diff.deleted == ["gone/index.md", "also-gone/index.md"]
    assert [entry.path for entry in diff.to_fetch] == ["new/index.md", "edit/index.md"]
    assert diff.counts() == {"added": 1, "modified": 1, "deleted": 2}


def test_second_run_after_applying_changes_is_empty() -> None:
    listing = [_fs("a/index.md", 1), _fs("b/index.md", 2)]
    first = compute_diff({}, listing)
    applied = {entry.path: entry.mtime for entry in first.added}

    second = compute_diff(applied, listing)

    assert len(first.added) == 2
    assert second.is_empty


def test_accepts_stored_summaries() -> None:
    stored = [EntrySummary(path="a/index.md", mtime="2024-01-01T00:00:00Z")]

    diff = compute_diff(stored, [_fs("a/index.md", 1_704_067_200_001)])

    assert [entry.path for entry in diff.modified] == ["a/index.md"]


def test_duplicate_listing_paths_are_counted_once() -> None:
    listing = [_fs("a/index.md", 1), _fs("a/index.md", 2)]

    diff = compute_diff({}, listing)

    assert [entry.mtime for entry in diff.added] == [1]


def test_invalid_stored_path_raises() -> None:
    with pytest.raises(DiffComputeError):
        compute_diff({"": 1}, [])
