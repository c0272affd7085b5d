"""Tests for modification time normalization."""

from __future__ import annotations

import pytest

from lifespeed.cache import format_mtime, normalize_mtime, now_ms


def test_iso_string_and_epoch_millis_normalize_equally() -> None:
    assert normalize_mtime("2024-01-01T00:00:00.000Z") == 1_704_067_200_000
    assert normalize_mtime(1_704_067_200_000) == 1_704_067_200_000


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-01-01T00:00:00+02:00", 1_704_060_000_000),
        ("2024-01-01T00:00:00.250Z", 1_704_067_200_250),
        ("2024-01-01T00:00:00", 1_704_067_200_000),
        ("1704067200000", 1_704_067_200_000),
        (1_704_067_200_000.9, 1_704_067_200_000),
    ],
)
def test_normalize_mtime_parses_supported_forms(value: object, expected: int) -> None:
    assert normalize_mtime(value) == expected  # type: ignore[arg-type]


@pytest.mark.parametrize("value", [None, "", "   ", "yesterday", float("nan"), True])
def test_normalize_mtime_defaults_to_zero(value: object) -> None:
    assert normalize_mtime(value) == 0  # type: ignore[arg-type]


def test_format_mtime_keeps_millisecond_precision() -> None:
    text = format_mtime(1_704_067_200_123)

    assert text == "2024-01-01T00:00:00.123Z"
    assert normalize_mtime(text) == 1_704_067_200_123


def test_now_ms_is_epoch_milliseconds() -> None:
    assert now_ms() > 1_704_067_200_000
