"""Persistent entry metadata cache: models, store, and diffing."""

from .diff import compute_diff
from .errors import (
    BatchMetadataError,
    CacheError,
    DiffComputeError,
    ListingError,
    StoreClosedError,
    StoreError,
    StoreUnavailableError,
)
from .models import EXCERPT_LIMIT, CacheMeta, DiffResult, EntrySummary, FsEntry
from .mtime import format_mtime, normalize_mtime, now_ms
from .naming import date_from_dirname, title_from_dirname
from .store import (
    DEFAULT_JOURNAL_ID,
    DEFAULT_STORE_NAME,
    MEMORY_STORE,
    SCHEMA_VERSION,
    EntryStore,
    normalize_folder,
    store_name_for,
    store_path_for,
)

__all__ = [
    "BatchMetadataError",
    "CacheError",
    "CacheMeta",
    "DEFAULT_JOURNAL_ID",
    "DEFAULT_STORE_NAME",
    "DiffComputeError",
    "DiffResult",
    "EXCERPT_LIMIT",
    "EntryStore",
    "EntrySummary",
    "FsEntry",
    "ListingError",
    "MEMORY_STORE",
    "SCHEMA_VERSION",
    "StoreClosedError",
    "StoreError",
    "StoreUnavailableError",
    "compute_diff",
    "date_from_dirname",
    "format_mtime",
    "normalize_folder",
    "normalize_mtime",
    "now_ms",
    "store_name_for",
    "store_path_for",
    "title_from_dirname",
]
