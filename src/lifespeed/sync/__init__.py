"""Indexing, reconciliation, and verification passes over the entry store."""

from .engine import ActivationResult, CacheEngine
from .events import (
    CacheEvent,
    ChangeNotifier,
    EntriesChanged,
    EntriesDiscovered,
    IndexProgress,
    JournalSwitched,
    PartialResults,
)
from .indexer import IndexingPipeline, IndexResult
from .reconciler import Reconciler, ReconcileResult
from .scheduler import SingleFlightScheduler
from .verifier import FilesystemVerifier, synthesize_summary
from .view import EntryView

__all__ = [
    "ActivationResult",
    "CacheEngine",
    "CacheEvent",
    "ChangeNotifier",
    "EntriesChanged",
    "EntriesDiscovered",
    "EntryView",
    "FilesystemVerifier",
    "IndexProgress",
    "IndexResult",
    "IndexingPipeline",
    "JournalSwitched",
    "PartialResults",
    "ReconcileResult",
    "Reconciler",
    "SingleFlightScheduler",
    "synthesize_summary",
]
