"""Filesystem watch helpers for journal folders."""

from .service import JournalWatcher

__all__ = ["JournalWatcher"]
