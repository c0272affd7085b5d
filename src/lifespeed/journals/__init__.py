"""Journal registry helpers."""

from .manager import JournalError, JournalManager, default_journal

__all__ = ["JournalError", "JournalManager", "default_journal"]
