"""Management of multiple named journals."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Optional

from lifespeed.cache import DEFAULT_JOURNAL_ID, now_ms
from lifespeed.config import JournalSettings, LifespeedConfig
from lifespeed.platform import LocalJournalPlatform

LOGGER = logging.getLogger(__name__)

_ID_UNSAFE = re.compile(r"[^a-z0-9]+")
_ID_MAX_LENGTH = 30
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class JournalError(ValueError):
    """Raised when a journal operation cannot be applied."""


def _base36(value: int) -> str:
    digits = ""
    while True:
        value, remainder = divmod(value, 36)
        digits = _BASE36[remainder] + digits
        if not value:
            return digits


def default_journal(entries_dir: str) -> JournalSettings:
    """Return the implicit journal used when none are configured."""
    name = Path(entries_dir).expanduser().name or "Journal"
    return JournalSettings(id=DEFAULT_JOURNAL_ID, name=name, path=entries_dir)


class JournalManager:
    """Track configured journals and which one is active.

    Removing a journal never deletes files from disk. The manager always keeps
    at least one journal, and the active journal cannot be removed.
    """

    def __init__(self, config: LifespeedConfig, *, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._journals: list[JournalSettings] = [item.model_copy() for item in config.journals]
        if not self._journals:
            self._journals.append(default_journal(config.default_entries_dir))
        self._active = self.get(config.active_journal) or self._journals[0]

    @property
    def journals(self) -> list[JournalSettings]:
        return list(self._journals)

    @property
    def active(self) -> JournalSettings:
        return self._active

    @property
    def active_id(self) -> str:
        return self._active.id

    def get(self, journal_id: str) -> Optional[JournalSettings]:
        return next((item for item in self._journals if item.id == journal_id), None)

    def require(self, journal_id: str) -> JournalSettings:
        """Return the journal with ``journal_id``.

        Raises:
            JournalError: If no such journal is configured.
        """
        journal = self.get(journal_id)
        if journal is None:
            raise JournalError(f"Journal not found: {journal_id}")
        return journal

    def platform_for(self, journal_id: str, *, excerpt_length: int = 300) -> LocalJournalPlatform:
        """Return filesystem primitives for the folder of ``journal_id``.

        Raises:
            JournalError: If no such journal is configured.
        """
        journal = self.require(journal_id)
        return LocalJournalPlatform(Path(journal.path), excerpt_length=excerpt_length)

    def activate(self, journal_id: str) -> JournalSettings:
        """Mark ``journal_id`` as the active journal and return it."""
        journal = self.require(journal_id)
        if journal.id != self._active.id:
            LOGGER.info("Active journal %s -> %s", self._active.id, journal.id)
            self._active = journal
        return journal

    def add(self, name: str, path: str | Path) -> JournalSettings:
        """Register a journal at ``path`` with a generated, unique id."""
        if not name.strip():
            raise JournalError("Journal name must not be empty.")
        journal = JournalSettings(id=self._generate_id(name), name=name.strip(), path=str(path))
        self._journals.append(journal)
        LOGGER.info("Added journal %s (%s) at %s", journal.id, journal.name, journal.path)
        return journal

    def remove(self, journal_id: str) -> bool:
        """Forget a journal; returns ``False`` for the last or the active journal."""
        if len(self._journals) <= 1 or journal_id == self._active.id:
            return False
        before = len(self._journals)
        self._journals = [item for item in self._journals if item.id != journal_id]
        removed = len(self._journals) < before
        if removed:
            LOGGER.info("Removed journal %s", journal_id)
        return removed

    def rename(self, journal_id: str, name: str) -> JournalSettings:
        """Change a journal's display name; its id and store are unchanged."""
        if not name.strip():
            raise JournalError("Journal name must not be empty.")
        journal = self.require(journal_id)
        journal.name = name.strip()
        LOGGER.info("Renamed journal %s to %s", journal_id, journal.name)
        return journal

    def to_settings_data(self) -> dict[str, Any]:
        """Return the ``journals``/``active_journal`` config sections."""
        return {
            "active_journal": self._active.id,
            "journals": [item.model_dump() for item in self._journals],
        }

    def _generate_id(self, name: str) -> str:
        base = _ID_UNSAFE.sub("-", name.lower()).strip("-")[:_ID_MAX_LENGTH]
        suffix = _base36(self._clock())
        if not base:
            return f"journal-{suffix}"
        if self.get(base) is None:
            return base
        return f"{base}-{suffix}"


__all__ = ["JournalError", "JournalManager", "default_journal"]
