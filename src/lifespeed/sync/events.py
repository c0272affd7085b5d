"""Change notifications emitted by the entry cache engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Union

from lifespeed.cache import EntrySummary

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class EntriesChanged:
    """The store changed; ``entries`` is the refreshed full list.

    Attributes:
        entries: Every stored summary, newest modification first.
        reason: Operation that produced the change (``index``, ``reconcile``,
            ``save``, ``delete``, ``rename``, ``verify``).
    """

    entries: list[EntrySummary]
    reason: str


@dataclass(slots=True)
class PartialResults:
    """Enough entries were indexed to render a preview before the pass ends."""

    entries: list[EntrySummary]
    processed: int
    total: int


@dataclass(slots=True)
class IndexProgress:
    """Progress of the initial indexing pipeline after a batch settled."""

    processed: int
    total: int

    @property
    def fraction(self) -> float:
        return self.processed / self.total if self.total else 1.0


@dataclass(slots=True)
class EntriesDiscovered:
    """The verification pass found on-disk entries missing from the view."""

    entries: list[EntrySummary] = field(default_factory=list)


@dataclass(slots=True)
class JournalSwitched:
    """The engine now serves a different journal store."""

    previous: str
    current: str


CacheEvent = Union[
    EntriesChanged, PartialResults, IndexProgress, EntriesDiscovered, JournalSwitched
]
Listener = Callable[[CacheEvent], None]


class ChangeNotifier:
    """Fan out cache events to subscribed listeners.

    A listener that raises is logged and does not prevent delivery to the
    remaining listeners.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, event: CacheEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pragma: no cover - listener bugs are logged only
                LOGGER.exception("Cache listener %r failed for %s", listener, type(event).__name__)


__all__ = [
    "CacheEvent",
    "ChangeNotifier",
    "EntriesChanged",
    "EntriesDiscovered",
    "IndexProgress",
    "JournalSwitched",
    "Listener",
    "PartialResults",
]
