"""Single-flight scheduling with a quiet window after user input."""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from lifespeed.cache import CacheError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlightScheduler(Generic[T]):
    """Run ``task`` on demand unless it is already running or input is recent.

    :meth:`attempt` is the only entry point callers use. It returns ``None``
    without queueing a retry when a run is in flight or when input was noted
    less than ``quiet_window`` seconds ago. Cache and I/O failures raised by
    the task are logged and swallowed; the next attempt simply tries again.
    """

    def __init__(
        self,
        task: Callable[[], Awaitable[T]],
        *,
        quiet_window: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "reconciliation",
    ) -> None:
        self._task = task
        self._quiet_window = quiet_window
        self._clock = clock
        self._name = name
        self._last_input: Optional[float] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def note_input(self) -> None:
        """Record user activity; attempts within the quiet window are skipped."""
        self._last_input = self._clock()

    def in_quiet_window(self) -> bool:
        """Return whether input was observed within the quiet window."""
        if self._last_input is None:
            return False
        return self._clock() - self._last_input < self._quiet_window

    async def attempt(self) -> Optional[T]:
        """Run the task if both guards allow it and return its result."""
        if self._running:
            LOGGER.debug("Skipping %s; already running", self._name)
            return None
        if self.in_quiet_window():
            LOGGER.debug("Skipping %s; user input was observed recently", self._name)
            return None

        self._running = True
        try:
            return await self._task()
        except (CacheError, OSError) as exc:
            LOGGER.warning("%s failed; will retry on next attempt: %s", self._name, exc)
            return None
        finally:
            self._running = False


__all__ = ["SingleFlightScheduler"]
