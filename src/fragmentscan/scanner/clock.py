"""Clock and timer capability for the scanner.

The accumulator never touches wall-clock time or event-loop timers
directly. It is handed a ``Scheduler``, so live stations run on the
asyncio event loop while tests and key-log replays drive time by hand
with ``ManualScheduler``.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable

logger = logging.getLogger(__name__)


class TimerHandle(ABC):
    """A pending callback that can be cancelled before it fires."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call repeatedly."""
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    """Abstract clock + one-shot timer source.

    Example usage::

        scheduler = AsyncioScheduler()
        handle = scheduler.call_later(0.1, flush)
        handle.cancel()
    """

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time."""
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds.

        Args:
            delay: Seconds to wait, must not be negative.
            callback: Zero-argument callable.

        Returns:
            A handle that cancels the callback.
        """
        ...


# ---------------------------------------------------------------------------
# asyncio implementation
# ---------------------------------------------------------------------------


class _AsyncioTimerHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """Schedules callbacks on an asyncio event loop.

    The loop is looked up lazily on the first ``call_later`` when none
    is given, so the scheduler can be built before the loop starts
    (e.g. when wiring the FastAPI application).
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def now(self) -> datetime:
        return datetime.now()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return _AsyncioTimerHandle(self._loop.call_later(delay, callback))


# ---------------------------------------------------------------------------
# Manual implementation
# ---------------------------------------------------------------------------


class _ManualTimerHandle(TimerHandle):
    def __init__(self, due: datetime, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Scheduler whose clock only moves when ``advance`` is called.

    Timers that come due during an advance fire in due-time order, and
    the clock reads each timer's due time while its callback runs.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2025, 1, 1, 12, 0, 0)
        self._timers: list[tuple[datetime, int, _ManualTimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        handle = _ManualTimerHandle(self._now + timedelta(seconds=delay), callback)
        heapq.heappush(self._timers, (handle.due, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        """Number of timers that are still armed."""
        return sum(1 for _, _, h in self._timers if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing timers that come due.

        Returns:
            Number of callbacks that ran.
        """
        if seconds < 0:
            raise ValueError(f"Cannot move the clock backwards ({seconds}s)")
        return self.advance_to(self._now + timedelta(seconds=seconds))

    def advance_to(self, when: datetime) -> int:
        """Move the clock to ``when`` (no-op if it is in the past)."""
        fired = 0
        while self._timers and self._timers[0][0] <= when:
            due, _, handle = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            handle.callback()
            fired += 1
        self._now = max(self._now, when)
        return fired
