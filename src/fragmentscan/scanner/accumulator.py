"""Keystroke accumulator that turns scanner bursts into tokens.

Keyboard-wedge scanners type a whole tag within a few milliseconds and
usually finish with Enter. Human typing is an order of magnitude slower.
The accumulator buffers characters and considers a burst complete when
either a terminator key arrives or the keyboard has been quiet for the
quiescence window.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from fragmentscan.domain.models import RawKeyEvent, ScanToken
from fragmentscan.scanner.clock import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_QUIESCENCE_WINDOW = 0.1


class InputAccumulator:
    """Buffers key events and emits one ScanToken per completed burst.

    Each station owns its own accumulator; nothing here is shared
    between instances. Events and timer callbacks are expected to arrive
    one at a time (a single event loop), so the buffer is not locked.

    Args:
        on_token: Called with every completed token.
        scheduler: Clock and timer source.
        quiescence_window: Seconds of silence after which the buffer is
            emitted.
        terminator_keys: Named keys that end a burst immediately.
    """

    def __init__(
        self,
        on_token: Callable[[ScanToken], None],
        scheduler: Scheduler,
        quiescence_window: float = DEFAULT_QUIESCENCE_WINDOW,
        terminator_keys: Iterable[str] = ("Enter",),
    ) -> None:
        if quiescence_window <= 0:
            raise ValueError(f"quiescence_window must be positive, got {quiescence_window}")
        self._on_token = on_token
        self._scheduler = scheduler
        self._window = quiescence_window
        self._terminators = frozenset(terminator_keys)
        self._buffer: list[str] = []
        self._last_event_time: datetime | None = None
        self._pending: TimerHandle | None = None

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    @property
    def pending(self) -> bool:
        """Whether an inactivity timer is armed."""
        return self._pending is not None

    @property
    def last_event_time(self) -> datetime | None:
        return self._last_event_time

    @property
    def quiescence_window(self) -> float:
        return self._window

    def on_key_event(self, event: RawKeyEvent) -> None:
        """Feed one key event into the accumulator."""
        if event.target_is_text_input:
            return

        if event.key in self._terminators:
            self._last_event_time = event.timestamp
            if self._buffer:
                self._cancel_timer()
                self._emit()
            return

        if len(event.key) != 1:
            # Modifier and navigation keys carry no character.
            logger.debug("Ignoring named key %r", event.key)
            return

        self._last_event_time = event.timestamp
        self._cancel_timer()
        self._buffer.append(event.key)
        self._pending = self._scheduler.call_later(self._window, self._on_timeout)

    def flush(self) -> None:
        """Emit whatever is buffered right now."""
        self._cancel_timer()
        if self._buffer:
            self._emit()

    def reset(self) -> None:
        """Discard the buffer without emitting it."""
        self._cancel_timer()
        if self._buffer:
            logger.debug("Discarding %d buffered characters", len(self._buffer))
        self._buffer.clear()

    def _on_timeout(self) -> None:
        self._pending = None
        if self._buffer:
            self._emit()

    def _cancel_timer(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _emit(self) -> None:
        token = ScanToken(raw_text="".join(self._buffer), completed_at=self._scheduler.now())
        self._buffer.clear()
        logger.debug("Burst complete: %r", token.raw_text)
        self._on_token(token)
