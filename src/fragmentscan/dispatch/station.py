"""A scan station: one accumulator feeding one dispatcher.

Each physical kiosk gets its own station, so two kiosks never share a
keystroke buffer. The agent currently signed in at the kiosk owns every
token the station completes.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from fragmentscan.dispatch.dispatcher import ScanDispatcher
from fragmentscan.domain.models import DispatchResult, RawKeyEvent, ScanToken
from fragmentscan.scanner.accumulator import DEFAULT_QUIESCENCE_WINDOW, InputAccumulator
from fragmentscan.scanner.clock import Scheduler
from fragmentscan.storage.base import StorageError

logger = logging.getLogger(__name__)


class ScanStation:
    """Wires key input for one kiosk to the shared dispatcher.

    Args:
        dispatcher: Pipeline that receives completed tokens.
        scheduler: Clock and timer source for the accumulator.
        quiescence_window: Seconds of silence that end a burst.
        terminator_keys: Keys that end a burst immediately.
        max_recent: How many dispatch results, and how many failed
            tokens awaiting retry, to keep.
    """

    def __init__(
        self,
        dispatcher: ScanDispatcher,
        scheduler: Scheduler,
        quiescence_window: float = DEFAULT_QUIESCENCE_WINDOW,
        terminator_keys: Iterable[str] = ("Enter",),
        max_recent: int = 50,
    ) -> None:
        self._dispatcher = dispatcher
        self._accumulator = InputAccumulator(
            on_token=self._on_token,
            scheduler=scheduler,
            quiescence_window=quiescence_window,
            terminator_keys=terminator_keys,
        )
        self._agent_id: str | None = None
        self._recent: deque[DispatchResult] = deque(maxlen=max_recent)
        self._dropped = 0
        self._failed: deque[tuple[str, ScanToken]] = deque(maxlen=max_recent)
        self._failure_count = 0
        self._last_error: StorageError | None = None

    @property
    def agent_id(self) -> str | None:
        return self._agent_id

    @property
    def accumulator(self) -> InputAccumulator:
        return self._accumulator

    @property
    def dispatcher(self) -> ScanDispatcher:
        return self._dispatcher

    @property
    def recent_results(self) -> list[DispatchResult]:
        return list(self._recent)

    @property
    def dropped_tokens(self) -> int:
        """Tokens completed while nobody was signed in."""
        return self._dropped

    @property
    def failed_tokens(self) -> list[ScanToken]:
        """Tokens completed but not recorded because the store failed."""
        return [token for _, token in self._failed]

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_error(self) -> StorageError | None:
        return self._last_error

    def sign_in(self, agent_id: str) -> None:
        if self._agent_id != agent_id:
            self._accumulator.reset()
        self._agent_id = agent_id
        logger.info("Agent %s signed in", agent_id)

    def sign_out(self) -> None:
        self._accumulator.reset()
        if self._agent_id is not None:
            logger.info("Agent %s signed out", self._agent_id)
        self._agent_id = None

    def on_key_event(self, event: RawKeyEvent) -> None:
        self._accumulator.on_key_event(event)

    def retry_failed(self) -> list[DispatchResult]:
        """Resubmit tokens whose dispatch failed on a storage error.

        Tokens that fail again stay queued for the next retry.
        """
        pending = list(self._failed)
        self._failed.clear()
        results = []
        for agent_id, token in pending:
            result = self._submit(agent_id, token)
            if result is not None:
                results.append(result)
        return results

    def _on_token(self, token: ScanToken) -> None:
        if self._agent_id is None:
            self._dropped += 1
            logger.warning("Dropping scan %r: no agent signed in", token.raw_text)
            return
        self._submit(self._agent_id, token)

    def _submit(self, agent_id: str, token: ScanToken) -> DispatchResult | None:
        # Runs from timer callbacks too, where a raised error would only
        # reach the event loop's exception handler.
        try:
            result = self._dispatcher.submit(agent_id, token)
        except StorageError as e:
            self._failed.append((agent_id, token))
            self._failure_count += 1
            self._last_error = e
            logger.error("Scan %r for %s not recorded: %s", token.raw_text, agent_id, e)
            return None
        self._recent.append(result)
        return result
