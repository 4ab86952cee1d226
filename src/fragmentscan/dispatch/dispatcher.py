"""Scan dispatcher: classify, gate, record and route completed tokens.

Order of operations for every token:

1. classify the text
2. ask the rate limiter for quota
3. accepted: append to the agent's history, call the kind's handler
   rejected: nothing is recorded and no handler runs
4. notify observers with the result
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from fragmentscan.domain.models import (
    ClassifiedScan,
    DispatchAccepted,
    DispatchRejected,
    DispatchResult,
    QuotaRejected,
    ScanHistoryEntry,
    ScanKind,
    ScanToken,
)
from fragmentscan.quota.rate_limiter import RateLimiter
from fragmentscan.scanner.classifier import classify
from fragmentscan.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

ScanHandler = Callable[[ClassifiedScan], None]
DispatchObserver = Callable[[DispatchResult], None]


def history_key(agent_id: str) -> str:
    return f"scan_history:{agent_id}"


class ScanDispatcher:
    """Routes accepted scans to per-kind handlers.

    At most one handler per kind; registering again replaces it.

    Args:
        rate_limiter: Quota gate consulted for every scan.
        store: Store holding the per-agent history logs.
        clock: Time source for injected scans. Defaults to
            ``datetime.now``.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        store: KeyValueStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._limiter = rate_limiter
        self._store = store
        self._clock = clock or datetime.now
        self._handlers: dict[ScanKind, ScanHandler] = {}
        self._observers: list[DispatchObserver] = []

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    def register_handler(self, kind: ScanKind, handler: ScanHandler) -> None:
        """Route accepted scans of ``kind`` to ``handler``.

        Raises:
            ValueError: If ``kind`` is ``ScanKind.UNKNOWN``.
        """
        if kind is ScanKind.UNKNOWN:
            raise ValueError("Unknown scans are never dispatched to a handler")
        if kind in self._handlers:
            logger.debug("Replacing handler for %s", kind.value)
        self._handlers[kind] = handler

    def unregister_handler(self, kind: ScanKind) -> None:
        self._handlers.pop(kind, None)

    def add_observer(self, observer: DispatchObserver) -> None:
        """Call ``observer`` with every dispatch result, accepted or not."""
        self._observers.append(observer)

    def submit(self, agent_id: str, token: ScanToken) -> DispatchResult:
        """Run one completed token through the pipeline.

        Raises:
            StorageError: If the quota or history store fails.
        """
        scan = classify(token)
        decision = self._limiter.try_consume(agent_id, scan.kind, scan.timestamp)

        result: DispatchResult
        if isinstance(decision, QuotaRejected):
            result = DispatchRejected(
                agent_id=agent_id,
                kind=scan.kind,
                raw_text=scan.raw_text,
                count=decision.count,
                limit=decision.limit,
            )
        else:
            self._append_history(agent_id, scan)
            handler = self._handlers.get(scan.kind)
            if handler is not None:
                handler(scan)
            result = DispatchAccepted(agent_id=agent_id, scan=scan, handled=handler is not None)
            logger.info("Accepted %s scan %r for %s", scan.kind.value, scan.raw_text, agent_id)

        for observer in self._observers:
            observer(result)
        return result

    def inject(self, agent_id: str, text: str, now: datetime | None = None) -> DispatchResult:
        """Submit ``text`` as if a scanner had just typed it.

        Bypasses the accumulator entirely; used by tests, the CLI and
        the station API to simulate scans without hardware.
        """
        return self.submit(agent_id, ScanToken(raw_text=text, completed_at=now or self._clock()))

    def history(self, agent_id: str) -> list[ScanHistoryEntry]:
        """All accepted scans for ``agent_id``, oldest first."""
        entries = self._store.get(history_key(agent_id)) or []
        return [ScanHistoryEntry.model_validate(entry) for entry in entries]

    def _append_history(self, agent_id: str, scan: ClassifiedScan) -> None:
        key = history_key(agent_id)
        entry = ScanHistoryEntry(
            agent_id=agent_id, kind=scan.kind, raw_text=scan.raw_text, timestamp=scan.timestamp
        )
        entries = self._store.get(key) or []
        entries.append(entry.model_dump(mode="json"))
        self._store.set(key, entries)
