"""Per-agent daily scan quotas.

Counters live in the shared key-value store under
``scans:{counter}:{agent_id}:{day}``, where the counter is the kind's
quota group (``rfid`` for both RFID tag kinds by default). A new day produces a new key, so
counters reset at midnight without ever being deleted.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from fragmentscan.config.settings import QuotaConfig
from fragmentscan.domain.models import QuotaAccepted, QuotaDecision, QuotaRejected, ScanKind
from fragmentscan.storage.base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 8


def quota_key(agent_id: str, counter: str, day: str) -> str:
    return f"scans:{counter}:{agent_id}:{day}"


class RateLimiter:
    """Accepts or rejects scans against per-counter daily limits.

    Args:
        store: Shared store holding the counters.
        config: Limits and calendar settings. Validated on construction
            of the ``QuotaConfig`` itself, so a negative limit never
            reaches this class.
    """

    def __init__(self, store: KeyValueStore, config: QuotaConfig | None = None) -> None:
        self._store = store
        self._config = config or QuotaConfig()
        self._tz: tzinfo | None = ZoneInfo(self._config.timezone) if self._config.timezone else None

    @property
    def config(self) -> QuotaConfig:
        return self._config

    def limit_for(self, kind: ScanKind) -> int | None:
        """Daily limit for ``kind``; ``None`` means unlimited."""
        return self._config.limit_for(kind)

    def day_key(self, now: datetime) -> str:
        """Calendar date of ``now`` in the configured timezone.

        Naive datetimes are taken as host local time.
        """
        return now.astimezone(self._tz).date().isoformat()

    def count(self, agent_id: str, kind: ScanKind, now: datetime) -> int:
        """Scans counted against ``kind``'s counter for ``agent_id`` on the day of ``now``.

        Kinds sharing a counter report the same count.
        """
        key = quota_key(agent_id, self._config.counter_for(kind), self.day_key(now))
        return self._store.get(key) or 0

    def remaining(self, agent_id: str, kind: ScanKind, now: datetime) -> int | None:
        limit = self.limit_for(kind)
        if limit is None:
            return None
        return max(limit - self.count(agent_id, kind, now), 0)

    def try_consume(self, agent_id: str, kind: ScanKind, now: datetime) -> QuotaDecision:
        """Count one scan if the quota allows it.

        The read and the increment form a single compare-and-set step;
        on a lost race the counter is re-read and the limit re-checked.

        Raises:
            StorageError: If the store fails or keeps losing races.
        """
        key = quota_key(agent_id, self._config.counter_for(kind), self.day_key(now))
        limit = self.limit_for(kind)

        for _ in range(MAX_CAS_ATTEMPTS):
            current = self._store.get(key)
            count = current or 0
            if limit is not None and count >= limit:
                logger.info(
                    "Quota exceeded for %s: %s %d/%d", agent_id, kind.value, count, limit
                )
                return QuotaRejected(kind=kind, count=count, limit=limit)
            if self._store.compare_and_set(key, current, count + 1):
                return QuotaAccepted(kind=kind, count=count + 1, limit=limit)
            logger.debug("Lost update race on %s, retrying", key)

        raise StorageError(
            f"Could not update {key} after {MAX_CAS_ATTEMPTS} attempts", backend="quota"
        )
