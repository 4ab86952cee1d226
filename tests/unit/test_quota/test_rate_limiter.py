"""Tests for per-agent daily quotas."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from fragmentscan.config.settings import QuotaConfig
from fragmentscan.domain.models import QuotaAccepted, QuotaRejected, ScanKind
from fragmentscan.quota.rate_limiter import RateLimiter, quota_key
from fragmentscan.storage.base import StorageError
from fragmentscan.storage.memory import InMemoryStore

DAY = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


class TestTryConsume:
    def test_fourth_scan_rejected(self, store: InMemoryStore) -> None:
        limiter = RateLimiter(store, QuotaConfig(limits={"barcode": 3}, timezone="UTC"))

        decisions = [limiter.try_consume("agent-7", ScanKind.BARCODE, DAY) for _ in range(4)]

        assert [type(d) for d in decisions] == [
            QuotaAccepted, QuotaAccepted, QuotaAccepted, QuotaRejected,
        ]
        assert decisions[-1] == QuotaRejected(kind=ScanKind.BARCODE, count=3, limit=3)

    def test_rejection_does_not_mutate(self, store: InMemoryStore) -> None:
        limiter = RateLimiter(store, QuotaConfig(limits={"barcode": 1}, timezone="UTC"))
        limiter.try_consume("agent-7", ScanKind.BARCODE, DAY)
        limiter.try_consume("agent-7", ScanKind.BARCODE, DAY)
        limiter.try_consume("agent-7", ScanKind.BARCODE, DAY)

        assert limiter.count("agent-7", ScanKind.BARCODE, DAY) == 1

    def test_next_day_accepted_again(self, store: InMemoryStore) -> None:
        limiter = RateLimiter(store, QuotaConfig(limits={"barcode": 3}, timezone="UTC"))
        for _ in range(3):
            limiter.try_consume("agent-7", ScanKind.BARCODE, DAY)

        decision = limiter.try_consume("agent-7", ScanKind.BARCODE, DAY + timedelta(days=1))

        assert decision == QuotaAccepted(kind=ScanKind.BARCODE, count=1, limit=3)

    def test_counts_are_per_agent_and_kind(self, rate_limiter: RateLimiter) -> None:
        for _ in range(3):
            rate_limiter.try_consume("agent-7", ScanKind.FRAGMENT_TAG, DAY)

        assert isinstance(rate_limiter.try_consume("agent-8", ScanKind.FRAGMENT_TAG, DAY), QuotaAccepted)
        assert isinstance(rate_limiter.try_consume("agent-7", ScanKind.BARCODE, DAY), QuotaAccepted)
        assert isinstance(rate_limiter.try_consume("agent-7", ScanKind.FRAGMENT_TAG, DAY), QuotaRejected)

    def test_rfid_kinds_share_one_counter(self, rate_limiter: RateLimiter) -> None:
        rate_limiter.try_consume("agent-7", ScanKind.FRAGMENT_TAG, DAY)
        rate_limiter.try_consume("agent-7", ScanKind.GENERIC_RFID, DAY)
        rate_limiter.try_consume("agent-7", ScanKind.FRAGMENT_TAG, DAY)

        assert rate_limiter.try_consume("agent-7", ScanKind.GENERIC_RFID, DAY) == QuotaRejected(
            kind=ScanKind.GENERIC_RFID, count=3, limit=3
        )
        assert rate_limiter.count("agent-7", ScanKind.FRAGMENT_TAG, DAY) == 3
        assert rate_limiter.count("agent-7", ScanKind.GENERIC_RFID, DAY) == 3

    def test_ungrouped_kinds_count_separately(self, store: InMemoryStore) -> None:
        config = QuotaConfig(
            limits={"fragment_tag": 1, "generic_rfid": 1}, groups={}, timezone="UTC"
        )
        limiter = RateLimiter(store, config)
        limiter.try_consume("agent-7", ScanKind.FRAGMENT_TAG, DAY)

        assert isinstance(limiter.try_consume("agent-7", ScanKind.GENERIC_RFID, DAY), QuotaAccepted)
        assert isinstance(limiter.try_consume("agent-7", ScanKind.FRAGMENT_TAG, DAY), QuotaRejected)

    def test_unlisted_kind_unlimited_by_default(self, rate_limiter: RateLimiter) -> None:
        for _ in range(50):
            decision = rate_limiter.try_consume("agent-7", ScanKind.UNKNOWN, DAY)
        assert decision == QuotaAccepted(kind=ScanKind.UNKNOWN, count=50, limit=None)

    def test_default_limit_applies_to_unlisted_kinds(self, store: InMemoryStore) -> None:
        limiter = RateLimiter(store, QuotaConfig(limits={}, default_limit=1, timezone="UTC"))
        limiter.try_consume("agent-7", ScanKind.UNKNOWN, DAY)

        assert isinstance(limiter.try_consume("agent-7", ScanKind.UNKNOWN, DAY), QuotaRejected)

    def test_zero_limit_rejects_everything(self, store: InMemoryStore) -> None:
        limiter = RateLimiter(store, QuotaConfig(limits={"barcode": 0}))
        assert limiter.try_consume("agent-7", ScanKind.BARCODE, DAY) == QuotaRejected(
            kind=ScanKind.BARCODE, count=0, limit=0
        )


class TestCalendar:
    def test_day_key_follows_configured_timezone(self, store: InMemoryStore) -> None:
        limiter = RateLimiter(store, QuotaConfig(timezone="America/New_York"))
        late_utc = datetime(2025, 3, 15, 2, 0, tzinfo=timezone.utc)

        assert limiter.day_key(late_utc) == "2025-03-14"

    def test_rollover_at_local_midnight(self, store: InMemoryStore) -> None:
        limiter = RateLimiter(
            store, QuotaConfig(limits={"rfid": 1}, timezone="Europe/Berlin")
        )
        before = datetime(2025, 3, 14, 22, 59, tzinfo=timezone.utc)  # 23:59 in Berlin
        after = datetime(2025, 3, 14, 23, 1, tzinfo=timezone.utc)  # 00:01 in Berlin

        limiter.try_consume("agent-7", ScanKind.FRAGMENT_TAG, before)

        assert isinstance(limiter.try_consume("agent-7", ScanKind.FRAGMENT_TAG, after), QuotaAccepted)

    def test_counter_key_layout(self, rate_limiter: RateLimiter, store: InMemoryStore) -> None:
        rate_limiter.try_consume("agent-7", ScanKind.BARCODE, DAY)
        assert store.get(quota_key("agent-7", "barcode", "2025-03-14")) == 1

    def test_grouped_kinds_use_group_key(self, rate_limiter: RateLimiter, store: InMemoryStore) -> None:
        rate_limiter.try_consume("agent-7", ScanKind.GENERIC_RFID, DAY)
        assert store.get(quota_key("agent-7", "rfid", "2025-03-14")) == 1


class TestRemaining:
    def test_remaining(self, rate_limiter: RateLimiter) -> None:
        rate_limiter.try_consume("agent-7", ScanKind.FRAGMENT_TAG, DAY)
        assert rate_limiter.remaining("agent-7", ScanKind.FRAGMENT_TAG, DAY) == 2
        assert rate_limiter.remaining("agent-7", ScanKind.UNKNOWN, DAY) is None


class RacingStore(InMemoryStore):
    """Store where another writer sneaks in before every compare-and-set."""

    def __init__(self, wins: int) -> None:
        super().__init__()
        self.wins = wins

    def compare_and_set(self, key, expected, value):
        if self.wins > 0:
            self.wins -= 1
            self.set(key, (self.get(key) or 0) + 1)
        return super().compare_and_set(key, expected, value)


class TestConcurrency:
    def test_lost_race_rechecks_limit(self) -> None:
        store = RacingStore(wins=1)
        limiter = RateLimiter(store, QuotaConfig(limits={"barcode": 1}, timezone="UTC"))

        decision = limiter.try_consume("agent-7", ScanKind.BARCODE, DAY)

        assert decision == QuotaRejected(kind=ScanKind.BARCODE, count=1, limit=1)
        assert limiter.count("agent-7", ScanKind.BARCODE, DAY) == 1

    def test_lost_race_retries(self) -> None:
        store = RacingStore(wins=2)
        limiter = RateLimiter(store, QuotaConfig(limits={"barcode": 10}, timezone="UTC"))

        decision = limiter.try_consume("agent-7", ScanKind.BARCODE, DAY)

        assert decision == QuotaAccepted(kind=ScanKind.BARCODE, count=3, limit=10)

    def test_endless_contention_raises(self) -> None:
        store = RacingStore(wins=1000)
        limiter = RateLimiter(store, QuotaConfig(limits={}, timezone="UTC"))

        with pytest.raises(StorageError):
            limiter.try_consume("agent-7", ScanKind.UNKNOWN, DAY)
