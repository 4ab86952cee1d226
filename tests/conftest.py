"""Shared test fixtures for the fragmentscan test suite.

Provides a manual clock, in-memory store and a fully wired pipeline so
tests never wait on real timers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

import pytest

from fragmentscan.config.settings import QuotaConfig
from fragmentscan.dispatch.dispatcher import ScanDispatcher
from fragmentscan.dispatch.station import ScanStation
from fragmentscan.domain.models import RawKeyEvent, ScanKind, ScanToken
from fragmentscan.quota.rate_limiter import RateLimiter
from fragmentscan.scanner.clock import ManualScheduler
from fragmentscan.storage.memory import InMemoryStore

START = datetime(2025, 3, 14, 9, 30, 0)


# ---------------------------------------------------------------------------
# Clock / Store Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scheduler() -> ManualScheduler:
    """A manual clock starting at a fixed morning."""
    return ManualScheduler(start=START)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


# ---------------------------------------------------------------------------
# Pipeline Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quota_config() -> QuotaConfig:
    """Reference limits: RFID tags 3/day combined, barcodes 10/day, others unlimited."""
    return QuotaConfig(
        limits={"rfid": 3, "barcode": 10},
        timezone="UTC",
    )


@pytest.fixture
def rate_limiter(store: InMemoryStore, quota_config: QuotaConfig) -> RateLimiter:
    return RateLimiter(store, quota_config)


@pytest.fixture
def dispatcher(
    rate_limiter: RateLimiter, store: InMemoryStore, scheduler: ManualScheduler
) -> ScanDispatcher:
    return ScanDispatcher(rate_limiter, store, clock=scheduler.now)


@pytest.fixture
def station(dispatcher: ScanDispatcher, scheduler: ManualScheduler) -> ScanStation:
    station = ScanStation(dispatcher, scheduler, quiescence_window=0.1)
    station.sign_in("agent-7")
    return station


# ---------------------------------------------------------------------------
# Event Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_token(scheduler: ManualScheduler) -> Callable[[str], ScanToken]:
    def _make(text: str) -> ScanToken:
        return ScanToken(raw_text=text, completed_at=scheduler.now())

    return _make


@pytest.fixture
def type_burst(scheduler: ManualScheduler) -> Callable[..., None]:
    """Deliver ``text`` to ``sink`` one key at a time, ``gap`` seconds apart."""

    def _type(sink, text: str, gap: float = 0.005, text_input: bool = False) -> None:
        for char in text:
            sink.on_key_event(
                RawKeyEvent(key=char, target_is_text_input=text_input, timestamp=scheduler.now())
            )
            scheduler.advance(gap)

    return _type
