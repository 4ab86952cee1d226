"""REST API for a scan station.

The kiosk UI forwards every key press it sees to this server; the
station buffers them, completes bursts and dispatches scans for the
agent signed in at the kiosk.

    GET    /health                   -> {"status": "ok", ...}
    POST   /session                  <- {"agent_id": "agent-7"}
    DELETE /session
    POST   /keys                     <- {"key": "F", "target_is_text_input": false}
    POST   /scans                    <- {"agent_id": "agent-7", "text": "FRAG-07"}
    POST   /scans/retry              -> results of resubmitted failed scans
    GET    /results                  -> recent dispatch results
    GET    /agents/{agent_id}/history
    GET    /agents/{agent_id}/quota
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from fragmentscan.config.settings import Settings
from fragmentscan.dispatch.dispatcher import ScanDispatcher
from fragmentscan.dispatch.feedback import LogFeedback
from fragmentscan.dispatch.station import ScanStation
from fragmentscan.domain.models import (
    DispatchResult,
    RawKeyEvent,
    ScanHistoryEntry,
    ScanKind,
)
from fragmentscan.quota.rate_limiter import RateLimiter
from fragmentscan.scanner.clock import AsyncioScheduler, Scheduler
from fragmentscan.storage import open_store
from fragmentscan.storage.base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class SessionRequest(BaseModel):
    agent_id: str = Field(min_length=1, description="Agent signed in at this kiosk")


class KeyEventRequest(BaseModel):
    key: str = Field(min_length=1, description="Character or named key ('Enter')")
    target_is_text_input: bool = Field(default=False)
    timestamp: datetime | None = Field(default=None)


class InjectRequest(BaseModel):
    agent_id: str = Field(min_length=1)
    text: str = Field(description="Complete token, as a scanner would type it")


class QuotaStatus(BaseModel):
    kind: ScanKind
    count: int
    limit: int | None
    remaining: int | None


class HealthResponse(BaseModel):
    status: str = "ok"
    agent_id: str | None = None
    buffered: int = 0
    timer_pending: bool = False
    dropped_tokens: int = 0
    failed_tokens: int = 0


class KeyEventResponse(BaseModel):
    status: str = "ok"
    buffered: int = 0


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | None = None,
    store: KeyValueStore | None = None,
    scheduler: Scheduler | None = None,
) -> FastAPI:
    """Create the scan station application.

    Args:
        settings: Configuration; defaults are used when omitted.
        store: Optional pre-built store (for testing). When omitted the
            store is opened from ``settings.storage`` and closed on
            shutdown.
        scheduler: Optional scheduler (for testing). Defaults to the
            running asyncio loop.
    """
    settings = settings or Settings()
    owns_store = store is None
    store = store if store is not None else open_store(settings.storage)
    scheduler = scheduler or AsyncioScheduler()

    dispatcher = ScanDispatcher(RateLimiter(store, settings.quota), store, clock=scheduler.now)
    dispatcher.add_observer(LogFeedback())
    station = ScanStation(
        dispatcher,
        scheduler,
        quiescence_window=settings.scanner.quiescence_window,
        terminator_keys=settings.scanner.terminator_keys,
        max_recent=settings.server.max_recent_results,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Scan station started")
        yield
        station.accumulator.flush()
        if owns_store:
            store.close()
        logger.info("Scan station stopped")

    app = FastAPI(
        title="fragmentscan station",
        description="Keyboard-wedge RFID / barcode scan station",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.station = station
    app.state.dispatcher = dispatcher

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"error": "storage_unavailable", "message": str(exc)},
        )

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="ok",
            agent_id=station.agent_id,
            buffered=len(station.accumulator.buffer),
            timer_pending=station.accumulator.pending,
            dropped_tokens=station.dropped_tokens,
            failed_tokens=len(station.failed_tokens),
        )

    @app.post("/session")
    async def sign_in(request: SessionRequest) -> dict[str, str]:
        station.sign_in(request.agent_id)
        return {"status": "ok", "agent_id": request.agent_id}

    @app.delete("/session")
    async def sign_out() -> dict[str, str]:
        station.sign_out()
        return {"status": "ok"}

    @app.post("/keys")
    async def receive_key(request: KeyEventRequest) -> KeyEventResponse:
        event = RawKeyEvent(
            key=request.key,
            target_is_text_input=request.target_is_text_input,
            timestamp=request.timestamp or scheduler.now(),
        )
        failures = station.failure_count
        station.on_key_event(event)
        if station.failure_count > failures:
            raise station.last_error
        return KeyEventResponse(status="ok", buffered=len(station.accumulator.buffer))

    @app.post("/scans")
    async def inject_scan(request: InjectRequest) -> DispatchResult:
        return dispatcher.inject(request.agent_id, request.text)

    @app.post("/scans/retry")
    async def retry_failed_scans() -> list[DispatchResult]:
        return station.retry_failed()

    @app.get("/results")
    async def recent_results() -> list[DispatchResult]:
        return station.recent_results

    @app.get("/agents/{agent_id}/history")
    async def agent_history(agent_id: str) -> list[ScanHistoryEntry]:
        return dispatcher.history(agent_id)

    @app.get("/agents/{agent_id}/quota")
    async def agent_quota(agent_id: str) -> list[QuotaStatus]:
        limiter = dispatcher.rate_limiter
        now = scheduler.now()
        return [
            QuotaStatus(
                kind=kind,
                count=limiter.count(agent_id, kind, now),
                limit=limiter.limit_for(kind),
                remaining=limiter.remaining(agent_id, kind, now),
            )
            for kind in ScanKind
        ]

    return app


# ---------------------------------------------------------------------------
# Standalone entry point
# ---------------------------------------------------------------------------

def main(settings: Settings | None = None) -> None:
    """Run the scan station server."""
    settings = settings or Settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
