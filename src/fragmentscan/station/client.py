"""HTTP client for a scan station.

Lets another machine (or the ``send`` CLI command) play the part of a
keyboard-wedge scanner: every character of a token is posted as its own
key event, followed by the terminator, exactly as a USB scanner would
type it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class StationClientError(Exception):
    """Raised when a request to the station fails."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class StationClient:
    """Sends key events and injected scans to a station server.

    Example usage::

        async with StationClient("http://kiosk-1:8080") as client:
            await client.sign_in("agent-7")
            await client.send_token("FRAG-07")
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 10.0,
        inter_key_delay: float = 0.0,
        terminator: str = "Enter",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._inter_key_delay = inter_key_delay
        self._terminator = terminator
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the HTTP client and verify the station is reachable."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        try:
            resp = await self._client.get("/health")
            resp.raise_for_status()
            logger.info("Connected to station at %s", self._base_url)
        except httpx.HTTPError as e:
            await self._client.aclose()
            self._client = None
            raise StationClientError(f"Failed to connect to station: {e}", path="/health") from e

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from station")

    async def sign_in(self, agent_id: str) -> None:
        await self._request("POST", "/session", {"agent_id": agent_id})

    async def send_key(self, key: str, target_is_text_input: bool = False) -> None:
        await self._request(
            "POST", "/keys", {"key": key, "target_is_text_input": target_is_text_input}
        )

    async def send_token(self, text: str, terminate: bool = True) -> None:
        """Type ``text`` one key at a time, then the terminator.

        With ``terminate=False`` the station completes the burst on its
        own once the quiescence window passes.
        """
        for char in text:
            await self.send_key(char)
            if self._inter_key_delay:
                await asyncio.sleep(self._inter_key_delay)
        if terminate:
            await self.send_key(self._terminator)
        logger.debug("Typed token %r", text)

    async def inject(self, agent_id: str, text: str) -> dict[str, Any]:
        """Submit a complete token, bypassing the station's accumulator."""
        resp = await self._request("POST", "/scans", {"agent_id": agent_id, "text": text})
        return resp.json()

    async def results(self) -> list[dict[str, Any]]:
        resp = await self._request("GET", "/results")
        return resp.json()

    async def _request(
        self, method: str, path: str, payload: dict | None = None
    ) -> httpx.Response:
        if self._client is None:
            raise StationClientError("Not connected to station", path=path)
        try:
            resp = await self._client.request(method, path, json=payload)
            resp.raise_for_status()
            return resp
        except httpx.HTTPError as e:
            raise StationClientError(f"HTTP request to {path} failed: {e}", path=path) from e

    async def __aenter__(self) -> StationClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.disconnect()
