"""Station HTTP boundary for fragmentscan.

Public API:
    create_app -- FastAPI application for one scan station
    StationClient -- httpx client that types tokens into a station
"""

from fragmentscan.station.client import StationClient, StationClientError

__all__ = ["StationClient", "StationClientError", "create_app"]


def __getattr__(name: str) -> object:
    """Lazy import for the server, which pulls in FastAPI and uvicorn."""
    if name == "create_app":
        from fragmentscan.station.server import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
