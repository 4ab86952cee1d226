"""Command-line interface for fragmentscan.

Provides the entry point for running a scan station server, simulating
scans without hardware, replaying recorded key logs and inspecting an
agent's quota and history.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="fragmentscan",
        description="Keyboard-wedge RFID / barcode scan station",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/fragmentscan.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("serve", help="Start the scan station HTTP server")

    inject_parser = subparsers.add_parser(
        "inject", help="Submit a complete token as if it had been scanned",
    )
    inject_parser.add_argument("--agent", required=True, help="Agent ID")
    inject_parser.add_argument("text", help="Token text, e.g. FRAG-07")

    replay_parser = subparsers.add_parser(
        "replay", help="Replay a JSON-lines key log through the accumulator",
    )
    replay_parser.add_argument("--agent", required=True, help="Agent ID")
    replay_parser.add_argument("log", type=Path, help="Key log, one event per line")

    send_parser = subparsers.add_parser(
        "send", help="Type a token into a remote station, key by key",
    )
    send_parser.add_argument("--url", default="http://localhost:8080", help="Station base URL")
    send_parser.add_argument("--agent", default=None, help="Sign this agent in first")
    send_parser.add_argument("--delay", type=float, default=0.0, help="Seconds between keys")
    send_parser.add_argument(
        "--no-enter", action="store_true",
        help="Omit the terminator and let the station time the burst out",
    )
    send_parser.add_argument("text", help="Token text")

    history_parser = subparsers.add_parser("history", help="Show an agent's scan history")
    history_parser.add_argument("--agent", required=True, help="Agent ID")

    quota_parser = subparsers.add_parser("quota", help="Show an agent's quota for today")
    quota_parser.add_argument("--agent", required=True, help="Agent ID")

    return parser.parse_args(argv)


def _build_dispatcher(settings, store, clock=None):
    from fragmentscan.dispatch.dispatcher import ScanDispatcher
    from fragmentscan.dispatch.feedback import LogFeedback
    from fragmentscan.quota.rate_limiter import RateLimiter

    dispatcher = ScanDispatcher(RateLimiter(store, settings.quota), store, clock=clock)
    dispatcher.add_observer(LogFeedback())
    return dispatcher


def _print_result(result) -> None:
    from fragmentscan.domain.models import DispatchAccepted

    if isinstance(result, DispatchAccepted):
        scan = result.scan
        print(f"ACCEPTED  {scan.kind.value:<13} {scan.raw_text}")
        if scan.payload is not None:
            print(f"          payload: {scan.payload.model_dump()}")
    else:
        print(f"REJECTED  {result.kind.value:<13} {result.raw_text} ({result.count}/{result.limit} today)")


def _inject(settings, args) -> None:
    from fragmentscan.storage import open_store

    with open_store(settings.storage) as store:
        dispatcher = _build_dispatcher(settings, store)
        _print_result(dispatcher.inject(args.agent, args.text))


def load_key_log(path: Path) -> list:
    """Read a JSON-lines key log into RawKeyEvents."""
    from fragmentscan.domain.models import RawKeyEvent

    events = []
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            events.append(RawKeyEvent.model_validate(json.loads(line)))
    return events


def _replay(settings, args) -> None:
    """Feed a recorded key log through a station on a manual clock.

    The clock jumps to each event's timestamp before the event is
    delivered, so quiescence timers fire exactly as they would have
    live.
    """
    from fragmentscan.dispatch.station import ScanStation
    from fragmentscan.scanner.clock import ManualScheduler
    from fragmentscan.storage import open_store

    events = load_key_log(args.log)
    if not events:
        print(f"No key events in {args.log}")
        return

    scheduler = ManualScheduler(start=events[0].timestamp)
    with open_store(settings.storage) as store:
        dispatcher = _build_dispatcher(settings, store, clock=scheduler.now)
        dispatcher.add_observer(_print_result)
        station = ScanStation(
            dispatcher,
            scheduler,
            quiescence_window=settings.scanner.quiescence_window,
            terminator_keys=settings.scanner.terminator_keys,
        )
        station.sign_in(args.agent)
        for event in events:
            scheduler.advance_to(event.timestamp)
            station.on_key_event(event)
        scheduler.advance(settings.scanner.quiescence_window)

    print(f"\nReplayed {len(events)} key events")


async def _send(settings, args) -> None:
    from fragmentscan.station.client import StationClient

    async with StationClient(
        base_url=args.url,
        inter_key_delay=args.delay,
        terminator=settings.scanner.terminator_keys[0],
    ) as client:
        if args.agent:
            await client.sign_in(args.agent)
        await client.send_token(args.text, terminate=not args.no_enter)
    print(f"Sent {len(args.text)} keys to {args.url}")


def _history(settings, args) -> None:
    from fragmentscan.storage import open_store

    with open_store(settings.storage) as store:
        entries = _build_dispatcher(settings, store).history(args.agent)
    if not entries:
        print(f"No scans recorded for {args.agent}")
        return
    for entry in entries:
        print(f"{entry.timestamp.isoformat(timespec='seconds')}  {entry.kind.value:<13} {entry.raw_text}")


def _quota(settings, args) -> None:
    from fragmentscan.domain.models import ScanKind
    from fragmentscan.quota.rate_limiter import RateLimiter
    from fragmentscan.storage import open_store

    now = datetime.now()
    with open_store(settings.storage) as store:
        limiter = RateLimiter(store, settings.quota)
        print(f"Quota for {args.agent} on {limiter.day_key(now)}:")
        for kind in ScanKind:
            count = limiter.count(args.agent, kind, now)
            limit = limiter.limit_for(kind)
            print(f"  {kind.value:<13} {count}/{limit if limit is not None else 'unlimited'}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the fragmentscan CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from fragmentscan.config.settings import load_settings
    from fragmentscan.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        logger.info("Starting scan station server")
        from fragmentscan.station.server import main as serve
        serve(settings)

    elif args.command == "inject":
        _inject(settings, args)

    elif args.command == "replay":
        logger.info("Replaying key log %s", args.log)
        _replay(settings, args)

    elif args.command == "send":
        asyncio.run(_send(settings, args))

    elif args.command == "history":
        _history(settings, args)

    elif args.command == "quota":
        _quota(settings, args)


if __name__ == "__main__":
    main()
