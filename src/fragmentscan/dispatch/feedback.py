"""Operator feedback for dispatch results.

Presentation lives here, outside classification and quota logic. The
kiosk UI registers its own observer; ``LogFeedback`` is the default
used by the station server and the CLI.
"""

from __future__ import annotations

import logging

from fragmentscan.domain.models import DispatchAccepted, DispatchResult, ScanKind

logger = logging.getLogger(__name__)


def feedback_label(kind: ScanKind) -> str:
    """Short label shown to the operator for a scan kind."""
    if kind.is_rfid:
        return "RFID"
    if kind is ScanKind.BARCODE:
        return "BARCODE"
    return "UNKNOWN"


class LogFeedback:
    """Reports each dispatch result on a logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def __call__(self, result: DispatchResult) -> None:
        if isinstance(result, DispatchAccepted):
            if result.scan.kind is ScanKind.UNKNOWN:
                self._log.debug("Unknown scan format: %s", result.scan.raw_text)
            else:
                self._log.info("%s SCANNED: %s", feedback_label(result.scan.kind), result.scan.raw_text)
            return
        self._log.warning(
            "%s quota reached for %s (%d/%d today)",
            feedback_label(result.kind),
            result.agent_id,
            result.count,
            result.limit,
        )
