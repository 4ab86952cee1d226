"""Content-based classification of completed scan tokens.

The keyboard channel does not say which device typed a token, so the
kind is inferred from the text alone. Rules are tried in order and the
first match wins; anything unmatched is ``ScanKind.UNKNOWN``.
"""

from __future__ import annotations

import re
from datetime import datetime

from fragmentscan.domain.models import (
    BarcodePayload,
    ClassifiedScan,
    FragmentPayload,
    RfidPayload,
    ScanKind,
    ScanToken,
)

FRAGMENT_PATTERN = re.compile(r"FRAG-([0-9]+)")
RFID_PREFIXES = ("FRAG-", "RFID-")
BARCODE_PREFIX = "BAR-"
NUMERIC_BARCODE_PATTERN = re.compile(r"[0-9]{8,}")


def _fragment_index(digits: str) -> int | None:
    # Digit runs past the interpreter's int conversion limit fall through
    # to the generic RFID rule.
    try:
        return int(digits)
    except ValueError:
        return None


def classify(token: ScanToken) -> ClassifiedScan:
    """Tag a completed token with its scan kind and payload.

    Never raises: unmatched text yields ``ScanKind.UNKNOWN`` with the
    raw text preserved.
    """
    text = token.raw_text

    match = FRAGMENT_PATTERN.fullmatch(text)
    index = _fragment_index(match.group(1)) if match else None
    if index is not None:
        return ClassifiedScan(
            kind=ScanKind.FRAGMENT_TAG,
            payload=FragmentPayload(fragment_index=index),
            raw_text=text,
            timestamp=token.completed_at,
        )

    if text.startswith(RFID_PREFIXES):
        return ClassifiedScan(
            kind=ScanKind.GENERIC_RFID,
            payload=RfidPayload(tag_id=text),
            raw_text=text,
            timestamp=token.completed_at,
        )

    if text.startswith(BARCODE_PREFIX):
        code = text[len(BARCODE_PREFIX):]
    elif NUMERIC_BARCODE_PATTERN.fullmatch(text):
        code = text
    else:
        return ClassifiedScan(kind=ScanKind.UNKNOWN, raw_text=text, timestamp=token.completed_at)

    return ClassifiedScan(
        kind=ScanKind.BARCODE,
        payload=BarcodePayload(code=code),
        raw_text=text,
        timestamp=token.completed_at,
    )


def classify_text(text: str, timestamp: datetime | None = None) -> ClassifiedScan:
    """Classify a bare string, stamping it with ``timestamp`` or now."""
    return classify(ScanToken(raw_text=text, completed_at=timestamp or datetime.now()))
