"""Domain models for fragmentscan.

This package contains the data structures and enumerations shared by
the scan pipeline. All models use Pydantic v2 for validation and
serialization.
"""

from fragmentscan.domain.models import (
    BarcodePayload,
    ClassifiedScan,
    DispatchAccepted,
    DispatchRejected,
    DispatchResult,
    FragmentPayload,
    QuotaAccepted,
    QuotaDecision,
    QuotaRejected,
    RawKeyEvent,
    RfidPayload,
    ScanHistoryEntry,
    ScanKind,
    ScanToken,
)

__all__ = [
    "BarcodePayload",
    "ClassifiedScan",
    "DispatchAccepted",
    "DispatchRejected",
    "DispatchResult",
    "FragmentPayload",
    "QuotaAccepted",
    "QuotaDecision",
    "QuotaRejected",
    "RawKeyEvent",
    "RfidPayload",
    "ScanHistoryEntry",
    "ScanKind",
    "ScanToken",
]
