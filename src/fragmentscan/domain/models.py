"""Core domain models for the fragmentscan system.

These models represent the data flowing through the scan pipeline: raw
key events from the host UI, completed tokens from the accumulator,
classified scans, quota decisions and dispatch results.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ScanKind(str, enum.Enum):
    """Classification tag assigned to a completed token."""

    FRAGMENT_TAG = "fragment_tag"  # FRAG-<digits> RFID tags
    GENERIC_RFID = "generic_rfid"
    BARCODE = "barcode"
    UNKNOWN = "unknown"

    @property
    def is_rfid(self) -> bool:
        return self in (ScanKind.FRAGMENT_TAG, ScanKind.GENERIC_RFID)


# ---------------------------------------------------------------------------
# Input Models
# ---------------------------------------------------------------------------


class RawKeyEvent(BaseModel):
    """A single key press reported by the host UI."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1, description="A single character or a named key ('Enter')")
    target_is_text_input: bool = Field(
        default=False, description="Whether focus was in a text field when the key arrived"
    )
    timestamp: datetime = Field(default_factory=datetime.now)


class ScanToken(BaseModel):
    """Text of one completed burst."""

    model_config = ConfigDict(frozen=True)

    raw_text: str
    completed_at: datetime


# ---------------------------------------------------------------------------
# Classification Models
# ---------------------------------------------------------------------------


class FragmentPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    fragment_index: int = Field(ge=0)


class RfidPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag_id: str


class BarcodePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str


ScanPayload = Union[FragmentPayload, RfidPayload, BarcodePayload]


class ClassifiedScan(BaseModel):
    """A token tagged with its scan kind and kind-specific payload.

    ``payload`` is ``None`` for ``ScanKind.UNKNOWN``.
    """

    model_config = ConfigDict(frozen=True)

    kind: ScanKind
    payload: ScanPayload | None = None
    raw_text: str
    timestamp: datetime


class ScanHistoryEntry(BaseModel):
    """One accepted scan in an agent's audit log."""

    model_config = ConfigDict(frozen=True)

    agent_id: str
    kind: ScanKind
    raw_text: str
    timestamp: datetime


# ---------------------------------------------------------------------------
# Quota Models
# ---------------------------------------------------------------------------


class QuotaAccepted(BaseModel):
    """The scan fit within the quota; ``count`` includes it."""

    model_config = ConfigDict(frozen=True)

    kind: ScanKind
    count: int = Field(ge=0)
    limit: int | None = None


class QuotaRejected(BaseModel):
    """The daily quota for this kind is already used up."""

    model_config = ConfigDict(frozen=True)

    kind: ScanKind
    count: int = Field(ge=0)
    limit: int = Field(ge=0)


QuotaDecision = Union[QuotaAccepted, QuotaRejected]


# ---------------------------------------------------------------------------
# Dispatch Models (discriminated union)
# ---------------------------------------------------------------------------


class DispatchAccepted(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["accepted"] = "accepted"
    agent_id: str
    scan: ClassifiedScan
    handled: bool = Field(
        default=False, description="Whether a handler was registered for the scan's kind"
    )


class DispatchRejected(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["rejected"] = "rejected"
    agent_id: str
    kind: ScanKind
    raw_text: str
    count: int = Field(ge=0, description="Scans of this kind already accepted today")
    limit: int = Field(ge=0)


DispatchResult = Annotated[
    Union[DispatchAccepted, DispatchRejected],
    Field(discriminator="status"),
]
