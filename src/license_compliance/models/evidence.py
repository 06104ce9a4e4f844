"""Typed evidence payloads attached to findings.

Each rule key owns exactly one evidence variant. Variants are converted to a
plain mapping only at the storage boundary by :func:`serialize_evidence`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, ClassVar, Dict, Optional, Union

DEFAULT_EVIDENCE_MAX_BYTES = 2000


def _iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True, slots=True)
class OveruseEvidence:
    rule_key: ClassVar[str] = "Overuse"

    seats_purchased: int
    peak_used: int
    date_of_peak: Optional[date]
    window_days: int
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seatsPurchased": self.seats_purchased,
            "peakUsed": self.peak_used,
            "dateOfPeak": _iso_date(self.date_of_peak),
            "windowDays": self.window_days,
            "source": self.source,
        }


@dataclass(frozen=True, slots=True)
class ExpiredEvidence:
    rule_key: ClassVar[str] = "Expired"

    expires_on: date
    days_past_due: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expiresOn": self.expires_on.isoformat(),
            "daysPastDue": self.days_past_due,
        }


@dataclass(frozen=True, slots=True)
class MissingSeatsEvidence:
    rule_key: ClassVar[str] = "MissingSeats"

    peak_used: int
    date_of_peak: Optional[date]
    window_days: int
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "peakUsed": self.peak_used,
            "dateOfPeak": _iso_date(self.date_of_peak),
            "windowDays": self.window_days,
            "source": self.source,
        }


@dataclass(frozen=True, slots=True)
class UnderutilizedSeatsEvidence:
    rule_key: ClassVar[str] = "UnderutilizedSeats"

    seats_purchased: int
    peak_used: int
    utilization_percent: float
    window_days: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seatsPurchased": self.seats_purchased,
            "peakUsed": self.peak_used,
            "utilizationPercent": self.utilization_percent,
            "windowDays": self.window_days,
        }


@dataclass(frozen=True, slots=True)
class UnassignedSeatsEvidence:
    rule_key: ClassVar[str] = "UnassignedSeats"

    seats_purchased: int
    seats_assigned: int
    unassigned: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seatsPurchased": self.seats_purchased,
            "seatsAssigned": self.seats_assigned,
            "unassigned": self.unassigned,
        }


Evidence = Union[
    OveruseEvidence,
    ExpiredEvidence,
    MissingSeatsEvidence,
    UnderutilizedSeatsEvidence,
    UnassignedSeatsEvidence,
]


def serialize_evidence(evidence: Evidence, max_bytes: int = DEFAULT_EVIDENCE_MAX_BYTES) -> str:
    """Render ``evidence`` as JSON no longer than ``max_bytes`` UTF-8 bytes."""

    if max_bytes <= 0:
        raise ValueError("max_bytes must be positive")

    text = json.dumps(evidence.to_dict(), ensure_ascii=False, separators=(",", ":"))
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text

    # errors="ignore" drops a multi-byte character cut in half at the boundary
    return encoded[:max_bytes].decode("utf-8", errors="ignore")
