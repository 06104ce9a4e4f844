"""License and usage models consumed by the evaluation engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class PeakSource(str, Enum):
    """Origin of the usage peak handed to rules."""

    USAGE_SUMMARY = "UsageDailySummary"
    SEATS_ASSIGNED = "SeatsAssigned"
    NONE = "None"


@dataclass(frozen=True, slots=True)
class License:
    """Read-only snapshot of a tracked license."""

    id: str
    name: str = ""
    vendor: Optional[str] = None
    category_id: Optional[str] = None
    seats_purchased: Optional[int] = None
    seats_assigned: Optional[int] = None
    expires_on_utc: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class UsageObservation:
    """Daily maximum of concurrently used seats for a license."""

    license_id: str
    usage_date: date
    max_seats_used: int


@dataclass(frozen=True, slots=True)
class UsagePeak:
    """Peak usage inside an evaluation window."""

    peak_used: Optional[int]
    peak_date: Optional[date]
    source: PeakSource

    @property
    def is_observed(self) -> bool:
        """Return ``True`` when the peak comes from recorded usage data."""

        return self.source is PeakSource.USAGE_SUMMARY

    @classmethod
    def from_seats_assigned(cls, seats_assigned: Optional[int], today: date) -> "UsagePeak":
        if seats_assigned is not None:
            return cls(seats_assigned, today, PeakSource.SEATS_ASSIGNED)
        return cls(None, None, PeakSource.NONE)
