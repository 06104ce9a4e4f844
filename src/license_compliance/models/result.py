"""Run statistics returned by the evaluation engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Counts for one evaluation pass plus store-wide totals by status."""

    family: str
    window_start: date
    window_end: date
    opened: int = 0
    resolved: int = 0
    updated: int = 0
    total_open: int = 0
    total_acknowledged: int = 0
    total_resolved: int = 0
    correlation_id: Optional[str] = None

    @property
    def window_days(self) -> int:
        return (self.window_end - self.window_start).days + 1

    def summary(self) -> str:
        return (
            f"Evaluated {self.family} for {self.window_start:%Y-%m-%d} to {self.window_end:%Y-%m-%d}. "
            f"Opened: {self.opened}, Resolved: {self.resolved}, Updated: {self.updated}."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "family": self.family,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "window_days": self.window_days,
            "opened": self.opened,
            "resolved": self.resolved,
            "updated": self.updated,
            "total_open": self.total_open,
            "total_acknowledged": self.total_acknowledged,
            "total_resolved": self.total_resolved,
            "correlation_id": self.correlation_id,
        }
