"""Read-only sources for licenses and usage peaks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from ..models import License, PeakSource, UsageObservation, UsagePeak


class SubjectSource(ABC):
    """Provides the licenses evaluated in a pass."""

    @abstractmethod
    def list_subjects(self) -> List[License]:
        """Return every license as a read-only snapshot."""


class UsageSource(ABC):
    """Provides per-license usage peaks inside a date window."""

    @abstractmethod
    def get_usage_peaks(self, window_start: date, window_end: date) -> Mapping[str, UsagePeak]:
        """Return the peak usage per license id for the inclusive window."""


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def compute_usage_peaks(
    observations: Iterable[UsageObservation], window_start: date, window_end: date
) -> Dict[str, UsagePeak]:
    """Reduce observations to one peak per license.

    The highest ``max_seats_used`` wins and ties go to the most recent date, so
    the result does not depend on the order of ``observations``.
    """

    best: Dict[str, Tuple[int, date]] = {}
    for observation in observations:
        usage_date = _as_date(observation.usage_date)
        if usage_date < window_start or usage_date > window_end:
            continue

        candidate = (observation.max_seats_used, usage_date)
        current = best.get(observation.license_id)
        if current is None or candidate > current:
            best[observation.license_id] = candidate

    return {
        license_id: UsagePeak(peak, peak_date, PeakSource.USAGE_SUMMARY)
        for license_id, (peak, peak_date) in best.items()
    }


class InMemorySubjectSource(SubjectSource):
    def __init__(self, licenses: Sequence[License]) -> None:
        self._licenses = list(licenses)

    def list_subjects(self) -> List[License]:
        return list(self._licenses)


class InMemoryUsageSource(UsageSource):
    def __init__(self, observations: Sequence[UsageObservation]) -> None:
        self._observations = list(observations)

    def get_usage_peaks(self, window_start: date, window_end: date) -> Dict[str, UsagePeak]:
        return compute_usage_peaks(self._observations, window_start, window_end)


__all__ = [
    "InMemorySubjectSource",
    "InMemoryUsageSource",
    "SubjectSource",
    "UsageSource",
    "compute_usage_peaks",
]
