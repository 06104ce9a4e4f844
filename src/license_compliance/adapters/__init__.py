"""Adapter layer for license snapshots, usage data and finding persistence."""

from .snapshot_loader import SnapshotLoader, SnapshotLoaderError
from .sources import (
    InMemorySubjectSource,
    InMemoryUsageSource,
    SubjectSource,
    UsageSource,
    compute_usage_peaks,
)
from .store import (
    FindingNotFoundError,
    FindingStore,
    FindingStoreError,
    InMemoryFindingStore,
    JsonFileFindingStore,
)

__all__ = [
    "FindingNotFoundError",
    "FindingStore",
    "FindingStoreError",
    "InMemoryFindingStore",
    "InMemorySubjectSource",
    "InMemoryUsageSource",
    "JsonFileFindingStore",
    "SnapshotLoader",
    "SnapshotLoaderError",
    "SubjectSource",
    "UsageSource",
    "compute_usage_peaks",
]
