"""Normalization of exported license snapshots."""

from .snapshot_normalizer import Snapshot, SnapshotNormalizer

__all__ = ["Snapshot", "SnapshotNormalizer"]
