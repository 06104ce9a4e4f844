"""Data models for licenses, usage, findings and evaluation results."""

from .evidence import (
    DEFAULT_EVIDENCE_MAX_BYTES,
    Evidence,
    ExpiredEvidence,
    MissingSeatsEvidence,
    OveruseEvidence,
    UnassignedSeatsEvidence,
    UnderutilizedSeatsEvidence,
    serialize_evidence,
)
from .finding import (
    DETAILS_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Finding,
    FindingKind,
    FindingSeverity,
    FindingStatus,
    InvalidTransitionError,
    truncate_text,
)
from .license import License, PeakSource, UsageObservation, UsagePeak
from .result import EvaluationResult

__all__ = [
    "DEFAULT_EVIDENCE_MAX_BYTES",
    "DETAILS_MAX_LENGTH",
    "EvaluationResult",
    "Evidence",
    "ExpiredEvidence",
    "Finding",
    "FindingKind",
    "FindingSeverity",
    "FindingStatus",
    "InvalidTransitionError",
    "License",
    "MissingSeatsEvidence",
    "OveruseEvidence",
    "PeakSource",
    "TITLE_MAX_LENGTH",
    "UnassignedSeatsEvidence",
    "UnderutilizedSeatsEvidence",
    "UsageObservation",
    "UsagePeak",
    "serialize_evidence",
    "truncate_text",
]
