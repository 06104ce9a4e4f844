"""Finding models shared by the rule families, the engine and the stores."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

TITLE_MAX_LENGTH = 200
DETAILS_MAX_LENGTH = 1000


class InvalidTransitionError(RuntimeError):
    """Raised when a finding cannot move to the requested status."""


class FindingSeverity(str, Enum):
    """Severity levels produced by the rule families."""

    CRITICAL = "Critical"
    WARNING = "Warning"
    INFO = "Info"


class FindingStatus(str, Enum):
    """Lifecycle states of a recorded finding."""

    OPEN = "Open"
    ACKNOWLEDGED = "Acknowledged"
    RESOLVED = "Resolved"


class FindingKind(str, Enum):
    """Semantic label of a finding: compliance violation or optimization insight."""

    VIOLATION = "violation"
    INSIGHT = "insight"


def truncate_text(value: Optional[str], max_length: int) -> str:
    """Trim ``value`` to ``max_length`` characters, mapping blanks to ``""``."""

    if value is None or not value.strip():
        return ""
    return value if len(value) <= max_length else value[:max_length]


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True)
class Finding:
    """A recorded rule outcome for a license.

    At most one finding exists per ``(license_id, rule_key)`` pair. The engine
    mutates the record in place on every pass instead of versioning it.
    """

    rule_key: str
    kind: FindingKind
    severity: FindingSeverity
    detected_at: datetime
    last_evaluated_at: datetime
    license_id: Optional[str] = None
    status: FindingStatus = FindingStatus.OPEN
    title: str = ""
    details: str = ""
    evidence_json: str = ""
    first_detected_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    acknowledged_note: Optional[str] = None
    resolved_at: Optional[datetime] = None
    category_id: Optional[str] = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        self.title = truncate_text(self.title, TITLE_MAX_LENGTH)
        self.details = truncate_text(self.details, DETAILS_MAX_LENGTH)
        if self.first_detected_at is None:
            self.first_detected_at = self.detected_at

    @property
    def is_active(self) -> bool:
        return self.status is not FindingStatus.RESOLVED

    @property
    def key(self) -> tuple[Optional[str], str]:
        return (self.license_id, self.rule_key)

    # ------------------------------------------------------------------
    def refresh(
        self,
        *,
        severity: FindingSeverity,
        title: str,
        details: str,
        evidence_json: str,
        now: datetime,
    ) -> None:
        """Overwrite the triggered content and stamp the evaluation time."""

        self.severity = severity
        self.title = truncate_text(title, TITLE_MAX_LENGTH)
        self.details = truncate_text(details, DETAILS_MAX_LENGTH)
        self.evidence_json = evidence_json
        self.last_evaluated_at = now

    def reopen(self, now: datetime) -> None:
        """Move a resolved finding back to ``Open`` as a fresh detection."""

        if self.status is not FindingStatus.RESOLVED:
            raise InvalidTransitionError(
                f"Only resolved findings can be reopened (finding {self.id} is {self.status.value})"
            )

        self.status = FindingStatus.OPEN
        self.detected_at = now
        self.acknowledged_at = None
        self.acknowledged_by = None
        self.acknowledged_note = None
        self.resolved_at = None

    def resolve(self, now: datetime) -> None:
        """Mark the finding resolved, keeping its last triggered content."""

        if self.status is FindingStatus.RESOLVED:
            raise InvalidTransitionError(f"Finding {self.id} is already resolved")

        self.status = FindingStatus.RESOLVED
        self.resolved_at = now
        self.last_evaluated_at = now

    def acknowledge(self, actor: str, at: datetime, note: Optional[str] = None) -> None:
        """Record that ``actor`` has seen the finding."""

        if self.status is FindingStatus.RESOLVED:
            raise InvalidTransitionError("Resolved findings cannot be acknowledged")

        self.status = FindingStatus.ACKNOWLEDGED
        self.acknowledged_at = at
        self.acknowledged_by = actor
        self.acknowledged_note = truncate_text(note, DETAILS_MAX_LENGTH) or None
        self.last_evaluated_at = at

    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "license_id": self.license_id,
            "rule_key": self.rule_key,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "is_active": self.is_active,
            "title": self.title,
            "details": self.details,
            "evidence_json": self.evidence_json,
            "category_id": self.category_id,
            "detected_at": _format_timestamp(self.detected_at),
            "first_detected_at": _format_timestamp(self.first_detected_at),
            "last_evaluated_at": _format_timestamp(self.last_evaluated_at),
            "acknowledged_at": _format_timestamp(self.acknowledged_at),
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_note": self.acknowledged_note,
            "resolved_at": _format_timestamp(self.resolved_at),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Finding":
        return cls(
            id=str(payload["id"]),
            license_id=payload.get("license_id"),
            rule_key=str(payload["rule_key"]),
            kind=FindingKind(payload["kind"]),
            severity=FindingSeverity(payload["severity"]),
            status=FindingStatus(payload.get("status", FindingStatus.OPEN.value)),
            title=payload.get("title") or "",
            details=payload.get("details") or "",
            evidence_json=payload.get("evidence_json") or "",
            category_id=payload.get("category_id"),
            detected_at=_parse_timestamp(payload["detected_at"]),
            first_detected_at=_parse_timestamp(payload.get("first_detected_at")),
            last_evaluated_at=_parse_timestamp(payload["last_evaluated_at"]),
            acknowledged_at=_parse_timestamp(payload.get("acknowledged_at")),
            acknowledged_by=payload.get("acknowledged_by"),
            acknowledged_note=payload.get("acknowledged_note"),
            resolved_at=_parse_timestamp(payload.get("resolved_at")),
        )


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
