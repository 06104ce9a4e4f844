from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from license_compliance.models import (
    DETAILS_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Finding,
    FindingKind,
    FindingSeverity,
    FindingStatus,
    InvalidTransitionError,
)

NOW = datetime(2026, 3, 15, 8, 0, tzinfo=timezone.utc)


def make_finding(**overrides: object) -> Finding:
    values: dict[str, object] = {
        "license_id": "lic-1",
        "rule_key": "Expired",
        "kind": FindingKind.VIOLATION,
        "severity": FindingSeverity.CRITICAL,
        "title": "License expired",
        "details": "Expired on 2026-03-01 (14 days past due).",
        "detected_at": NOW,
        "last_evaluated_at": NOW,
    }
    values.update(overrides)
    return Finding(**values)  # type: ignore[arg-type]


def test_long_text_is_truncated_not_rejected() -> None:
    finding = make_finding(title="t" * 500, details="d" * 5000)

    assert len(finding.title) == TITLE_MAX_LENGTH
    assert len(finding.details) == DETAILS_MAX_LENGTH

    finding.refresh(
        severity=FindingSeverity.WARNING,
        title="x" * 201,
        details="   ",
        evidence_json="{}",
        now=NOW,
    )
    assert finding.title == "x" * 200
    assert finding.details == ""


def test_new_finding_tracks_first_detection() -> None:
    finding = make_finding()

    assert finding.status is FindingStatus.OPEN
    assert finding.first_detected_at == NOW
    assert finding.is_active is True
    assert finding.id


def test_resolve_then_reopen() -> None:
    finding = make_finding(acknowledged_by="auditor", acknowledged_at=NOW)
    later = NOW + timedelta(days=3)

    finding.resolve(later)
    assert finding.status is FindingStatus.RESOLVED
    assert finding.resolved_at == later
    assert finding.acknowledged_by == "auditor"
    assert finding.is_active is False

    reopened_at = later + timedelta(days=1)
    finding.reopen(reopened_at)
    assert finding.status is FindingStatus.OPEN
    assert finding.detected_at == reopened_at
    assert finding.first_detected_at == NOW
    assert finding.acknowledged_by is None
    assert finding.acknowledged_at is None
    assert finding.resolved_at is None


def test_invalid_transitions_raise() -> None:
    finding = make_finding()

    with pytest.raises(InvalidTransitionError):
        finding.reopen(NOW)

    finding.resolve(NOW)
    with pytest.raises(InvalidTransitionError):
        finding.resolve(NOW)
    with pytest.raises(InvalidTransitionError):
        finding.acknowledge("auditor", NOW)


def test_dict_round_trip_preserves_lifecycle_fields() -> None:
    finding = make_finding(category_id="cat-1")
    finding.acknowledge("auditor", NOW + timedelta(hours=1), "vendor contacted")

    restored = Finding.from_dict(finding.to_dict())

    assert restored == finding
    assert restored.status is FindingStatus.ACKNOWLEDGED
    assert restored.acknowledged_note == "vendor contacted"
