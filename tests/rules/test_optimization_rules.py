from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from license_compliance.models import FindingSeverity, License, PeakSource, UsagePeak
from license_compliance.rules import RuleContext, RuleSettings
from license_compliance.rules.optimization import (
    RULE_UNASSIGNED,
    RULE_UNDERUTILIZED,
    evaluate_unassigned,
    evaluate_underutilized,
    optimization_family,
)

NOW = datetime(2026, 3, 15, 9, 0, tzinfo=timezone.utc)


def make_context(
    subject: License,
    peak: int | None = None,
    *,
    source: PeakSource = PeakSource.USAGE_SUMMARY,
    settings: RuleSettings | None = None,
) -> RuleContext:
    if peak is None:
        usage = UsagePeak(None, None, PeakSource.NONE)
    else:
        usage = UsagePeak(peak, date(2026, 3, 10), source)
    return RuleContext(
        license=subject,
        usage=usage,
        now=NOW,
        window_start=date(2026, 2, 14),
        window_end=date(2026, 3, 15),
        settings=settings or RuleSettings(family="optimization"),
    )


@pytest.mark.parametrize(
    ("peak", "expected"),
    [
        (0, FindingSeverity.CRITICAL),
        (10, FindingSeverity.CRITICAL),
        (11, FindingSeverity.WARNING),
        (30, FindingSeverity.WARNING),
        (31, None),
        (100, None),
    ],
)
def test_underutilized_thresholds(peak: int, expected: FindingSeverity | None) -> None:
    candidate = evaluate_underutilized(make_context(License(id="lic-1", seats_purchased=100), peak))

    if expected is None:
        assert candidate is None
    else:
        assert candidate is not None
        assert candidate.severity is expected


def test_underutilized_evidence_rounds_percentage() -> None:
    candidate = evaluate_underutilized(make_context(License(id="lic-1", seats_purchased=7), 2))
    assert candidate is not None
    assert candidate.rule_key == RULE_UNDERUTILIZED
    assert candidate.evidence.to_dict() == {
        "seatsPurchased": 7,
        "peakUsed": 2,
        "utilizationPercent": 28.6,
        "windowDays": 30,
    }


def test_underutilized_ignores_seats_assigned_fallback() -> None:
    context = make_context(
        License(id="lic-1", seats_purchased=100, seats_assigned=80),
        80,
        source=PeakSource.SEATS_ASSIGNED,
    )

    candidate = evaluate_underutilized(context)

    assert candidate is not None
    assert candidate.severity is FindingSeverity.CRITICAL
    assert candidate.evidence.to_dict()["peakUsed"] == 0


@pytest.mark.parametrize("purchased", [None, 0, -4])
def test_underutilized_requires_positive_purchased(purchased: int | None) -> None:
    assert evaluate_underutilized(make_context(License(id="lic-1", seats_purchased=purchased))) is None


def test_unassigned_scenario() -> None:
    candidate = evaluate_unassigned(
        make_context(License(id="lic-1", seats_purchased=50, seats_assigned=30))
    )

    assert candidate is not None
    assert candidate.rule_key == RULE_UNASSIGNED
    assert candidate.severity is FindingSeverity.WARNING
    assert candidate.evidence.to_dict() == {
        "seatsPurchased": 50,
        "seatsAssigned": 30,
        "unassigned": 20,
    }


@pytest.mark.parametrize(
    ("purchased", "assigned", "triggers"),
    [
        (10, 5, True),
        (10, 6, True),
        (100, 95, True),
        (100, 96, False),
        (20, 16, True),
        (20, 17, False),
        (15, 12, True),
        (4, 3, True),
        (4, 4, False),
        (0, 0, False),
    ],
)
def test_unassigned_thresholds(purchased: int, assigned: int, triggers: bool) -> None:
    candidate = evaluate_unassigned(
        make_context(License(id="lic-1", seats_purchased=purchased, seats_assigned=assigned))
    )

    assert (candidate is not None) is triggers


def test_unassigned_requires_both_counts() -> None:
    assert evaluate_unassigned(make_context(License(id="lic-1", seats_purchased=50))) is None
    assert evaluate_unassigned(make_context(License(id="lic-1", seats_assigned=5))) is None


def test_thresholds_follow_settings() -> None:
    settings = RuleSettings(
        family="optimization", underutilized_ratio=0.5, unassigned_min_seats=100, unassigned_ratio=0.9
    )

    underutilized = evaluate_underutilized(
        make_context(License(id="lic-1", seats_purchased=10), 5, settings=settings)
    )
    unassigned = evaluate_unassigned(
        make_context(License(id="lic-1", seats_purchased=50, seats_assigned=30), settings=settings)
    )

    assert underutilized is not None
    assert unassigned is None


def test_family_order_is_fixed() -> None:
    family = optimization_family()

    assert family.rule_keys == [RULE_UNDERUTILIZED, RULE_UNASSIGNED]
    assert family.denormalize_category is True
