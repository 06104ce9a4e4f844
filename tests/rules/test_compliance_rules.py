from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from license_compliance.models import FindingSeverity, License, PeakSource, UsagePeak
from license_compliance.rules import RuleContext, RuleSettings
from license_compliance.rules.compliance import (
    RULE_EXPIRED,
    RULE_MISSING_SEATS,
    RULE_OVERUSE,
    compliance_family,
    evaluate_expired,
    evaluate_missing_seats,
    evaluate_overuse,
)

NOW = datetime(2026, 3, 15, 0, 30, tzinfo=timezone.utc)
NO_USAGE = UsagePeak(None, None, PeakSource.NONE)


def make_context(subject: License, usage: UsagePeak = NO_USAGE) -> RuleContext:
    return RuleContext(
        license=subject,
        usage=usage,
        now=NOW,
        window_start=date(2026, 3, 1),
        window_end=date(2026, 3, 15),
        settings=RuleSettings(family="compliance"),
    )


def observed(peak: int) -> UsagePeak:
    return UsagePeak(peak, date(2026, 3, 12), PeakSource.USAGE_SUMMARY)


def test_overuse_triggers_above_purchased() -> None:
    candidate = evaluate_overuse(make_context(License(id="lic-1", seats_purchased=10), observed(15)))

    assert candidate is not None
    assert candidate.rule_key == RULE_OVERUSE
    assert candidate.severity is FindingSeverity.CRITICAL
    assert candidate.details == "Peak usage of 15 seats exceeds the 10 purchased."
    assert candidate.evidence.to_dict() == {
        "seatsPurchased": 10,
        "peakUsed": 15,
        "dateOfPeak": "2026-03-12",
        "windowDays": 15,
        "source": "UsageDailySummary",
    }


@pytest.mark.parametrize(
    ("purchased", "usage"),
    [
        (10, observed(10)),
        (None, observed(15)),
        (0, observed(15)),
        (10, NO_USAGE),
    ],
)
def test_overuse_abstains(purchased: int | None, usage: UsagePeak) -> None:
    assert evaluate_overuse(make_context(License(id="lic-1", seats_purchased=purchased), usage)) is None


@pytest.mark.parametrize(
    ("expires", "days_past_due"),
    [
        (datetime(2026, 3, 13, 18, 0, tzinfo=timezone.utc), 2),
        (datetime(2026, 3, 15, 23, 59, tzinfo=timezone.utc), 0),
        (datetime(2026, 3, 15, 1, 0, tzinfo=timezone(timedelta(hours=5))), 1),
    ],
)
def test_expired_compares_utc_dates(expires: datetime, days_past_due: int) -> None:
    candidate = evaluate_expired(make_context(License(id="lic-1", expires_on_utc=expires)))

    assert candidate is not None
    assert candidate.rule_key == RULE_EXPIRED
    assert candidate.evidence.to_dict()["daysPastDue"] == days_past_due


def test_expired_abstains_for_future_or_missing_expiry() -> None:
    future = datetime(2026, 3, 16, 0, 0, tzinfo=timezone.utc)

    assert evaluate_expired(make_context(License(id="lic-1", expires_on_utc=future))) is None
    assert evaluate_expired(make_context(License(id="lic-1"))) is None


def test_missing_seats_requires_positive_usage() -> None:
    triggered = evaluate_missing_seats(make_context(License(id="lic-1"), observed(3)))
    idle = evaluate_missing_seats(make_context(License(id="lic-1"), observed(0)))
    configured = evaluate_missing_seats(make_context(License(id="lic-1", seats_purchased=0), observed(3)))

    assert triggered is not None
    assert triggered.rule_key == RULE_MISSING_SEATS
    assert triggered.severity is FindingSeverity.WARNING
    assert idle is None
    assert configured is None


def test_family_evaluates_rules_in_fixed_order() -> None:
    family = compliance_family()
    subject = License(id="lic-1", seats_purchased=10, expires_on_utc=NOW - timedelta(days=1))

    candidates = family.evaluate(make_context(subject, observed(12)))

    assert family.rule_keys == [RULE_OVERUSE, RULE_EXPIRED, RULE_MISSING_SEATS]
    assert [candidate.rule_key for candidate in candidates] == [RULE_OVERUSE, RULE_EXPIRED]


def test_family_skips_disabled_rules() -> None:
    family = compliance_family(RuleSettings(family="compliance", disabled_rules={RULE_OVERUSE}))

    assert family.rule_keys == [RULE_EXPIRED, RULE_MISSING_SEATS]
