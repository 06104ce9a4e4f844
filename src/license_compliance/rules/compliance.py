"""Compliance rules: seat overuse, expiry and missing seat configuration."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from ..models import (
    ExpiredEvidence,
    FindingKind,
    FindingSeverity,
    MissingSeatsEvidence,
    OveruseEvidence,
)
from .base import CandidateFinding, Rule, RuleContext, RuleFamily, as_count, select_rules
from .settings import RuleSettings

FAMILY_NAME = "compliance"

RULE_OVERUSE = "Overuse"
RULE_EXPIRED = "Expired"
RULE_MISSING_SEATS = "MissingSeats"


def evaluate_overuse(context: RuleContext) -> Optional[CandidateFinding]:
    purchased = as_count(context.license.seats_purchased)
    peak_used = as_count(context.usage.peak_used)
    if purchased is None or purchased <= 0 or peak_used is None or peak_used <= purchased:
        return None

    evidence = OveruseEvidence(
        seats_purchased=purchased,
        peak_used=peak_used,
        date_of_peak=context.usage.peak_date,
        window_days=context.window_days,
        source=context.usage.source.value,
    )
    return CandidateFinding(
        rule_key=RULE_OVERUSE,
        severity=FindingSeverity.CRITICAL,
        title="Seat overuse detected",
        details=f"Peak usage of {peak_used} seats exceeds the {purchased} purchased.",
        evidence=evidence,
    )


def evaluate_expired(context: RuleContext) -> Optional[CandidateFinding]:
    expires_on = _expiry_date(context.license.expires_on_utc)
    today = context.today
    if expires_on is None or expires_on > today:
        return None

    days_past_due = (today - expires_on).days
    evidence = ExpiredEvidence(expires_on=expires_on, days_past_due=days_past_due)
    return CandidateFinding(
        rule_key=RULE_EXPIRED,
        severity=FindingSeverity.CRITICAL,
        title="License expired",
        details=f"Expired on {expires_on:%Y-%m-%d} ({days_past_due} days past due).",
        evidence=evidence,
    )


def evaluate_missing_seats(context: RuleContext) -> Optional[CandidateFinding]:
    peak_used = as_count(context.usage.peak_used)
    if context.license.seats_purchased is not None or peak_used is None or peak_used <= 0:
        return None

    evidence = MissingSeatsEvidence(
        peak_used=peak_used,
        date_of_peak=context.usage.peak_date,
        window_days=context.window_days,
        source=context.usage.source.value,
    )
    return CandidateFinding(
        rule_key=RULE_MISSING_SEATS,
        severity=FindingSeverity.WARNING,
        title="Seats purchased missing",
        details="Usage was detected but seats purchased is not configured.",
        evidence=evidence,
    )


def _expiry_date(value: object) -> Optional[date]:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    return None


COMPLIANCE_RULES = (
    Rule(RULE_OVERUSE, evaluate_overuse),
    Rule(RULE_EXPIRED, evaluate_expired),
    Rule(RULE_MISSING_SEATS, evaluate_missing_seats),
)


def compliance_family(settings: RuleSettings | None = None) -> RuleFamily:
    """Build the compliance family with rules in their fixed evaluation order."""

    settings = settings or RuleSettings(family=FAMILY_NAME)
    return RuleFamily(
        name=FAMILY_NAME,
        kind=FindingKind.VIOLATION,
        rules=select_rules(COMPLIANCE_RULES, settings),
        settings=settings,
    )
