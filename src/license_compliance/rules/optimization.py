"""Optimization rules that flag seats which could be reclaimed."""

from __future__ import annotations

import math
from decimal import Decimal
from fractions import Fraction
from typing import Optional

from ..models import (
    FindingKind,
    FindingSeverity,
    UnassignedSeatsEvidence,
    UnderutilizedSeatsEvidence,
)
from .base import CandidateFinding, Rule, RuleContext, RuleFamily, as_count, select_rules
from .settings import RuleSettings

FAMILY_NAME = "optimization"

RULE_UNDERUTILIZED = "UnderutilizedSeats"
RULE_UNASSIGNED = "UnassignedSeats"


def _ratio(value: float) -> Fraction:
    # Thresholds come from YAML as floats; compare against their decimal text exactly.
    return Fraction(str(value))


def evaluate_underutilized(context: RuleContext) -> Optional[CandidateFinding]:
    purchased = as_count(context.license.seats_purchased)
    if purchased is None or purchased <= 0:
        return None

    # Only recorded usage counts here; the seats-assigned fallback is not usage.
    peak_used = as_count(context.usage.peak_used) if context.usage.is_observed else None
    peak_used = peak_used if peak_used is not None else 0

    utilization = Fraction(peak_used, purchased)
    settings = context.settings
    if utilization > _ratio(settings.underutilized_ratio):
        return None

    if utilization <= _ratio(settings.underutilized_critical_ratio):
        severity = FindingSeverity.CRITICAL
    else:
        severity = FindingSeverity.WARNING

    utilization_percent = round(float(utilization * 100), 1)
    evidence = UnderutilizedSeatsEvidence(
        seats_purchased=purchased,
        peak_used=peak_used,
        utilization_percent=utilization_percent,
        window_days=context.window_days,
    )
    return CandidateFinding(
        rule_key=RULE_UNDERUTILIZED,
        severity=severity,
        title="Low seat utilization detected",
        details=(
            f"Peak usage of {peak_used} of {purchased} seats ({utilization_percent}%) "
            f"over the last {context.window_days} days."
        ),
        evidence=evidence,
    )


def evaluate_unassigned(context: RuleContext) -> Optional[CandidateFinding]:
    purchased = as_count(context.license.seats_purchased)
    assigned = as_count(context.license.seats_assigned)
    if purchased is None or assigned is None:
        return None

    settings = context.settings
    unassigned = purchased - assigned
    ratio_floor = math.ceil(Decimal(str(settings.unassigned_ratio)) * purchased)
    if not (
        unassigned >= settings.unassigned_min_seats
        or (purchased > 0 and unassigned >= ratio_floor)
    ):
        return None

    evidence = UnassignedSeatsEvidence(
        seats_purchased=purchased,
        seats_assigned=assigned,
        unassigned=unassigned,
    )
    return CandidateFinding(
        rule_key=RULE_UNASSIGNED,
        severity=FindingSeverity.WARNING,
        title="Unassigned seats available",
        details=f"{unassigned} of {purchased} purchased seats are not assigned.",
        evidence=evidence,
    )


OPTIMIZATION_RULES = (
    Rule(RULE_UNDERUTILIZED, evaluate_underutilized),
    Rule(RULE_UNASSIGNED, evaluate_unassigned),
)


def optimization_family(settings: RuleSettings | None = None) -> RuleFamily:
    """Build the optimization family; insights carry the license category."""

    settings = settings or RuleSettings(family=FAMILY_NAME)
    return RuleFamily(
        name=FAMILY_NAME,
        kind=FindingKind.INSIGHT,
        rules=select_rules(OPTIMIZATION_RULES, settings),
        settings=settings,
        denormalize_category=True,
    )
