"""Rule contracts shared by the compliance and optimization families."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from ..models import Evidence, FindingKind, FindingSeverity, License, UsagePeak
from .settings import RuleSettings


class UnsupportedRuleFamilyError(RuntimeError):
    """Raised when an unknown rule family is requested."""


@dataclass(frozen=True, slots=True)
class RuleContext:
    """Everything a rule may look at for one license."""

    license: License
    usage: UsagePeak
    now: datetime
    window_start: date
    window_end: date
    settings: RuleSettings

    @property
    def today(self) -> date:
        return self.now.astimezone(timezone.utc).date()

    @property
    def window_days(self) -> int:
        return (self.window_end - self.window_start).days + 1


@dataclass(frozen=True, slots=True)
class CandidateFinding:
    """A rule outcome that still has to be reconciled with stored findings."""

    rule_key: str
    severity: FindingSeverity
    title: str
    details: str
    evidence: Evidence


RuleFunction = Callable[[RuleContext], Optional[CandidateFinding]]


@dataclass(frozen=True, slots=True)
class Rule:
    """A named, pure rule. ``evaluate`` returns ``None`` to abstain."""

    rule_key: str
    evaluate: RuleFunction


@dataclass(frozen=True, slots=True)
class RuleFamily:
    """An ordered rule set evaluated and reconciled as one unit."""

    name: str
    kind: FindingKind
    rules: Tuple[Rule, ...]
    settings: RuleSettings
    denormalize_category: bool = False

    @property
    def rule_keys(self) -> List[str]:
        """Keys of the rules that are evaluated (and reconciled) in this family."""

        return [rule.rule_key for rule in self.rules]

    @property
    def evidence_max_bytes(self) -> int:
        return self.settings.evidence_max_bytes

    def evaluate(self, context: RuleContext) -> List[CandidateFinding]:
        """Run every rule in order and return the candidates that triggered."""

        candidates: List[CandidateFinding] = []
        for rule in self.rules:
            candidate = rule.evaluate(context)
            if candidate is None:
                continue
            override = self.settings.severity_overrides.get(rule.rule_key)
            if override is not None and override is not candidate.severity:
                candidate = CandidateFinding(
                    rule_key=candidate.rule_key,
                    severity=override,
                    title=candidate.title,
                    details=candidate.details,
                    evidence=candidate.evidence,
                )
            candidates.append(candidate)
        return candidates


def select_rules(rules: Sequence[Rule], settings: RuleSettings) -> Tuple[Rule, ...]:
    return tuple(rule for rule in rules if settings.is_enabled(rule.rule_key))


def as_count(value: object) -> Optional[int]:
    """Return ``value`` when it is a usable seat count, otherwise ``None``."""

    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value
