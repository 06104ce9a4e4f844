"""Evaluation engine that reconciles rule outcomes with recorded findings."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from .adapters import FindingStore, FindingStoreError, SubjectSource, UsageSource
from .models import (
    EvaluationResult,
    Finding,
    FindingStatus,
    InvalidTransitionError,
    License,
    UsagePeak,
    serialize_evidence,
)
from .rules import CandidateFinding, RuleContext, RuleFamily
from .rules.base import as_count

_LOG = logging.getLogger(__name__)

Clock = Callable[[], datetime]
FindingKey = Tuple[str, str]


class EvaluationError(RuntimeError):
    """Raised when an evaluation pass cannot be completed."""


class InvalidWindowError(EvaluationError):
    """Raised when the evaluation window is not made of dates."""


class EvaluationCancelledError(EvaluationError):
    """Raised when a pass is cancelled before anything was persisted."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC; naive values are taken to be UTC already."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _as_window_date(value: object, name: str) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidWindowError(f"{name} must be a date, got {type(value).__name__}")


def resolve_window(
    window_start: date | None,
    window_end: date | None,
    *,
    today: date,
    default_days: int = 30,
) -> Tuple[date, date]:
    """Apply window defaults and return ``(start, end)`` in ascending order.

    ``window_end`` defaults to ``today`` and ``window_start`` to a trailing
    window of ``default_days`` days ending on ``window_end``. Reversed bounds
    are swapped.
    """

    if default_days < 1:
        raise InvalidWindowError("default_days must be at least 1")

    end = _as_window_date(window_end, "window_end") or today
    start = _as_window_date(window_start, "window_start") or end - timedelta(days=default_days - 1)
    if start > end:
        start, end = end, start
    return start, end


@dataclass(slots=True)
class _PassCounters:
    opened: int = 0
    updated: int = 0
    resolved: int = 0


class FindingReconciliationEngine:
    """Run a rule family over all licenses and keep one finding per license and rule.

    Callers must not run two passes for the same family concurrently; the
    reconciliation relies on the findings snapshot taken at the start of the
    pass.
    """

    def __init__(
        self,
        family: RuleFamily,
        *,
        subjects: SubjectSource,
        usage: UsageSource,
        store: FindingStore,
        clock: Clock | None = None,
    ) -> None:
        self.family = family
        self._subjects = subjects
        self._usage = usage
        self._store = store
        self._clock = clock or utc_now

    # ------------------------------------------------------------------
    def evaluate(
        self,
        window_start: date | None = None,
        window_end: date | None = None,
        *,
        correlation_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> EvaluationResult:
        """Execute one evaluation pass and persist the resulting changes."""

        now = as_utc(self._clock())
        today = now.date()
        start, end = resolve_window(
            window_start,
            window_end,
            today=today,
            default_days=self.family.settings.default_window_days,
        )

        licenses = self._subjects.list_subjects()
        usage_peaks = self._usage.get_usage_peaks(start, end)

        rule_keys = self.family.rule_keys
        existing = self._store.load_findings(rule_keys)
        findings_by_key: Dict[FindingKey, Finding] = {
            (finding.license_id, finding.rule_key): finding
            for finding in existing
            if finding.license_id is not None
        }

        triggered: set[FindingKey] = set()
        changed: Dict[str, Finding] = {}
        counters = _PassCounters()

        for subject in licenses:
            if cancel_event is not None and cancel_event.is_set():
                raise EvaluationCancelledError(
                    f"{self.family.name} evaluation cancelled; no findings were saved"
                )

            usage = usage_peaks.get(subject.id) or UsagePeak.from_seats_assigned(
                as_count(subject.seats_assigned), today
            )
            context = RuleContext(
                license=subject,
                usage=usage,
                now=now,
                window_start=start,
                window_end=end,
                settings=self.family.settings,
            )

            for candidate in self.family.evaluate(context):
                if candidate.rule_key not in rule_keys:
                    raise EvaluationError(
                        f"Rule key {candidate.rule_key} is not part of the {self.family.name} family"
                    )
                key = (subject.id, candidate.rule_key)
                triggered.add(key)
                finding = self._upsert(subject, candidate, now, findings_by_key, counters)
                changed[finding.id] = finding

        # Only the snapshot loaded above is eligible for resolution.
        for finding in existing:
            key = (finding.license_id, finding.rule_key)
            if key in triggered or finding.status is FindingStatus.RESOLVED:
                continue
            finding.resolve(now)
            changed[finding.id] = finding
            counters.resolved += 1

        self._store.save(list(changed.values()))
        totals = self._store.count_by_status(self.family.kind)

        _LOG.debug(
            "%s pass over %d licenses saved %d findings (correlation_id=%s)",
            self.family.name,
            len(licenses),
            len(changed),
            correlation_id,
        )

        return EvaluationResult(
            family=self.family.name,
            window_start=start,
            window_end=end,
            opened=counters.opened,
            resolved=counters.resolved,
            updated=counters.updated,
            total_open=totals.get(FindingStatus.OPEN, 0),
            total_acknowledged=totals.get(FindingStatus.ACKNOWLEDGED, 0),
            total_resolved=totals.get(FindingStatus.RESOLVED, 0),
            correlation_id=correlation_id,
        )

    # ------------------------------------------------------------------
    def _upsert(
        self,
        subject: License,
        candidate: CandidateFinding,
        now: datetime,
        findings_by_key: Dict[FindingKey, Finding],
        counters: _PassCounters,
    ) -> Finding:
        evidence_json = serialize_evidence(candidate.evidence, self.family.evidence_max_bytes)
        category_id = subject.category_id if self.family.denormalize_category else None
        key = (subject.id, candidate.rule_key)

        finding = findings_by_key.get(key)
        if finding is None:
            finding = Finding(
                license_id=subject.id,
                rule_key=candidate.rule_key,
                kind=self.family.kind,
                severity=candidate.severity,
                title=candidate.title,
                details=candidate.details,
                evidence_json=evidence_json,
                detected_at=now,
                last_evaluated_at=now,
                category_id=category_id,
            )
            findings_by_key[key] = finding
            counters.opened += 1
            return finding

        reopening = finding.status is FindingStatus.RESOLVED
        finding.refresh(
            severity=candidate.severity,
            title=candidate.title,
            details=candidate.details,
            evidence_json=evidence_json,
            now=now,
        )
        if self.family.denormalize_category:
            finding.category_id = category_id

        if reopening:
            finding.reopen(now)
            counters.opened += 1
        else:
            counters.updated += 1
        return finding


def acknowledge_finding(
    store: FindingStore,
    finding_id: str,
    actor: str,
    note: str,
    *,
    now: datetime | None = None,
) -> Finding:
    """Acknowledge a finding on behalf of ``actor`` and persist it."""

    if not actor or not actor.strip():
        raise InvalidTransitionError("An actor is required to acknowledge a finding")
    if not note or not note.strip():
        raise InvalidTransitionError("Please add a note before acknowledging")

    finding = store.get(finding_id)
    finding.acknowledge(actor.strip(), as_utc(now or utc_now()), note.strip())
    store.save([finding])
    return finding


__all__ = [
    "EvaluationCancelledError",
    "EvaluationError",
    "FindingReconciliationEngine",
    "FindingStoreError",
    "InvalidWindowError",
    "acknowledge_finding",
    "resolve_window",
]
