"""Job runner that invokes evaluation passes and records their outcome."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict

from .adapters import FindingStoreError, SnapshotLoaderError
from .models import EvaluationResult, InvalidTransitionError
from .rules import RuleSettingsError, UnsupportedRuleFamilyError
from .service import EvaluationError, FindingReconciliationEngine

_LOG = logging.getLogger(__name__)

JOB_KEYS = {
    "compliance": "ComplianceEvaluation",
    "optimization": "OptimizationAnalysis",
}

EngineFactory = Callable[[str], FindingReconciliationEngine]

# Failures caused by input or state; logged without a traceback.
EXPECTED_ERRORS = (
    EvaluationError,
    FindingStoreError,
    InvalidTransitionError,
    RuleSettingsError,
    SnapshotLoaderError,
    UnsupportedRuleFamilyError,
)


class JobAlreadyRunningError(RuntimeError):
    """Raised when a pass for the same rule family is still in progress."""


@dataclass(frozen=True, slots=True)
class JobOutcome:
    """Outcome of a completed evaluation job."""

    job_key: str
    correlation_id: str
    result: EvaluationResult
    message: str
    duration_ms: int


class EvaluationJobRunner:
    """Serialize evaluation passes per family and log start, success and failure."""

    def __init__(self, engine_factory: EngineFactory) -> None:
        self._engine_factory = engine_factory
        self._guard = threading.Lock()
        self._family_locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, family: str) -> threading.Lock:
        with self._guard:
            return self._family_locks.setdefault(family, threading.Lock())

    # ------------------------------------------------------------------
    def run(
        self,
        family: str,
        window_start: date | None = None,
        window_end: date | None = None,
        *,
        correlation_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> JobOutcome:
        """Run one pass for ``family``; failures are logged and re-raised."""

        job_key = JOB_KEYS.get(family, family)
        correlation_id = (correlation_id or "").strip() or uuid.uuid4().hex

        lock = self._lock_for(family)
        if not lock.acquire(blocking=False):
            raise JobAlreadyRunningError(f"Job {job_key} is already running")

        try:
            _LOG.info("Job %s started (correlation_id=%s)", job_key, correlation_id)
            started = time.perf_counter()
            try:
                engine = self._engine_factory(family)
                result = engine.evaluate(
                    window_start,
                    window_end,
                    correlation_id=correlation_id,
                    cancel_event=cancel_event,
                )
            except EXPECTED_ERRORS as exc:
                _LOG.error(
                    "Job %s failed (correlation_id=%s): %s", job_key, correlation_id, exc
                )
                raise
            except Exception:
                _LOG.exception("Job %s failed (correlation_id=%s)", job_key, correlation_id)
                raise

            duration_ms = int((time.perf_counter() - started) * 1000)
            message = result.summary()
            _LOG.info(
                "Job %s succeeded in %d ms (correlation_id=%s): %s "
                "Totals open=%d acknowledged=%d resolved=%d",
                job_key,
                duration_ms,
                correlation_id,
                message,
                result.total_open,
                result.total_acknowledged,
                result.total_resolved,
            )
            return JobOutcome(
                job_key=job_key,
                correlation_id=correlation_id,
                result=result,
                message=message,
                duration_ms=duration_ms,
            )
        finally:
            lock.release()


__all__ = ["EvaluationJobRunner", "JOB_KEYS", "JobAlreadyRunningError", "JobOutcome"]
