from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from license_compliance.adapters import (
    FindingStoreError,
    InMemoryFindingStore,
    InMemorySubjectSource,
    InMemoryUsageSource,
    SnapshotLoader,
    SnapshotLoaderError,
)
from license_compliance.jobs import EvaluationJobRunner, JobAlreadyRunningError
from license_compliance.models import License, UsageObservation
from license_compliance.rules import build_family
from license_compliance.service import EvaluationCancelledError, FindingReconciliationEngine

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class BrokenStore(InMemoryFindingStore):
    def save(self, findings):
        raise FindingStoreError("disk full")


def engine_factory(store: InMemoryFindingStore | None = None):
    store = store if store is not None else InMemoryFindingStore()

    def factory(family: str) -> FindingReconciliationEngine:
        return FindingReconciliationEngine(
            build_family(family),
            subjects=InMemorySubjectSource([License(id="lic-1", seats_purchased=10)]),
            usage=InMemoryUsageSource([UsageObservation("lic-1", date(2026, 3, 10), 12)]),
            store=store,
            clock=lambda: NOW,
        )

    return factory


def test_run_returns_outcome_and_logs(caplog: pytest.LogCaptureFixture) -> None:
    runner = EvaluationJobRunner(engine_factory())

    with caplog.at_level(logging.INFO, logger="license_compliance.jobs"):
        outcome = runner.run("compliance", correlation_id="corr-1")

    assert outcome.job_key == "ComplianceEvaluation"
    assert outcome.correlation_id == "corr-1"
    assert outcome.result.correlation_id == "corr-1"
    assert outcome.result.opened == 1
    assert outcome.message == outcome.result.summary()
    assert outcome.duration_ms >= 0

    messages = [record.getMessage() for record in caplog.records]
    assert messages[0] == "Job ComplianceEvaluation started (correlation_id=corr-1)"
    assert "Job ComplianceEvaluation succeeded" in messages[-1]
    assert "Totals open=1 acknowledged=0 resolved=0" in messages[-1]


@pytest.mark.parametrize("correlation_id", [None, "", "   "])
def test_run_generates_correlation_id(correlation_id: str | None) -> None:
    runner = EvaluationJobRunner(engine_factory())

    outcome = runner.run("optimization", correlation_id=correlation_id)

    assert outcome.job_key == "OptimizationAnalysis"
    assert len(outcome.correlation_id) == 32
    assert outcome.result.correlation_id == outcome.correlation_id


def test_expected_failure_is_logged_without_traceback(caplog: pytest.LogCaptureFixture) -> None:
    runner = EvaluationJobRunner(engine_factory(BrokenStore()))

    with caplog.at_level(logging.INFO, logger="license_compliance.jobs"):
        with pytest.raises(FindingStoreError, match="disk full"):
            runner.run("compliance", correlation_id="corr-2")

    failure = caplog.records[-1]
    assert failure.levelno == logging.ERROR
    assert failure.getMessage() == "Job ComplianceEvaluation failed (correlation_id=corr-2): disk full"
    assert not failure.exc_info


def test_missing_snapshot_is_logged_without_traceback(
    caplog: pytest.LogCaptureFixture, tmp_path: Path
) -> None:
    def factory(family: str) -> FindingReconciliationEngine:
        SnapshotLoader(tmp_path / "missing.json").load()
        raise AssertionError("unreachable")

    runner = EvaluationJobRunner(factory)

    with caplog.at_level(logging.INFO, logger="license_compliance.jobs"):
        with pytest.raises(SnapshotLoaderError):
            runner.run("compliance", correlation_id="corr-3")

    failure = caplog.records[-1]
    assert failure.getMessage().startswith(
        "Job ComplianceEvaluation failed (correlation_id=corr-3): License snapshot not found"
    )
    assert not failure.exc_info


def test_unexpected_failure_is_logged_with_traceback(caplog: pytest.LogCaptureFixture) -> None:
    def factory(family: str) -> FindingReconciliationEngine:
        raise ValueError("boom")

    runner = EvaluationJobRunner(factory)

    with caplog.at_level(logging.INFO, logger="license_compliance.jobs"):
        with pytest.raises(ValueError, match="boom"):
            runner.run("compliance", correlation_id="corr-4")

    failure = caplog.records[-1]
    assert failure.levelno == logging.ERROR
    assert failure.getMessage() == "Job ComplianceEvaluation failed (correlation_id=corr-4)"
    assert failure.exc_info is not None
    assert failure.exc_info[0] is ValueError


def test_cancelled_run_is_reraised() -> None:
    store = InMemoryFindingStore()
    runner = EvaluationJobRunner(engine_factory(store))
    cancel_event = threading.Event()
    cancel_event.set()

    with pytest.raises(EvaluationCancelledError):
        runner.run("compliance", cancel_event=cancel_event)

    assert store.list_findings() == []


def test_same_family_cannot_run_concurrently() -> None:
    started = threading.Event()
    release = threading.Event()
    inner = engine_factory()

    def blocking_factory(family: str) -> FindingReconciliationEngine:
        if family == "compliance":
            started.set()
            release.wait(timeout=5)
        return inner(family)

    runner = EvaluationJobRunner(blocking_factory)
    worker = threading.Thread(target=runner.run, args=("compliance",))
    worker.start()
    try:
        assert started.wait(timeout=5)
        with pytest.raises(JobAlreadyRunningError):
            runner.run("compliance")

        assert runner.run("optimization").job_key == "OptimizationAnalysis"
    finally:
        release.set()
        worker.join(timeout=5)

    assert runner.run("compliance").result.updated == 1
