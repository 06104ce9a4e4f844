"""Command-line interface implementation for the license compliance tooling."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

from ..adapters import (
    FindingStore,
    FindingStoreError,
    InMemorySubjectSource,
    InMemoryUsageSource,
    JsonFileFindingStore,
    SnapshotLoader,
    SnapshotLoaderError,
)
from ..jobs import EvaluationJobRunner, JobAlreadyRunningError
from ..models import (
    EvaluationResult,
    Finding,
    FindingKind,
    FindingSeverity,
    FindingStatus,
    InvalidTransitionError,
)
from ..normalization import SnapshotNormalizer
from ..rules import (
    FAMILY_BUILDERS,
    RuleSettingsError,
    RuleSettingsManager,
    UnsupportedRuleFamilyError,
    build_family,
)
from ..service import EvaluationError, FindingReconciliationEngine, acknowledge_finding

SEVERITY_RANK = {
    FindingSeverity.INFO: 0,
    FindingSeverity.WARNING: 1,
    FindingSeverity.CRITICAL: 2,
}

FAMILY_KINDS = {
    "compliance": FindingKind.VIOLATION,
    "optimization": FindingKind.INSIGHT,
}


@dataclass(slots=True)
class EvaluationReport:
    """Run statistics plus the findings that are still active for the family."""

    result: EvaluationResult
    findings: Sequence[Finding]

    @property
    def highest_severity(self) -> FindingSeverity | None:
        if not self.findings:
            return None
        return max(self.findings, key=lambda finding: SEVERITY_RANK[finding.severity]).severity

    def counts_by_severity(self) -> dict[str, int]:
        counts: MutableMapping[FindingSeverity, int] = {
            severity: 0 for severity in FindingSeverity
        }
        for finding in self.findings:
            counts[finding.severity] += 1
        return {severity.value: count for severity, count in counts.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result.to_dict(),
            "summary": {
                "active_findings": len(self.findings),
                "highest_severity": self.highest_severity.value if self.highest_severity else None,
                "counts": self.counts_by_severity(),
            },
            "findings": [finding.to_dict() for finding in self.findings],
        }


def _sort_findings(findings: Sequence[Finding]) -> list[Finding]:
    return sorted(
        findings,
        key=lambda finding: (
            -SEVERITY_RANK[finding.severity],
            finding.rule_key,
            finding.license_id or "",
        ),
    )


def render_table(findings: Sequence[Finding]) -> str:
    """Render findings as a simple text table for terminal output."""

    if not findings:
        return "No findings recorded."

    headers = ("Severity", "Status", "Rule", "License", "Title", "Id")
    rows = [headers]
    for finding in findings:
        rows.append(
            (
                finding.severity.value,
                finding.status.value,
                finding.rule_key,
                finding.license_id or "-",
                finding.title,
                finding.id,
            )
        )

    widths = [max(len(str(row[idx])) for row in rows) for idx in range(len(headers))]

    def format_row(values: tuple[str, ...]) -> str:
        return "  ".join(value.ljust(width) for value, width in zip(values, widths, strict=True))

    lines = [format_row(headers)]
    lines.append("  ".join("=" * width for width in widths))
    for row in rows[1:]:
        lines.append(format_row(row))
    return "\n".join(lines)


def render_result(result: EvaluationResult) -> str:
    return "\n".join(
        [
            result.summary(),
            (
                f"Totals: {result.total_open} open, {result.total_acknowledged} acknowledged, "
                f"{result.total_resolved} resolved."
            ),
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""

    parser = argparse.ArgumentParser(
        prog="license-compliance", description="License compliance and optimization findings"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging on stderr."
    )
    subparsers = parser.add_subparsers(dest="command")

    evaluate_parser = subparsers.add_parser(
        "evaluate", help="Evaluate a rule family and reconcile the recorded findings."
    )
    evaluate_parser.add_argument(
        "--family",
        choices=sorted(FAMILY_BUILDERS),
        default="compliance",
        help="Rule family to evaluate.",
    )
    evaluate_parser.add_argument(
        "--snapshot",
        type=Path,
        required=True,
        help="Path to the JSON export containing licenses and daily usage.",
    )
    evaluate_parser.add_argument(
        "--state",
        type=Path,
        required=True,
        help="Path to the JSON file holding recorded findings.",
    )
    evaluate_parser.add_argument(
        "--from",
        dest="window_start",
        default=None,
        metavar="YYYY-MM-DD",
        help="First day of the usage window (defaults to a trailing window).",
    )
    evaluate_parser.add_argument(
        "--to",
        dest="window_end",
        default=None,
        metavar="YYYY-MM-DD",
        help="Last day of the usage window (defaults to today, UTC).",
    )
    evaluate_parser.add_argument(
        "--config",
        dest="manifests",
        action="append",
        default=None,
        type=str,
        help="Rule settings manifest (YAML/JSON) merged over the packaged defaults.",
    )
    evaluate_parser.add_argument(
        "--correlation-id",
        default=None,
        help="Correlation id recorded with the run (generated when omitted).",
    )
    evaluate_parser.add_argument(
        "--fail-on",
        choices=[severity.value.lower() for severity in FindingSeverity],
        default=None,
        help="Exit with status 1 when active findings at or above this severity remain.",
    )
    evaluate_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format for evaluation results.",
    )

    acknowledge_parser = subparsers.add_parser(
        "acknowledge", help="Acknowledge an open finding."
    )
    acknowledge_parser.add_argument("finding_id", help="Id of the finding to acknowledge.")
    acknowledge_parser.add_argument(
        "--state", type=Path, required=True, help="Path to the findings JSON file."
    )
    acknowledge_parser.add_argument(
        "--by", dest="actor", required=True, help="User acknowledging the finding."
    )
    acknowledge_parser.add_argument(
        "--note", required=True, help="Reason recorded with the acknowledgement."
    )

    findings_parser = subparsers.add_parser("findings", help="List recorded findings.")
    findings_parser.add_argument(
        "--state", type=Path, required=True, help="Path to the findings JSON file."
    )
    findings_parser.add_argument(
        "--family",
        choices=sorted(FAMILY_BUILDERS),
        default=None,
        help="Only list findings of this rule family.",
    )
    findings_parser.add_argument(
        "--status",
        choices=[status.value.lower() for status in FindingStatus],
        default=None,
        help="Only list findings in this status.",
    )
    findings_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format for the listing.",
    )

    return parser


def create_engine(
    family: str,
    *,
    snapshot_path: Path,
    store: FindingStore,
    manifests: Sequence[str] | None = None,
    settings_manager: RuleSettingsManager | None = None,
) -> FindingReconciliationEngine:
    """Create an engine for ``family`` backed by a snapshot file and ``store``."""

    manager = settings_manager or RuleSettingsManager()
    settings = manager.settings_for(family, list(manifests or []))
    rule_family = build_family(family, settings)

    snapshot = SnapshotNormalizer().normalize(SnapshotLoader(snapshot_path).load())
    return FindingReconciliationEngine(
        rule_family,
        subjects=InMemorySubjectSource(snapshot.licenses),
        usage=InMemoryUsageSource(snapshot.usage),
        store=store,
    )


def _parse_date(value: str | None, flag: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"{flag} must be a date in YYYY-MM-DD form: {value}") from exc


def _active_findings(store: FindingStore, family: str) -> list[Finding]:
    findings = store.list_findings(FAMILY_KINDS[family])
    return _sort_findings([finding for finding in findings if finding.is_active])


def _format_report(
    report: EvaluationReport,
    *,
    fail_on: FindingSeverity | None,
    output_format: str,
) -> tuple[str, bool]:
    if output_format not in {"table", "json"}:
        raise ValueError("format must be either 'table' or 'json'")

    highest = report.highest_severity
    should_fail = False
    if fail_on is not None and highest is not None:
        should_fail = SEVERITY_RANK[highest] >= SEVERITY_RANK[fail_on]

    if output_format == "json":
        output = json.dumps(report.to_dict(), indent=2)
    else:
        output = "\n\n".join([render_result(report.result), render_table(report.findings)])

    return output, should_fail


def _parse_severity(value: str | None) -> FindingSeverity | None:
    if value is None:
        return None
    return next(severity for severity in FindingSeverity if severity.value.lower() == value)


def _handle_evaluate(args: argparse.Namespace) -> int:
    try:
        window_start = _parse_date(args.window_start, "--from")
        window_end = _parse_date(args.window_end, "--to")
    except ValueError as exc:
        print(f"Error: {exc}")
        return 2

    store = JsonFileFindingStore(args.state)
    manifests = list(args.manifests or [])

    def factory(family: str) -> FindingReconciliationEngine:
        return create_engine(
            family, snapshot_path=args.snapshot, store=store, manifests=manifests
        )

    runner = EvaluationJobRunner(factory)
    try:
        outcome = runner.run(
            args.family,
            window_start,
            window_end,
            correlation_id=args.correlation_id,
        )
        findings = _active_findings(store, args.family)
    except (
        SnapshotLoaderError,
        RuleSettingsError,
        UnsupportedRuleFamilyError,
        FindingStoreError,
        EvaluationError,
        JobAlreadyRunningError,
    ) as exc:
        print(f"Error: {exc}")
        return 2

    report = EvaluationReport(result=outcome.result, findings=findings)
    output, should_fail = _format_report(
        report,
        fail_on=_parse_severity(args.fail_on),
        output_format=args.format,
    )

    print(output)
    return 1 if should_fail else 0


def _handle_acknowledge(args: argparse.Namespace) -> int:
    store = JsonFileFindingStore(args.state)
    try:
        finding = acknowledge_finding(store, args.finding_id, args.actor, args.note)
    except (FindingStoreError, InvalidTransitionError) as exc:
        print(f"Error: {exc}")
        return 2

    print(f"Acknowledged {finding.rule_key} finding {finding.id} for license {finding.license_id}.")
    return 0


def _handle_findings(args: argparse.Namespace) -> int:
    store = JsonFileFindingStore(args.state)
    kind = FAMILY_KINDS[args.family] if args.family else None
    try:
        findings = store.list_findings(kind)
    except FindingStoreError as exc:
        print(f"Error: {exc}")
        return 2

    if args.status:
        findings = [
            finding for finding in findings if finding.status.value.lower() == args.status
        ]
    findings = _sort_findings(findings)

    if args.format == "json":
        print(json.dumps([finding.to_dict() for finding in findings], indent=2))
    else:
        print(render_table(findings))
    return 0


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by tests and the ``python -m`` invocation."""

    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    handlers: Mapping[str, Any] = {
        "evaluate": _handle_evaluate,
        "acknowledge": _handle_acknowledge,
        "findings": _handle_findings,
    }
    handler = handlers.get(args.command)
    if handler is not None:
        return handler(args)

    parser.print_help()
    return 0


def run() -> None:  # pragma: no cover - thin wrapper for module execution
    """Execute the CLI and exit with the produced status code."""

    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover - module execution guard
    run()
