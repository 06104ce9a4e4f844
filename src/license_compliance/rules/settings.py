"""Utilities for loading and merging rule settings manifest files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Sequence, Set

import yaml

from ..models import DEFAULT_EVIDENCE_MAX_BYTES, FindingSeverity


class RuleSettingsError(RuntimeError):
    """Raised when rule settings manifests cannot be loaded or parsed."""


@dataclass(slots=True)
class RuleSettings:
    """Tunable thresholds and switches for one rule family."""

    family: str
    disabled_rules: Set[str] = field(default_factory=set)
    severity_overrides: Dict[str, FindingSeverity] = field(default_factory=dict)
    underutilized_ratio: float = 0.30
    underutilized_critical_ratio: float = 0.10
    unassigned_min_seats: int = 5
    unassigned_ratio: float = 0.20
    evidence_max_bytes: int = DEFAULT_EVIDENCE_MAX_BYTES
    default_window_days: int = 30

    def is_enabled(self, rule_key: str) -> bool:
        return rule_key not in self.disabled_rules


_NUMERIC_SETTINGS: Mapping[str, type] = {
    "underutilized_ratio": float,
    "underutilized_critical_ratio": float,
    "unassigned_min_seats": int,
    "unassigned_ratio": float,
    "evidence_max_bytes": int,
    "default_window_days": int,
}

_SEVERITY_LOOKUP = {severity.value.lower(): severity for severity in FindingSeverity}

_DEFAULT_MANIFEST = Path(__file__).resolve().parent / "manifests" / "default.yaml"


class RuleSettingsManager:
    """Load settings manifests and expose merged settings per rule family."""

    def __init__(self, default_manifests: Sequence[Path | str] | None = None) -> None:
        manifest_paths: List[Path]
        if default_manifests is None:
            manifest_paths = []
            if _DEFAULT_MANIFEST.exists():
                manifest_paths.append(_DEFAULT_MANIFEST)
        else:
            manifest_paths = [Path(path) for path in default_manifests]

        self._default_manifests = manifest_paths

    # ------------------------------------------------------------------
    def load(self, manifests: Sequence[Path | str] | None = None) -> Dict[str, RuleSettings]:
        """Return settings for every family defined by the provided manifests."""

        manifest_paths = [Path(path) for path in self._default_manifests]
        if manifests:
            manifest_paths.extend(Path(path) for path in manifests)

        families: MutableMapping[str, RuleSettings] = {}
        for manifest_path in manifest_paths:
            data = self._load_manifest(manifest_path)
            for family_config in data.get("families", []) or []:
                if not isinstance(family_config, Mapping):
                    continue
                name = family_config.get("name")
                if not name:
                    continue

                settings = families.get(name, RuleSettings(family=str(name)))

                rules = family_config.get("rules")
                if isinstance(rules, Mapping):
                    for rule_key, enabled in rules.items():
                        if not isinstance(rule_key, str):
                            continue
                        if bool(enabled):
                            settings.disabled_rules.discard(rule_key.strip())
                        else:
                            settings.disabled_rules.add(rule_key.strip())

                severity = family_config.get("severity")
                if isinstance(severity, Mapping):
                    for rule_key, level in severity.items():
                        if not isinstance(rule_key, str):
                            continue
                        severity_value = self._parse_severity(level)
                        if severity_value is None:
                            raise RuleSettingsError(
                                f"Unknown severity '{level}' for rule {rule_key} in {manifest_path}"
                            )
                        settings.severity_overrides[rule_key.strip()] = severity_value

                thresholds = family_config.get("settings")
                if isinstance(thresholds, Mapping):
                    self._apply_thresholds(settings, thresholds, manifest_path)

                families[str(name)] = settings

        return dict(families)

    # ------------------------------------------------------------------
    def settings_for(
        self, family: str, manifests: Sequence[Path | str] | None = None
    ) -> RuleSettings:
        """Return the merged settings for ``family`` (defaults when undefined)."""

        return self.load(manifests).get(family) or RuleSettings(family=family)

    # ------------------------------------------------------------------
    def _apply_thresholds(
        self, settings: RuleSettings, thresholds: Mapping[str, Any], path: Path
    ) -> None:
        for key, raw in thresholds.items():
            expected = _NUMERIC_SETTINGS.get(key)
            if expected is None:
                continue
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise RuleSettingsError(f"Setting '{key}' must be numeric in {path}")
            if expected is int and float(raw) != int(raw):
                raise RuleSettingsError(f"Setting '{key}' must be a whole number in {path}")
            if raw <= 0 and key in {"evidence_max_bytes", "default_window_days"}:
                raise RuleSettingsError(f"Setting '{key}' must be positive in {path}")

            setattr(settings, key, expected(raw))

    def _parse_severity(self, level: object) -> FindingSeverity | None:
        if isinstance(level, FindingSeverity):
            return level
        if isinstance(level, str):
            return _SEVERITY_LOOKUP.get(level.strip().lower())
        return None

    def _load_manifest(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise RuleSettingsError(f"Rule settings manifest not found: {path}")

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem errors surfaced to caller
            raise RuleSettingsError(f"Failed to read rule settings manifest {path}") from exc

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as exc:
            raise RuleSettingsError(f"Invalid YAML in rule settings manifest {path}") from exc

        if not isinstance(data, Mapping):
            raise RuleSettingsError(f"Rule settings manifest must be a mapping: {path}")

        return dict(data)
