"""Rule families and rule settings management."""

from __future__ import annotations

from typing import Callable, Dict

from .base import (
    CandidateFinding,
    Rule,
    RuleContext,
    RuleFamily,
    UnsupportedRuleFamilyError,
)
from .compliance import compliance_family
from .optimization import optimization_family
from .settings import RuleSettings, RuleSettingsError, RuleSettingsManager

FAMILY_BUILDERS: Dict[str, Callable[[RuleSettings | None], RuleFamily]] = {
    "compliance": compliance_family,
    "optimization": optimization_family,
}


def build_family(name: str, settings: RuleSettings | None = None) -> RuleFamily:
    """Return the rule family registered under ``name``."""

    try:
        builder = FAMILY_BUILDERS[name]
    except KeyError as exc:
        raise UnsupportedRuleFamilyError(f"Unsupported rule family: {name}") from exc
    return builder(settings)


__all__ = [
    "CandidateFinding",
    "FAMILY_BUILDERS",
    "Rule",
    "RuleContext",
    "RuleFamily",
    "RuleSettings",
    "RuleSettingsError",
    "RuleSettingsManager",
    "UnsupportedRuleFamilyError",
    "build_family",
    "compliance_family",
    "optimization_family",
]
