from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RuleResult:
    """
    Result of a single compliance rule.
    """
    rule_id: str
    passed: bool
    message: str
    metrics: dict[str, Any] | None = None


@dataclass(frozen=True)
class ComplianceResult:
    """
    Aggregate compliance outcome for one captured photo.

    score:
        Percentage of rules passed, 0-100.
    reasons:
        "<rule name>: <description>" for every failed rule, in rule order.
    results:
        Per-rule outcomes with the measured values.
    """
    passed: bool
    score: int
    reasons: list[str] = field(default_factory=list)
    results: list[RuleResult] = field(default_factory=list)
