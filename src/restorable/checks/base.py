"""Checker protocol and check execution helpers.

Defines the ``Checker`` Protocol that every verification rule implements.
Checkers are stateless and side-effect free: everything they need is
passed to ``check()``.

Usage:
    from restorable.checks.base import run_checks, has_critical_failure

    results = run_checks(checkers, current, baseline, metrics)
    if has_critical_failure(results):
        ...
"""

from typing import Protocol

from restorable.checks.models import CheckLevel, CheckResult
from restorable.schema.models import MetricsSnapshot, SchemaSnapshot


class Checker(Protocol):
    """Verification rule interface.

    Attributes:
        name: Stable identifier used in reports.
        level: Severity reported when the check fails.
    """

    name: str
    level: CheckLevel

    def check(
        self,
        current: SchemaSnapshot,
        baseline: SchemaSnapshot | None,
        metrics: MetricsSnapshot | None,
    ) -> CheckResult:
        """Evaluate the current state and return exactly one result.

        Args:
            current: Schema extracted from the restored database.
            baseline: Last trusted schema, or None on the first run.
            metrics: Metrics extracted from the restored database, if any.
        """
        ...


def run_checks(
    checkers: list[Checker],
    current: SchemaSnapshot,
    baseline: SchemaSnapshot | None,
    metrics: MetricsSnapshot | None,
) -> list[CheckResult]:
    """Run checkers in order and return their results in the same order."""
    return [checker.check(current, baseline, metrics) for checker in checkers]


def has_critical_failure(results: list[CheckResult]) -> bool:
    """Return True if any critical check failed."""
    return any(r.level == CheckLevel.CRITICAL and not r.passed for r in results)


def count_failures(results: list[CheckResult]) -> tuple[int, int, int]:
    """Count failed checks by level.

    Returns:
        Tuple of (critical, warning, info) failure counts.
    """
    critical = warning = info = 0
    for r in results:
        if r.passed:
            continue
        if r.level == CheckLevel.CRITICAL:
            critical += 1
        elif r.level == CheckLevel.WARNING:
            warning += 1
        else:
            info += 1
    return critical, warning, info
