"""Pluggable verification checks.

Provides the ``Checker`` protocol, the built-in checkers, and the registry
that builds the configured checker list.

Usage:
    from restorable.checks import build_checkers, run_checks
"""

from restorable.checks.base import Checker, count_failures, has_critical_failure, run_checks
from restorable.checks.models import CheckLevel, CheckResult
from restorable.checks.registry import CHECKER_FACTORIES, DEFAULT_CHECKS, build_checkers, get_checker
from restorable.checks.rowcount import (
    NonEmptyTablesChecker,
    RestoreDurationChecker,
    RowCountChecker,
    TotalRowCountChecker,
)
from restorable.checks.tables import (
    ColumnsMatchChecker,
    NewTablesChecker,
    TableCountChecker,
    TablesExistChecker,
)

__all__ = [
    "Checker",
    "CheckLevel",
    "CheckResult",
    "run_checks",
    "has_critical_failure",
    "count_failures",
    "build_checkers",
    "get_checker",
    "CHECKER_FACTORIES",
    "DEFAULT_CHECKS",
    "TablesExistChecker",
    "TableCountChecker",
    "NewTablesChecker",
    "ColumnsMatchChecker",
    "RowCountChecker",
    "NonEmptyTablesChecker",
    "TotalRowCountChecker",
    "RestoreDurationChecker",
]
