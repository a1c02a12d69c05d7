"""Checker registry: maps configured kind strings to checker factories.

Usage:
    from restorable.checks.registry import build_checkers

    checkers = build_checkers(config.verification)
"""

import logging
from collections.abc import Callable

from restorable.checks.base import Checker
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
from restorable.config.models import VerificationConfig
from restorable.errors import ConfigurationError

logger = logging.getLogger(__name__)

CheckerFactory = Callable[[VerificationConfig], Checker]

SCHEMA_CHECKS = ("tables_exist", "table_count", "new_tables", "columns_match")
ROW_COUNT_CHECKS = ("row_counts", "non_empty_tables", "total_row_count")

CHECKER_FACTORIES: dict[str, CheckerFactory] = {
    "tables_exist": lambda cfg: TablesExistChecker(),
    "table_count": lambda cfg: TableCountChecker(),
    "new_tables": lambda cfg: NewTablesChecker(),
    "columns_match": lambda cfg: ColumnsMatchChecker(),
    "row_counts": lambda cfg: RowCountChecker(cfg.row_counts.warn_threshold_percent),
    "non_empty_tables": lambda cfg: NonEmptyTablesChecker(cfg.row_counts.minimum_tables),
    "total_row_count": lambda cfg: TotalRowCountChecker(cfg.row_counts.minimum_rows),
    "restore_duration": lambda cfg: RestoreDurationChecker(cfg.max_restore_seconds),
}

DEFAULT_CHECKS: tuple[str, ...] = (*SCHEMA_CHECKS, *ROW_COUNT_CHECKS, "restore_duration")


def get_checker(kind: str, config: VerificationConfig) -> Checker:
    """Build a single checker by kind.

    Raises:
        ConfigurationError: If the kind is not registered.
    """
    factory = CHECKER_FACTORIES.get(kind)
    if factory is None:
        available = ", ".join(CHECKER_FACTORIES)
        raise ConfigurationError(f"Unknown check kind '{kind}'. Available: {available}")
    return factory(config)


def build_checkers(config: VerificationConfig) -> list[Checker]:
    """Build the ordered checker list for a run.

    Uses ``config.checks`` when set, otherwise ``DEFAULT_CHECKS``. Schema
    checks are dropped when ``schema.enabled`` is false and row count
    checks when ``row_counts.enabled`` is false. Order is preserved.

    Raises:
        ConfigurationError: If any configured kind is unknown.
    """
    kinds = list(config.checks) if config.checks is not None else list(DEFAULT_CHECKS)

    checkers: list[Checker] = []
    for kind in kinds:
        checker = get_checker(kind, config)
        if kind in SCHEMA_CHECKS and not config.schema_checks.enabled:
            logger.debug("Schema verification disabled; skipping %s", kind)
            continue
        if kind in ROW_COUNT_CHECKS and not config.row_counts.enabled:
            logger.debug("Row count verification disabled; skipping %s", kind)
            continue
        checkers.append(checker)
    return checkers
