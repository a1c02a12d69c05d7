"""Data volume and restore duration checkers."""

from restorable.checks.models import CheckLevel, CheckResult
from restorable.schema.models import MetricsSnapshot, SchemaSnapshot


class RowCountChecker:
    """Compares row counts against the baseline.

    Baselines hold schema only, so there are no baseline row counts to
    compare against; the check degrades to an informational pass that
    reports the current total.
    """

    name = "row_counts"
    level = CheckLevel.WARNING

    def __init__(self, warn_threshold_percent: int = 5):
        self.warn_threshold_percent = warn_threshold_percent

    def check(
        self,
        current: SchemaSnapshot,
        baseline: SchemaSnapshot | None,
        metrics: MetricsSnapshot | None,
    ) -> CheckResult:
        if baseline is None or metrics is None:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=True,
                message="No baseline available for row count comparison",
            )

        return CheckResult(
            name=self.name,
            level=self.level,
            passed=True,
            message=(
                "Row count check skipped (baseline metrics not available). "
                f"Current total rows: {metrics.total_rows}"
            ),
        )


class NonEmptyTablesChecker:
    """Requires a minimum number of tables to contain rows."""

    name = "non_empty_tables"
    level = CheckLevel.WARNING

    def __init__(self, minimum_tables: int = 1):
        self.minimum_tables = minimum_tables

    def check(
        self,
        current: SchemaSnapshot,
        baseline: SchemaSnapshot | None,
        metrics: MetricsSnapshot | None,
    ) -> CheckResult:
        if metrics is None:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=False,
                message="No metrics available to check table data",
            )

        with_data = sum(1 for tm in metrics.table_metrics if tm.row_count > 0)
        if with_data >= self.minimum_tables:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=True,
                message=f"{with_data}/{len(metrics.table_metrics)} tables have data",
            )

        return CheckResult(
            name=self.name,
            level=self.level,
            passed=False,
            message=f"Only {with_data} tables have data (minimum: {self.minimum_tables})",
        )


class TotalRowCountChecker:
    """Requires a minimum total row count across all tables."""

    name = "total_row_count"
    level = CheckLevel.WARNING

    def __init__(self, minimum_rows: int = 1):
        self.minimum_rows = minimum_rows

    def check(
        self,
        current: SchemaSnapshot,
        baseline: SchemaSnapshot | None,
        metrics: MetricsSnapshot | None,
    ) -> CheckResult:
        if metrics is None:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=False,
                message="No metrics available",
            )

        total = metrics.total_rows
        if total >= self.minimum_rows:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=True,
                message=f"Total row count: {total}",
            )

        return CheckResult(
            name=self.name,
            level=self.level,
            passed=False,
            message=f"Total row count {total} is below minimum {self.minimum_rows}",
        )


class RestoreDurationChecker:
    """Reports restore duration; fails as a warning past a positive maximum."""

    name = "restore_duration"
    level = CheckLevel.INFO

    def __init__(self, max_duration_seconds: int = 0):
        self.max_duration_seconds = max_duration_seconds

    def check(
        self,
        current: SchemaSnapshot,
        baseline: SchemaSnapshot | None,
        metrics: MetricsSnapshot | None,
    ) -> CheckResult:
        if metrics is None:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=True,
                message="No metrics available",
            )

        seconds = int(metrics.restore_seconds)
        if self.max_duration_seconds > 0 and seconds > self.max_duration_seconds:
            return CheckResult(
                name=self.name,
                level=CheckLevel.WARNING,
                passed=False,
                message=f"Restore took {seconds} seconds (maximum: {self.max_duration_seconds})",
            )

        return CheckResult(
            name=self.name,
            level=self.level,
            passed=True,
            message=f"Restore completed in {seconds} seconds",
        )
