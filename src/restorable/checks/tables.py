"""Schema drift checkers comparing the restored schema to the baseline.

With no baseline (first run) every checker here passes.
"""

from restorable.checks.models import CheckLevel, CheckResult
from restorable.schema.comparator import compare_snapshots
from restorable.schema.models import MetricsSnapshot, SchemaSnapshot


class TablesExistChecker:
    """Fails when any baseline table is missing from the restored database."""

    name = "tables_exist"
    level = CheckLevel.CRITICAL

    def check(
        self,
        current: SchemaSnapshot,
        baseline: SchemaSnapshot | None,
        metrics: MetricsSnapshot | None,
    ) -> CheckResult:
        if baseline is None:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=True,
                message="No baseline schema available (first verification run)",
            )

        diff = compare_snapshots(current, baseline)
        if diff.missing_tables:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=False,
                message=(
                    f"Missing {len(diff.missing_tables)} tables: "
                    f"{', '.join(diff.missing_tables)}"
                ),
            )

        return CheckResult(
            name=self.name,
            level=self.level,
            passed=True,
            message=f"All {len(baseline.tables)} expected tables present",
        )


class TableCountChecker:
    """Fails when the table count dropped below the baseline. Growth passes."""

    name = "table_count"
    level = CheckLevel.WARNING

    def check(
        self,
        current: SchemaSnapshot,
        baseline: SchemaSnapshot | None,
        metrics: MetricsSnapshot | None,
    ) -> CheckResult:
        count = len(current.tables)
        if baseline is None:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=True,
                message=f"Found {count} tables (no baseline for comparison)",
            )

        delta = compare_snapshots(current, baseline).table_count_delta
        if delta == 0:
            passed, message = True, f"Table count matches baseline: {count} tables"
        elif delta > 0:
            passed, message = True, f"Table count increased: {count} tables (+{delta} from baseline)"
        else:
            passed, message = False, f"Table count decreased: {count} tables ({delta} from baseline)"

        return CheckResult(name=self.name, level=self.level, passed=passed, message=message)


class NewTablesChecker:
    """Reports tables absent from the baseline. Informational, always passes."""

    name = "new_tables"
    level = CheckLevel.INFO

    def check(
        self,
        current: SchemaSnapshot,
        baseline: SchemaSnapshot | None,
        metrics: MetricsSnapshot | None,
    ) -> CheckResult:
        if baseline is None:
            message = "No baseline schema available"
        else:
            new_tables = compare_snapshots(current, baseline).new_tables
            if new_tables:
                message = f"Found {len(new_tables)} new tables: {', '.join(new_tables)}"
            else:
                message = "No new tables detected"

        return CheckResult(name=self.name, level=self.level, passed=True, message=message)


class ColumnsMatchChecker:
    """Fails when a baseline column is missing from a table that still exists.

    Tables missing entirely are reported by ``TablesExistChecker`` instead.
    """

    name = "columns_match"
    level = CheckLevel.WARNING

    def check(
        self,
        current: SchemaSnapshot,
        baseline: SchemaSnapshot | None,
        metrics: MetricsSnapshot | None,
    ) -> CheckResult:
        if baseline is None:
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=True,
                message="No baseline schema available",
            )

        missing = compare_snapshots(current, baseline).missing_columns
        if missing:
            listed = ", ".join(f"{d.table}.{d.column}" for d in missing)
            return CheckResult(
                name=self.name,
                level=self.level,
                passed=False,
                message=f"Missing {len(missing)} columns: {listed}",
            )

        return CheckResult(
            name=self.name,
            level=self.level,
            passed=True,
            message="All baseline columns present",
        )
