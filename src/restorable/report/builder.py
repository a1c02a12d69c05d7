"""Report builder: accumulates run data and computes the summary.

Usage:
    from restorable.report.builder import ReportBuilder

    report = (
        ReportBuilder()
        .with_id(run_id)
        .with_project("billing", "Billing")
        .with_machine_id("db-verify-01")
        .with_backup_source(source.identifier())
        .with_database("postgres", 16)
        .with_schema(schema)
        .with_metrics(metrics)
        .with_checks(results)
        .build()
    )
"""

from datetime import datetime

from restorable.checks.base import count_failures
from restorable.checks.models import CheckResult
from restorable.report.models import REPORT_VERSION, DatabaseInfo, Report, Summary
from restorable.schema.models import MetricsSnapshot, SchemaSnapshot, utc_now

_NS_PER_US = 1_000
_NS_PER_MS = 1_000_000
_NS_PER_S = 1_000_000_000


def _with_fraction(value: int, unit: int) -> str:
    whole, rem = divmod(value, unit)
    if rem == 0:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{str(rem).rjust(digits, '0').rstrip('0')}"


def format_duration(ns: int) -> str:
    """Format a nanosecond duration as a compact human string.

    Examples:
        >>> format_duration(0)
        '0s'
        >>> format_duration(850_000_000)
        '850ms'
        >>> format_duration(62_500_000_000)
        '1m2.5s'
        >>> format_duration(3_600_000_000_000)
        '1h0m0s'
    """
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)

    if ns < _NS_PER_US:
        return f"{sign}{ns}ns"
    if ns < _NS_PER_MS:
        return f"{sign}{_with_fraction(ns, _NS_PER_US)}µs"
    if ns < _NS_PER_S:
        return f"{sign}{_with_fraction(ns, _NS_PER_MS)}ms"

    total_seconds, frac_ns = divmod(ns, _NS_PER_S)
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)

    prefix = ""
    if hours:
        prefix = f"{hours}h{minutes}m"
    elif minutes:
        prefix = f"{minutes}m"
    return f"{sign}{prefix}{_with_fraction(seconds * _NS_PER_S + frac_ns, _NS_PER_S)}s"


def compute_summary(checks: list[CheckResult], metrics: MetricsSnapshot | None) -> Summary:
    """Compute the report summary from check results.

    ``passed_checks + failed_checks == total_checks`` and
    ``success == (critical_failures == 0)`` always hold.
    """
    passed = sum(1 for c in checks if c.passed)
    critical, warning, _ = count_failures(checks)
    return Summary(
        success=critical == 0,
        total_checks=len(checks),
        passed_checks=passed,
        failed_checks=len(checks) - passed,
        critical_failures=critical,
        warning_failures=warning,
        restore_duration=format_duration(metrics.restore_duration_ns) if metrics else "",
    )


class ReportBuilder:
    """Collects report fields and builds an unsigned ``Report``.

    Args:
        version: Report format version written into the report.
    """

    def __init__(self, version: str = REPORT_VERSION):
        self._version = version
        self._id: str | None = None
        self._timestamp: datetime | None = None
        self._project_id: str | None = None
        self._project_name = ""
        self._machine_id: str | None = None
        self._backup_source: str | None = None
        self._db_type: str | None = None
        self._db_major_version = 0
        self._schema: SchemaSnapshot | None = None
        self._metrics: MetricsSnapshot | None = None
        self._checks: list[CheckResult] = []

    def with_id(self, run_id: str) -> "ReportBuilder":
        self._id = run_id
        return self

    def with_timestamp(self, timestamp: datetime) -> "ReportBuilder":
        self._timestamp = timestamp
        return self

    def with_project(self, project_id: str, name: str = "") -> "ReportBuilder":
        self._project_id = project_id
        self._project_name = name
        return self

    def with_machine_id(self, machine_id: str) -> "ReportBuilder":
        self._machine_id = machine_id
        return self

    def with_backup_source(self, source: str) -> "ReportBuilder":
        self._backup_source = source
        return self

    def with_database(self, db_type: str, major_version: int) -> "ReportBuilder":
        self._db_type = db_type
        self._db_major_version = major_version
        return self

    def with_schema(self, schema: SchemaSnapshot | None) -> "ReportBuilder":
        self._schema = schema
        return self

    def with_metrics(self, metrics: MetricsSnapshot | None) -> "ReportBuilder":
        self._metrics = metrics
        return self

    def with_checks(self, checks: list[CheckResult]) -> "ReportBuilder":
        self._checks = list(checks)
        return self

    def build(self) -> Report:
        """Validate required fields, compute the summary, and build the report.

        Raises:
            ValueError: If a required field was not provided.
        """
        required = {
            "id": self._id,
            "project_id": self._project_id,
            "machine_id": self._machine_id,
            "backup_source": self._backup_source,
            "database type": self._db_type,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ValueError(f"Cannot build report, missing: {', '.join(missing)}")

        size_bytes = self._metrics.db_size_bytes if self._metrics else 0
        return Report(
            version=self._version,
            id=self._id,
            timestamp=self._timestamp or utc_now(),
            project_id=self._project_id,
            project_name=self._project_name,
            machine_id=self._machine_id,
            backup_source=self._backup_source,
            database=DatabaseInfo(
                type=self._db_type,
                major_version=self._db_major_version,
                size_bytes=size_bytes,
            ),
            schema=self._schema,
            metrics=self._metrics,
            checks=self._checks,
            summary=compute_summary(self._checks, self._metrics),
        )
