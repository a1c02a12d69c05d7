"""Verification report models.

A report is frozen once built. Signing produces a new copy carrying the
signature, so a report object is never changed after its signature was
computed.

Report file format (JSON):

.. code-block:: json

    {
        "version": "1",
        "id": "3f1c...",
        "timestamp": "2024-01-01T00:00:00.000000Z",
        "project_id": "billing",
        "project_name": "Billing",
        "machine_id": "db-verify-01",
        "backup_source": "local:/backups/billing.dump",
        "database": {"type": "postgres", "major_version": 16, "size_bytes": 1048576},
        "schema": {"version": "1", "timestamp": "...", "tables": []},
        "metrics": {"timestamp": "...", "restore_duration_ns": 0, "db_size_bytes": 0, "table_metrics": []},
        "checks": [{"name": "tables_exist", "level": "critical", "passed": true, "message": "..."}],
        "summary": {"success": true, "total_checks": 1, "passed_checks": 1, "failed_checks": 0,
                    "critical_failures": 0, "warning_failures": 0, "restore_duration": "12.5s"},
        "signature": "<base64-encoded-ed25519-signature>"
    }

``signature`` is omitted from unsigned reports.
"""

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from restorable.checks.models import CheckResult
from restorable.schema.models import MetricsSnapshot, SchemaSnapshot, UTCTimestamp

REPORT_VERSION = "1"


class DatabaseInfo(BaseModel):
    """Database identity recorded in the report."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str
    major_version: int = 0
    size_bytes: int = 0


class Summary(BaseModel):
    """Pass/fail overview computed from the check results."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    success: bool
    total_checks: int = 0
    passed_checks: int = 0
    failed_checks: int = 0
    critical_failures: int = 0
    warning_failures: int = 0
    restore_duration: str = ""

    @property
    def status(self) -> str:
        """``success``, ``warning`` (partial success) or ``failed``."""
        if not self.success:
            return "failed"
        if self.warning_failures:
            return "warning"
        return "success"


class Report(BaseModel):
    """A versioned, optionally signed verification report."""

    # Unknown keys are rejected; ``schema`` is accepted only under its alias.
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_by_name=False,
        validate_by_alias=True,
        serialize_by_alias=True,
    )

    version: str = REPORT_VERSION
    id: str
    timestamp: UTCTimestamp
    project_id: str
    project_name: str = ""
    machine_id: str
    backup_source: str
    database: DatabaseInfo
    schema_: SchemaSnapshot | None = Field(default=None, alias="schema")
    metrics: MetricsSnapshot | None = None
    checks: list[CheckResult] = Field(default_factory=list)
    summary: Summary
    signature: str | None = None

    @property
    def signed(self) -> bool:
        return bool(self.signature)

    def to_json(self) -> str:
        """Serialize for the report file, omitting an absent signature."""
        exclude = {"signature"} if self.signature is None else None
        return self.model_dump_json(indent=2, by_alias=True, exclude=exclude)


class ReportListing(BaseModel):
    """Lightweight summary of a persisted report for listings."""

    id: str
    timestamp: datetime
    project_id: str
    success: bool
    status: str
    signed: bool
    path: Path
