"""restorable: verify database backups by actually restoring them.

Restores a backup artifact into a disposable PostgreSQL container, compares
the restored schema against a stored baseline, runs pluggable checks, and
writes a signed JSON report.

Usage:
    from restorable import load_config, run_verification
    from restorable import BaselineStore, SchemaSnapshot, compare_snapshots
    from restorable import Report, ReportBuilder, sign_report, verify_report
"""

__version__ = "0.1.0"

# Errors
from restorable.errors import (
    ConfigurationError,
    EnvironmentFailureError,
    ExitCode,
    InvalidReportError,
    RestorableError,
    RestoreFailure,
    RestoreStateError,
    SignatureError,
)

# Config
from restorable.config.loader import load_config
from restorable.config.models import RestorableConfig

# Schema
from restorable.schema.baseline import BaselineStore
from restorable.schema.comparator import compare_snapshots
from restorable.schema.models import MetricsSnapshot, SchemaSnapshot

# Checks
from restorable.checks import CheckLevel, CheckResult, build_checkers, run_checks

# Reports
from restorable.report import Report, ReportBuilder, sign_report, verify_report

# Pipeline
from restorable.pipeline import VerificationResult, run_verification

__all__ = [
    # Errors
    "RestorableError",
    "ConfigurationError",
    "EnvironmentFailureError",
    "RestoreFailure",
    "RestoreStateError",
    "SignatureError",
    "InvalidReportError",
    "ExitCode",
    # Config
    "load_config",
    "RestorableConfig",
    # Schema
    "BaselineStore",
    "SchemaSnapshot",
    "MetricsSnapshot",
    "compare_snapshots",
    # Checks
    "CheckLevel",
    "CheckResult",
    "build_checkers",
    "run_checks",
    # Reports
    "Report",
    "ReportBuilder",
    "sign_report",
    "verify_report",
    # Pipeline
    "run_verification",
    "VerificationResult",
]
