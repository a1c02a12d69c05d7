"""Verification reports: models, builder, signing, and persistence.

Usage:
    from restorable.report import ReportBuilder, sign_report, verify_report
    from restorable.report import write_report, load_report, find_report
"""

from restorable.report.builder import ReportBuilder, compute_summary, format_duration
from restorable.report.models import REPORT_VERSION, DatabaseInfo, Report, ReportListing, Summary
from restorable.report.signing import (
    canonical_bytes,
    generate_keypair,
    load_private_key,
    load_public_key,
    public_key_path_for,
    sign_report,
    verify_report,
)
from restorable.report.store import find_report, list_reports, load_report, write_report

__all__ = [
    "REPORT_VERSION",
    "Report",
    "ReportListing",
    "DatabaseInfo",
    "Summary",
    "ReportBuilder",
    "compute_summary",
    "format_duration",
    "canonical_bytes",
    "sign_report",
    "verify_report",
    "load_private_key",
    "load_public_key",
    "public_key_path_for",
    "generate_keypair",
    "write_report",
    "load_report",
    "list_reports",
    "find_report",
]
