"""Report persistence: one write-once JSON file per run.

Files are named ``<YYYYmmdd_HHMMSS>_<id>.json`` from the report's timestamp
and run id. Existing files are never overwritten.

Usage:
    from restorable.report.store import write_report, list_reports, find_report

    path = write_report(report, Path("~/.restorable/reports").expanduser())
    for listing in list_reports(report_dir):
        print(listing.id, listing.status)
    report, path = find_report(report_dir, "3f1c")
"""

import logging
from pathlib import Path

from pydantic import ValidationError

from restorable.errors import InvalidReportError, ReportNotFoundError
from restorable.report.models import Report, ReportListing

logger = logging.getLogger(__name__)


def report_filename(report: Report) -> str:
    """Return the file name for a report."""
    return f"{report.timestamp.strftime('%Y%m%d_%H%M%S')}_{report.id}.json"


def write_report(report: Report, directory: Path) -> Path:
    """Write a report to its uniquely named file.

    Args:
        report: The report to persist (signed or unsigned).
        directory: Report directory; created if missing.

    Returns:
        Path of the written file.

    Raises:
        FileExistsError: If a report file with the same name already exists.
    """
    directory = Path(directory).expanduser()
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / report_filename(report)
    with open(path, "x", encoding="utf-8") as f:
        f.write(report.to_json())

    logger.info("Wrote report %s to %s", report.id, path)
    return path


def load_report(path: Path) -> Report:
    """Load a report from a JSON file.

    Raises:
        InvalidReportError: If the file cannot be read or is not a valid report.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidReportError(f"Failed to read report {path}: {e}") from e
    try:
        return Report.model_validate_json(raw)
    except ValidationError as e:
        raise InvalidReportError(f"Failed to parse report {path}: {e}") from e


def list_reports(directory: Path) -> list[ReportListing]:
    """List reports in a directory, newest first.

    Files that cannot be parsed are skipped with a warning.
    """
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        return []

    listings: list[ReportListing] = []
    for path in sorted(directory.glob("*.json")):
        try:
            report = load_report(path)
        except InvalidReportError as e:
            logger.warning("Skipping unreadable report %s: %s", path, e)
            continue
        listings.append(
            ReportListing(
                id=report.id,
                timestamp=report.timestamp,
                project_id=report.project_id,
                success=report.summary.success,
                status=report.summary.status,
                signed=report.signed,
                path=path,
            )
        )

    listings.sort(key=lambda listing: listing.timestamp, reverse=True)
    return listings


def find_report(directory: Path, ref: str) -> tuple[Report, Path]:
    """Find a report by exact id, unique id prefix, or unique filename match.

    Returns:
        Tuple of (report, path).

    Raises:
        ReportNotFoundError: If nothing matches or the reference is ambiguous.
    """
    listings = list_reports(directory)

    for listing in listings:
        if listing.id == ref:
            return load_report(listing.path), listing.path

    matches = [listing for listing in listings if listing.id.startswith(ref)]
    if len(matches) > 1:
        raise ReportNotFoundError(f"Ambiguous report ID '{ref}' matches {len(matches)} reports")
    if len(matches) == 1:
        return load_report(matches[0].path), matches[0].path

    files = sorted(Path(directory).expanduser().glob(f"*{ref}*.json"))
    if len(files) == 1:
        return load_report(files[0]), files[0]
    if len(files) > 1:
        raise ReportNotFoundError(f"Ambiguous report reference '{ref}' matches {len(files)} files")

    raise ReportNotFoundError(f"Report not found: {ref}")
