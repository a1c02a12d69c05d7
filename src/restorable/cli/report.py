"""Report subcommands: list, show, and verify persisted reports.

Usage:
    restorable report list
    restorable report show 3f1c
    restorable report show 3f1c --json
    restorable report verify 3f1c
"""

import argparse
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from restorable.config.loader import load_config
from restorable.config.models import RestorableConfig
from restorable.errors import ConfigurationError, ExitCode, RestorableError
from restorable.report import (
    Report,
    find_report,
    list_reports,
    load_public_key,
    public_key_path_for,
    verify_report,
)

console = Console()

_KB = 1024
_MB = 1024 * _KB
_GB = 1024 * _MB


def format_bytes(size: int) -> str:
    """Format a byte count for display (``1.50 MB``)."""
    if size >= _GB:
        return f"{size / _GB:.2f} GB"
    if size >= _MB:
        return f"{size / _MB:.2f} MB"
    if size >= _KB:
        return f"{size / _KB:.2f} KB"
    return f"{size} bytes"


def print_error(error: Exception) -> None:
    """Print an error message; its text is never read as markup."""
    console.print(f"[bold red]x[/bold red] {escape(str(error))}")


def _status_markup(status: str) -> str:
    return {
        "success": "[green]v success[/green]",
        "warning": "[yellow]! warning[/yellow]",
        "failed": "[red]x failed[/red]",
    }.get(status, status)


def load_cli_config(args: argparse.Namespace) -> RestorableConfig:
    """Load configuration from ``--config`` or the default location."""
    config_path = getattr(args, "config", None)
    return load_config(Path(config_path) if config_path else None)


def _report_dir(args: argparse.Namespace) -> Path:
    report_dir = getattr(args, "report_dir", None)
    if report_dir:
        return Path(report_dir).expanduser()
    return load_cli_config(args).cli.report_path


# ============================================================================
# Commands
# ============================================================================


def cmd_report_list(args: argparse.Namespace) -> int:
    """List persisted reports, newest first."""
    try:
        listings = list_reports(_report_dir(args))
    except RestorableError as e:
        print_error(e)
        return e.exit_code

    if not listings:
        console.print("[yellow]No reports found.[/yellow]")
        return 0

    table = Table(title="Verification Reports", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Timestamp")
    table.add_column("Project")
    table.add_column("Status")
    table.add_column("Signed", justify="center")

    for listing in listings:
        table.add_row(
            listing.id,
            listing.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            listing.project_id,
            _status_markup(listing.status),
            "yes" if listing.signed else "[dim]no[/dim]",
        )

    console.print(table)
    return 0


def cmd_report_show(args: argparse.Namespace) -> int:
    """Display a report as a summary with its checks, or as raw JSON."""
    try:
        report, path = find_report(_report_dir(args), args.ref)
    except RestorableError as e:
        print_error(e)
        return e.exit_code

    if args.json:
        console.print_json(report.to_json())
        return 0

    _print_report(report, path)
    return 0


def _print_report(report: Report, path: Path) -> None:
    info = Table(title=f"Report {report.id}", show_header=False)
    info.add_column("Key", style="dim")
    info.add_column("Value")

    info.add_row("Path", str(path))
    info.add_row("Timestamp", report.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"))
    project = f"{report.project_name} ({report.project_id})" if report.project_name else report.project_id
    info.add_row("Project", project)
    info.add_row("Machine", report.machine_id)
    info.add_row("Backup source", report.backup_source)
    info.add_row("Database", f"{report.database.type} {report.database.major_version}")
    if report.database.size_bytes > 0:
        info.add_row("Database size", format_bytes(report.database.size_bytes))

    summary = report.summary
    info.add_row("Status", _status_markup(summary.status))
    info.add_row("Checks", f"{summary.passed_checks}/{summary.total_checks} passed")
    if summary.critical_failures:
        info.add_row("Critical failures", f"[red]{summary.critical_failures}[/red]")
    if summary.warning_failures:
        info.add_row("Warnings", f"[yellow]{summary.warning_failures}[/yellow]")
    if summary.restore_duration:
        info.add_row("Restore duration", summary.restore_duration)
    if report.signature:
        info.add_row("Signature", f"{report.signature[:32]}...")
    else:
        info.add_row("Signature", "[dim](not signed)[/dim]")

    console.print(info)
    console.print()
    console.print(checks_table(report))


def checks_table(report: Report) -> Table:
    """Build the check results table for a report."""
    table = Table(title="Checks", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Check")
    table.add_column("Level")
    table.add_column("Message")

    for check in report.checks:
        marker = "[green]v[/green]" if check.passed else "[red]x[/red]"
        table.add_row(marker, check.name, check.level.value, check.message)
    return table


def cmd_report_verify(args: argparse.Namespace) -> int:
    """Verify a report's signature against the configured public key."""
    try:
        report, path = find_report(_report_dir(args), args.ref)

        if args.public_key:
            public_path = Path(args.public_key).expanduser()
        else:
            key_path = load_cli_config(args).signing.private_key
            if key_path is None:
                raise ConfigurationError(
                    "No signing key configured; set [signing] private_key_path or pass --public-key"
                )
            public_path = public_key_path_for(key_path)

        valid = verify_report(report, load_public_key(public_path))
    except RestorableError as e:
        print_error(e)
        return e.exit_code

    if valid:
        console.print(f"[bold green]v[/bold green] Signature is valid ({path.name})")
        return 0

    console.print(f"[bold red]x[/bold red] Signature is INVALID ({path.name})")
    return ExitCode.CRITICAL
