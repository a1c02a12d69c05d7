"""Command line interface for backup restore verification.

Usage:
    restorable init --project-id billing --backup-path /backups/billing.dump
    restorable verify
    restorable verify --config ./config.toml -v
    restorable report list
    restorable report show 3f1c --json
    restorable report verify 3f1c
    restorable keygen --output ~/.restorable/keys/signing.key
    restorable version

Commands:
    init     - Write a template config.toml and a signing keypair
    verify   - Restore the configured backup and verify it
    report   - List, show, and verify persisted reports
    keygen   - Generate an Ed25519 signing keypair
    version  - Print the version

Exit codes:
    0 success, 1 warnings only, 2 critical failure or restore failure,
    3 configuration error, 4 environment error
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from restorable import __version__
from restorable.cli.report import (
    checks_table,
    cmd_report_list,
    cmd_report_show,
    cmd_report_verify,
    load_cli_config,
    print_error,
)
from restorable.config.loader import default_config_path
from restorable.errors import ConfigurationError, ExitCode, RestorableError
from restorable.pipeline import run_verification
from restorable.report import generate_keypair

console = Console()
err_console = Console(stderr=True)

DEFAULT_KEY_NAME = "signing.key"


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )
    if verbose:
        # Keep third-party wire chatter out of -v output
        for name in ("urllib3", "botocore", "boto3", "docker"):
            logging.getLogger(name).setLevel(logging.WARNING)


# ============================================================================
# verify
# ============================================================================


async def _async_verify(args: argparse.Namespace) -> int:
    """Async implementation for verify command.

    Returns:
        Exit code derived from the report summary, or from the error.
    """
    try:
        config = load_cli_config(args)
    except RestorableError as e:
        print_error(e)
        return e.exit_code

    console.print(
        f"Verifying backup for [bold cyan]{config.project.id}[/bold cyan] "
        f"({config.database.type} {config.database.major_version})...",
        style="dim",
    )

    try:
        result = await run_verification(
            config,
            progress=lambda message: console.print(f"  [green]v[/green] {message}"),
        )
    except RestorableError as e:
        console.print()
        print_error(e)
        return e.exit_code

    report = result.report
    console.print()
    console.print(checks_table(report))

    summary = report.summary
    console.print()
    if result.exit_code == ExitCode.SUCCESS:
        console.print("[bold green]v[/bold green] Verification passed")
    elif result.exit_code == ExitCode.WARNING:
        console.print("[bold yellow]![/bold yellow] Verification passed with warnings")
    else:
        console.print("[bold red]x[/bold red] Verification failed")
    console.print(
        f"  Checks: {summary.passed_checks}/{summary.total_checks} passed, "
        f"{summary.critical_failures} critical, {summary.warning_failures} warning"
    )
    if summary.restore_duration:
        console.print(f"  Restore duration: {summary.restore_duration}")
    console.print(f"  Report: [cyan]{result.report_path}[/cyan]")
    if not report.signed:
        console.print("  [yellow]Report is not signed[/yellow]")

    if result.baseline_updated:
        console.print(
            f"  Baseline updated ({result.baseline_policy}): [cyan]{result.baseline_path}[/cyan]"
        )
    else:
        console.print(f"  Baseline unchanged ({result.baseline_policy})", style="dim")

    return result.exit_code


def cmd_verify(args: argparse.Namespace) -> int:
    """Restore the configured backup and verify it.

    Wraps the async implementation with ``asyncio.run()``.

    Returns:
        Process exit code (see module docstring).
    """
    return asyncio.run(_async_verify(args))


# ============================================================================
# keygen / init / version
# ============================================================================


def cmd_keygen(args: argparse.Namespace) -> int:
    """Generate an Ed25519 signing keypair.

    Writes to ``--output`` when given, else to the configured
    ``signing.private_key_path``, else ``<config dir>/keys/signing.key``.
    """
    try:
        if args.output:
            key_path = Path(args.output).expanduser()
        else:
            key_path = _configured_key_path(args)
        private_path, public_path = generate_keypair(key_path, overwrite=args.force)
    except RestorableError as e:
        print_error(e)
        return e.exit_code

    console.print(f"[bold green]v[/bold green] Private key: [cyan]{private_path}[/cyan]")
    console.print(f"[bold green]v[/bold green] Public key:  [cyan]{public_path}[/cyan]")
    return 0


def _config_path(args: argparse.Namespace) -> Path:
    if getattr(args, "config", None):
        return Path(args.config).expanduser()
    return default_config_path()


def _configured_key_path(args: argparse.Namespace) -> Path:
    try:
        key_path = load_cli_config(args).signing.private_key
    except ConfigurationError:
        key_path = None
    return key_path or _config_path(args).parent / "keys" / DEFAULT_KEY_NAME


def _toml_str(value: str) -> str:
    # JSON string escapes are valid TOML basic-string escapes
    return json.dumps(value)


CONFIG_TEMPLATE = """\
version = 1

[project]
id = {project_id}
name = {project_name}

[cli]
report_dir = {report_dir}
baseline_dir = {baseline_dir}

[backup]
source = "local"

[backup.local]
path = {backup_path}

# [backup.s3]
# bucket = "restorable-backups"
# prefix = "billing/"
# region = "us-east-1"
# access_key_env = "RESTORABLE_S3_KEY"
# secret_key_env = "RESTORABLE_S3_SECRET"

# [backup.command]
# exec = "pg_dump --format=custom billing"

# [encryption]
# method = "age"
# private_key_path = "~/.restorable/keys/backup.key"

[database]
type = "postgres"
major_version = {major_version}

[database.restore]
docker_image = {docker_image}
user = "postgres"
password_env = "RESTORABLE_DB_PASSWORD"
db_name = "restorable_verify"

[verification]
max_restore_seconds = 0

[verification.schema]
enabled = true

[verification.row_counts]
enabled = true
warn_threshold_percent = 5

[docker]
network = "bridge"
pull_policy = "if-not-present"
timeout_minutes = 30

[signing]
private_key_path = {private_key_path}

[baseline]
update_policy = "first-run"
"""


def render_config_template(
    project_id: str,
    project_name: str,
    backup_path: str,
    base_dir: Path,
    private_key_path: Path,
    major_version: int = 16,
) -> str:
    """Render the starter config.toml."""
    return CONFIG_TEMPLATE.format(
        project_id=_toml_str(project_id),
        project_name=_toml_str(project_name),
        report_dir=_toml_str(str(base_dir / "reports")),
        baseline_dir=_toml_str(str(base_dir / "schemas")),
        backup_path=_toml_str(backup_path),
        major_version=major_version,
        docker_image=_toml_str(f"postgres:{major_version}"),
        private_key_path=_toml_str(str(private_key_path)),
    )


def cmd_init(args: argparse.Namespace) -> int:
    """Write a template config.toml and a signing keypair.

    Non-interactive: every value comes from flags or defaults. Refuses to
    overwrite an existing config unless ``--force`` is given. An existing
    signing key is kept.
    """
    config_path = _config_path(args)
    base_dir = config_path.parent
    key_path = base_dir / "keys" / DEFAULT_KEY_NAME

    if config_path.exists() and not args.force:
        console.print(f"[bold red]x[/bold red] A config file already exists at {config_path}")
        console.print("[dim]Use --force to overwrite it.[/dim]")
        return ExitCode.CONFIGURATION

    project_id = args.project_id or Path.cwd().name.lower().replace(" ", "_")
    content = render_config_template(
        project_id=project_id,
        project_name=args.name or project_id,
        backup_path=args.backup_path,
        base_dir=base_dir,
        private_key_path=key_path,
        major_version=args.major_version,
    )

    base_dir.mkdir(parents=True, exist_ok=True)
    config_path.write_text(content, encoding="utf-8")
    console.print(f"[bold green]v[/bold green] Wrote config to [cyan]{config_path}[/cyan]")

    if key_path.exists():
        console.print(f"[dim]Keeping existing signing key {key_path}[/dim]")
    else:
        try:
            private_path, public_path = generate_keypair(key_path)
        except RestorableError as e:
            print_error(e)
            return e.exit_code
        console.print(
            f"[bold green]v[/bold green] Wrote signing keys to [cyan]{private_path}[/cyan] "
            f"and [cyan]{public_path}[/cyan]"
        )

    console.print()
    console.print(
        "Review the config and export [cyan]RESTORABLE_DB_PASSWORD[/cyan] before running "
        "[cyan]restorable verify[/cyan]."
    )
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Print the version."""
    console.print(f"restorable {__version__}")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    # Options accepted both before and after the subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        "-c",
        default=argparse.SUPPRESS,
        help="Path to config.toml (default: $RESTORABLE_CONFIG or ~/.restorable/config.toml)",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable debug logging",
    )

    parser = argparse.ArgumentParser(
        prog="restorable",
        description="Verify database backups by restoring them into a disposable container",
        parents=[common],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # verify command
    p_verify = subparsers.add_parser(
        "verify",
        help="Restore the configured backup and run verification checks",
        parents=[common],
    )
    p_verify.set_defaults(func=cmd_verify)

    # report command group
    p_report = subparsers.add_parser(
        "report",
        help="List, show, and verify verification reports",
    )
    report_sub = p_report.add_subparsers(dest="report_command", required=True)

    p_list = report_sub.add_parser("list", help="List reports, newest first", parents=[common])
    p_list.add_argument("--report-dir", help="Report directory (overrides config)")
    p_list.set_defaults(func=cmd_report_list)

    p_show = report_sub.add_parser("show", help="Display a report", parents=[common])
    p_show.add_argument("ref", help="Report ID, unique ID prefix, or file name fragment")
    p_show.add_argument("--json", action="store_true", help="Output the report as JSON")
    p_show.add_argument("--report-dir", help="Report directory (overrides config)")
    p_show.set_defaults(func=cmd_report_show)

    p_rverify = report_sub.add_parser(
        "verify", help="Verify a report's signature", parents=[common]
    )
    p_rverify.add_argument("ref", help="Report ID, unique ID prefix, or file name fragment")
    p_rverify.add_argument("--public-key", help="Public key file (default: from [signing])")
    p_rverify.add_argument("--report-dir", help="Report directory (overrides config)")
    p_rverify.set_defaults(func=cmd_report_verify)

    # keygen command
    p_keygen = subparsers.add_parser(
        "keygen",
        help="Generate an Ed25519 signing keypair",
        parents=[common],
    )
    p_keygen.add_argument("--output", "-o", help="Private key path (public key gets .pub)")
    p_keygen.add_argument("--force", action="store_true", help="Overwrite existing key files")
    p_keygen.set_defaults(func=cmd_keygen)

    # init command
    p_init = subparsers.add_parser(
        "init",
        help="Write a template config.toml and a signing keypair",
        parents=[common],
    )
    p_init.add_argument("--project-id", help="Project identifier (default: current directory name)")
    p_init.add_argument("--name", help="Human-readable project name")
    p_init.add_argument(
        "--backup-path",
        default="/var/backups/latest.dump",
        help="Path of the local backup file to verify",
    )
    p_init.add_argument(
        "--major-version", type=int, default=16, help="PostgreSQL major version"
    )
    p_init.add_argument("--force", action="store_true", help="Overwrite an existing config")
    p_init.set_defaults(func=cmd_init)

    # version command
    p_version = subparsers.add_parser("version", help="Print the version")
    p_version.set_defaults(func=cmd_version)

    args = parser.parse_args()
    setup_logging(getattr(args, "verbose", False))

    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130
    except RestorableError as e:
        print_error(e)
        return int(e.exit_code)


if __name__ == "__main__":
    sys.exit(main())
