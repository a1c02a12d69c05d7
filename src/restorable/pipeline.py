"""End-to-end verification pipeline.

Runs one verification as a single linear sequence:

    acquire -> decrypt -> restore -> extract -> check -> build report
    -> sign -> persist -> conditional baseline update

The restorer is used as an async context manager, so the ephemeral
database and its staging files are torn down on every exit path,
including cancellation. Acquisition, restore and extraction share one
deadline of ``docker.timeout_minutes``.

Usage:
    from restorable.pipeline import run_verification

    result = await run_verification(config)
    print(result.report.summary.status, result.report_path)
    sys.exit(result.exit_code)
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel

from restorable.checks import build_checkers, run_checks
from restorable.config.models import RestorableConfig
from restorable.crypto import AgeDecryptor, get_decryptor
from restorable.errors import ConfigurationError, EnvironmentFailureError, ExitCode
from restorable.report import Report, ReportBuilder, Summary, load_private_key, sign_report, write_report
from restorable.restore import Restorer, get_restorer
from restorable.schema.baseline import BaselineStore
from restorable.schema.models import MetricsSnapshot, SchemaSnapshot
from restorable.sources import BackupSource, get_source

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class VerificationResult(BaseModel):
    """Outcome of a completed verification run."""

    report: Report
    report_path: Path
    exit_code: ExitCode
    baseline_policy: str
    baseline_updated: bool = False
    baseline_path: Path | None = None


def exit_code_for(summary: Summary) -> ExitCode:
    """Map a report summary to the process exit code."""
    if not summary.success:
        return ExitCode.CRITICAL
    if summary.warning_failures:
        return ExitCode.WARNING
    return ExitCode.SUCCESS


def _noop(message: str) -> None:
    pass


async def run_verification(
    config: RestorableConfig,
    *,
    source: BackupSource | None = None,
    decryptor: AgeDecryptor | None = None,
    restorer: Restorer | None = None,
    baseline_store: BaselineStore | None = None,
    progress: ProgressCallback | None = None,
) -> VerificationResult:
    """Run a full verification for the configured project.

    Collaborators default to the ones described by ``config``; tests and
    embedding code may pass their own.

    Args:
        config: Loaded configuration.
        source: Backup source (default: from ``[backup]``).
        decryptor: Decryptor (default: from ``[encryption]``, None if absent).
        restorer: Restore backend (default: from ``[database]``).
        baseline_store: Baseline storage (default: ``cli.baseline_dir``).
        progress: Called with a short message as each stage completes.

    Returns:
        VerificationResult with the persisted report and exit code.

    Raises:
        ConfigurationError: Invalid settings, or signing key problems (the
            unsigned report has been written in that case).
        EnvironmentFailureError: Docker, network, deadline, or file system
            failures.
        RestoreFailure: Both restore methods failed.
    """
    notify = progress or _noop
    project_id = config.project.id
    temp_dir = config.cli.temp_path

    # Resolve everything that can fail on bad settings before touching Docker
    checkers = build_checkers(config.verification)
    store = baseline_store or BaselineStore(config.cli.baseline_path)
    try:
        baseline = store.load(project_id)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    except OSError as e:
        raise EnvironmentFailureError(f"Failed to read baseline for {project_id}: {e}") from e

    if source is None:
        source = get_source(config.backup, temp_dir=temp_dir)
    if decryptor is None:
        decryptor = get_decryptor(config.encryption, temp_dir=temp_dir)
    if restorer is None:
        restorer = get_restorer(config)

    schema, metrics = await _restore_and_extract(config, source, decryptor, restorer, notify)

    results = run_checks(checkers, schema, baseline, metrics)
    notify(f"Ran {len(results)} checks")

    report = (
        ReportBuilder()
        .with_id(str(uuid.uuid4()))
        .with_project(project_id, config.project.name)
        .with_machine_id(config.cli.machine_id)
        .with_backup_source(source.identifier())
        .with_database(config.database.type, config.database.major_version)
        .with_schema(schema)
        .with_metrics(metrics)
        .with_checks(results)
        .build()
    )
    exit_code = exit_code_for(report.summary)

    signing_error: ConfigurationError | None = None
    key_path = config.signing.private_key
    if key_path is not None:
        try:
            report = sign_report(report, load_private_key(key_path))
            notify("Report signed")
        except ConfigurationError as e:
            signing_error = e
    else:
        logger.warning("No signing key configured; report will be unsigned")

    try:
        report_path = write_report(report, config.cli.report_path)
    except OSError as e:
        raise EnvironmentFailureError(
            f"Failed to write report to {config.cli.report_path}: {e}"
        ) from e
    notify(f"Report written to {report_path}")

    if signing_error is not None:
        # The unsigned report is kept for diagnosis; the baseline stays untouched.
        raise signing_error

    policy = config.baseline.update_policy
    baseline_path = None
    if _should_update_baseline(policy, baseline is None, exit_code):
        try:
            baseline_path = store.save(project_id, schema)
        except OSError as e:
            raise EnvironmentFailureError(
                f"Failed to save baseline to {store.base_path}: {e}"
            ) from e

    return VerificationResult(
        report=report,
        report_path=report_path,
        exit_code=exit_code,
        baseline_policy=policy,
        baseline_updated=baseline_path is not None,
        baseline_path=baseline_path,
    )


async def _restore_and_extract(
    config: RestorableConfig,
    source: BackupSource,
    decryptor: AgeDecryptor | None,
    restorer: Restorer,
    notify: ProgressCallback,
) -> tuple[SchemaSnapshot, MetricsSnapshot]:
    timeout_minutes = config.docker.timeout_minutes
    try:
        async with asyncio.timeout(timeout_minutes * 60):
            stream = await source.acquire()
            notify(f"Backup acquired from {source.identifier()}")
            try:
                if decryptor is not None:
                    stream = await asyncio.to_thread(decryptor.decrypt, stream)
                    notify("Backup decrypted")

                async with restorer:
                    await restorer.restore(stream)
                    notify(f"Backup restored with {restorer.restore_method}")
                    schema = await restorer.extract_schema()
                    metrics = await restorer.extract_metrics()
                    notify(f"Extracted {len(schema.tables)} tables")
            finally:
                stream.close()
    except TimeoutError as e:
        raise EnvironmentFailureError(
            f"Verification did not finish within {timeout_minutes} minutes"
        ) from e

    return schema, metrics


def _should_update_baseline(policy: str, first_run: bool, exit_code: ExitCode) -> bool:
    """Decide whether this run's schema becomes the baseline.

    ``first-run`` only ever writes the initial baseline. ``on-success``
    also writes the initial baseline, then refreshes it after every run
    that exits with status 0.
    """
    if first_run:
        return True
    return policy == "on-success" and exit_code == ExitCode.SUCCESS
