"""Tests for the restorable command line interface.

Commands are driven through ``main()`` with a patched ``sys.argv``. The
verification pipeline is either mocked or run with in-memory fakes.
"""

import json
import textwrap
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeRestorer, FakeSource, make_metrics, make_schema
from restorable.checks import CheckLevel, CheckResult
from restorable.cli import cmd_verify, main, render_config_template
from restorable.cli.report import format_bytes
from restorable.config import load_config
from restorable.errors import EnvironmentFailureError, ExitCode
from restorable.pipeline import VerificationResult
from restorable.report import (
    ReportBuilder,
    generate_keypair,
    load_private_key,
    sign_report,
    write_report,
)


def _run(*argv: str) -> int:
    with patch("sys.argv", ["restorable", *argv]):
        return main()


def _report(run_id: str = "3f1c2a9e", checks=None):
    if checks is None:
        checks = [CheckResult(name="tables_exist", level=CheckLevel.CRITICAL, passed=True)]
    return (
        ReportBuilder()
        .with_id(run_id)
        .with_timestamp(datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc))
        .with_project("billing", "Billing")
        .with_machine_id("verify-host")
        .with_backup_source("local:/backups/billing.dump")
        .with_database("postgres", 16)
        .with_schema(make_schema("a"))
        .with_metrics(make_metrics())
        .with_checks(checks)
        .build()
    )


# ============================================================
# Test: version / init / keygen
# ============================================================


class TestBasicCommands:
    """Verify commands that need no backup."""

    def test_version(self, capsys) -> None:
        assert _run("version") == 0
        assert "restorable 0.1.0" in capsys.readouterr().out

    def test_init_writes_config_and_keys(self, tmp_path) -> None:
        config_path = tmp_path / "config.toml"

        assert _run("init", "--config", str(config_path), "--project-id", "billing") == 0

        config = load_config(config_path)
        assert config.project.id == "billing"
        assert config.backup.local.path == "/var/backups/latest.dump"
        assert config.cli.report_path == tmp_path / "reports"
        assert config.signing.private_key == tmp_path / "keys" / "signing.key"
        assert (tmp_path / "keys" / "signing.key").exists()
        assert (tmp_path / "keys" / "signing.pub").exists()

    def test_init_refuses_existing_config(self, tmp_path) -> None:
        config_path = tmp_path / "config.toml"
        _run("init", "--config", str(config_path), "--project-id", "billing")

        assert _run("init", "--config", str(config_path)) == ExitCode.CONFIGURATION
        assert load_config(config_path).project.id == "billing"

    def test_init_force_keeps_signing_key(self, tmp_path) -> None:
        config_path = tmp_path / "config.toml"
        _run("init", "--config", str(config_path), "--project-id", "billing")
        key_before = (tmp_path / "keys" / "signing.key").read_bytes()

        assert _run("init", "--config", str(config_path), "--project-id", "ledger", "--force") == 0

        assert load_config(config_path).project.id == "ledger"
        assert (tmp_path / "keys" / "signing.key").read_bytes() == key_before

    def test_template_escapes_strings(self, tmp_path) -> None:
        content = render_config_template(
            project_id="billing",
            project_name='Billing "EU"',
            backup_path="C:\\backups\\x.dump",
            base_dir=tmp_path,
            private_key_path=tmp_path / "signing.key",
        )
        config_path = tmp_path / "config.toml"
        config_path.write_text(content)

        config = load_config(config_path)
        assert config.project.name == 'Billing "EU"'
        assert config.backup.local.path == "C:\\backups\\x.dump"

    def test_keygen_output(self, tmp_path) -> None:
        key_path = tmp_path / "k" / "signing.key"

        assert _run("keygen", "--output", str(key_path)) == 0
        assert key_path.exists()
        assert key_path.with_suffix(".pub").exists()

        assert _run("keygen", "--output", str(key_path)) == ExitCode.CONFIGURATION
        assert _run("keygen", "--output", str(key_path), "--force") == 0


# ============================================================
# Test: verify
# ============================================================


class TestVerifyCommand:
    """Verify the verify command's output and exit codes."""

    @pytest.fixture
    def config_path(self, tmp_path):
        path = tmp_path / "config.toml"
        _run("init", "--config", str(path), "--project-id", "billing")
        return path

    def test_missing_config(self, tmp_path, capsys) -> None:
        assert _run("verify", "--config", str(tmp_path / "absent.toml")) == ExitCode.CONFIGURATION
        assert "not found" in capsys.readouterr().out

    def test_warning_exit_code(self, config_path, tmp_path, capsys) -> None:
        report = _report(
            checks=[CheckResult(name="total_row_count", level=CheckLevel.WARNING, passed=False)]
        )
        result = VerificationResult(
            report=report,
            report_path=tmp_path / "reports" / "r.json",
            exit_code=ExitCode.WARNING,
            baseline_policy="first-run",
        )

        with patch("restorable.cli.run_verification", AsyncMock(return_value=result)):
            assert _run("verify", "--config", str(config_path)) == ExitCode.WARNING

        out = capsys.readouterr().out
        assert "passed with warnings" in out
        assert "Baseline unchanged" in out

    def test_pipeline_error_exit_code(self, config_path, capsys) -> None:
        error = EnvironmentFailureError("Failed to connect to Docker")

        with patch("restorable.cli.run_verification", AsyncMock(side_effect=error)):
            assert _run("verify", "--config", str(config_path)) == ExitCode.ENVIRONMENT
        assert "Failed to connect to Docker" in capsys.readouterr().out

    def test_cmd_verify_wraps_async(self) -> None:
        with patch("restorable.cli._async_verify", AsyncMock(return_value=0)) as mock_verify:
            assert cmd_verify(object()) == 0
        mock_verify.assert_awaited_once()


# ============================================================
# Test: report subcommands
# ============================================================


class TestReportCommands:
    """Verify report list, show, and signature verification."""

    def test_list_empty(self, tmp_path, capsys) -> None:
        assert _run("report", "list", "--report-dir", str(tmp_path)) == 0
        assert "No reports found" in capsys.readouterr().out

    def test_list(self, tmp_path, capsys) -> None:
        write_report(_report(), tmp_path)
        assert _run("report", "list", "--report-dir", str(tmp_path)) == 0
        out = capsys.readouterr().out
        assert "3f1c2a9e" in out
        assert "billing" in out

    def test_show(self, tmp_path, capsys) -> None:
        write_report(_report(), tmp_path)
        assert _run("report", "show", "3f1c", "--report-dir", str(tmp_path)) == 0
        out = capsys.readouterr().out
        assert "Report 3f1c2a9e" in out
        assert "tables_exist" in out
        assert "not signed" in out

    def test_show_json(self, tmp_path, capsys) -> None:
        write_report(_report(), tmp_path)
        assert _run("report", "show", "3f1c", "--json", "--report-dir", str(tmp_path)) == 0
        out = capsys.readouterr().out
        assert '"id": "3f1c2a9e"' in out
        assert '"machine_id": "verify-host"' in out

    def test_show_missing(self, tmp_path) -> None:
        assert _run("report", "show", "zzz", "--report-dir", str(tmp_path)) == ExitCode.CONFIGURATION

    def test_verify_signature(self, tmp_path, capsys) -> None:
        private_path, public_path = generate_keypair(tmp_path / "keys" / "signing.key")
        signed = sign_report(_report(), load_private_key(private_path))
        reports = tmp_path / "reports"
        write_report(signed, reports)
        write_report(signed.model_copy(update={"id": "bad00000", "machine_id": "other"}), reports)

        args = ("--report-dir", str(reports), "--public-key", str(public_path))
        assert _run("report", "verify", "3f1c", *args) == 0
        assert "Signature is valid" in capsys.readouterr().out

        assert _run("report", "verify", "bad0", *args) == ExitCode.CRITICAL
        assert "INVALID" in capsys.readouterr().out

    def test_verify_unsigned_report(self, tmp_path) -> None:
        _, public_path = generate_keypair(tmp_path / "keys" / "signing.key")
        write_report(_report(), tmp_path / "reports")

        code = _run(
            "report", "verify", "3f1c",
            "--report-dir", str(tmp_path / "reports"),
            "--public-key", str(public_path),
        )
        assert code == ExitCode.CRITICAL


@pytest.mark.parametrize(
    "size, expected",
    [
        (512, "512 bytes"),
        (1536, "1.50 KB"),
        (8 * 1024 * 1024, "8.00 MB"),
        (3 * 1024**3, "3.00 GB"),
    ],
)
def test_format_bytes(size, expected) -> None:
    assert format_bytes(size) == expected


# ============================================================
# Test: Corrupt files and unwritable directories
# ============================================================


class TestFileErrors:
    """Verify that file problems end in an error message, not a traceback."""

    def _corrupt_report(self, directory) -> None:
        path = write_report(_report("abc123"), directory)
        data = json.loads(path.read_text())
        data["summary"]["success"] = "maybe"
        path.write_text(json.dumps(data))

    def test_show_corrupt_report(self, tmp_path, capsys) -> None:
        self._corrupt_report(tmp_path)
        code = _run("report", "show", "abc123", "--report-dir", str(tmp_path))
        assert code == ExitCode.CRITICAL
        assert "Failed to parse report" in capsys.readouterr().out

    def test_verify_corrupt_report(self, tmp_path, capsys) -> None:
        _, public_path = generate_keypair(tmp_path / "keys" / "signing.key")
        self._corrupt_report(tmp_path / "reports")

        code = _run(
            "report", "verify", "abc123",
            "--report-dir", str(tmp_path / "reports"),
            "--public-key", str(public_path),
        )
        assert code == ExitCode.CRITICAL
        assert "Failed to parse report" in capsys.readouterr().out

    def test_verify_unwritable_report_directory(self, tmp_path, capsys) -> None:
        blocked = tmp_path / "blocked"
        blocked.write_text("not a directory")
        config_path = tmp_path / "config.toml"
        config_path.write_text(
            textwrap.dedent(
                f"""\
                [project]
                id = "billing"

                [cli]
                report_dir = "{blocked}"
                baseline_dir = "{tmp_path / 'schemas'}"
                """
            )
        )
        restorer = FakeRestorer(make_schema("a"), make_metrics())

        with (
            patch("restorable.pipeline.get_source", return_value=FakeSource()),
            patch("restorable.pipeline.get_restorer", return_value=restorer),
        ):
            code = _run("verify", "--config", str(config_path))

        assert code == ExitCode.ENVIRONMENT
        assert "Failed to write report" in capsys.readouterr().out
        assert restorer.cleanup_calls == 1
