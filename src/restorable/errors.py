"""Error taxonomy and process exit codes.

Every error raised by the pipeline derives from ``RestorableError`` and
carries the exit code the CLI should return for it.

Usage:
    from restorable.errors import ConfigurationError, ExitCode

    try:
        config = load_config(path)
    except ConfigurationError as e:
        return e.exit_code  # ExitCode.CONFIGURATION
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes for the ``restorable`` CLI."""

    SUCCESS = 0
    WARNING = 1
    CRITICAL = 2
    CONFIGURATION = 3
    ENVIRONMENT = 4


class RestorableError(Exception):
    """Base class for all restorable errors."""

    exit_code: ExitCode = ExitCode.CRITICAL


class ConfigurationError(RestorableError):
    """Raised when settings are missing, malformed, or inconsistent."""

    exit_code = ExitCode.CONFIGURATION


class SigningKeyError(ConfigurationError):
    """Raised when signing key material cannot be read or parsed."""


class EnvironmentFailureError(RestorableError):
    """Raised when the execution environment is unusable.

    Covers an unreachable Docker daemon, a container that never becomes
    ready, network failures while acquiring a backup, and deadline expiry.
    """

    exit_code = ExitCode.ENVIRONMENT


class RestoreStateError(RestorableError):
    """Raised when extraction is attempted before a successful restore."""

    exit_code = ExitCode.ENVIRONMENT


class RestoreFailure(RestorableError):
    """Raised when both the primary and fallback restore methods fail.

    Carries the exit code and captured output of each attempt so an
    operator sees the full diagnostic context in one message.
    """

    exit_code = ExitCode.CRITICAL

    def __init__(
        self,
        primary_exit_code: int,
        primary_output: str,
        fallback_exit_code: int,
        fallback_output: str,
    ) -> None:
        self.primary_exit_code = primary_exit_code
        self.primary_output = primary_output
        self.fallback_exit_code = fallback_exit_code
        self.fallback_output = fallback_output
        super().__init__(
            "all restore methods failed.\n\n"
            f"pg_restore (exit {primary_exit_code}):\n{primary_output}\n\n"
            f"psql (exit {fallback_exit_code}):\n{fallback_output}"
        )


class SignatureError(RestorableError):
    """Raised when a report signature is absent or cannot be decoded."""

    exit_code = ExitCode.CRITICAL


class ReportNotFoundError(RestorableError):
    """Raised when a report reference matches no report, or several."""

    exit_code = ExitCode.CONFIGURATION


class InvalidReportError(RestorableError):
    """Raised when a report file cannot be read or is not a valid report."""

    exit_code = ExitCode.CRITICAL
