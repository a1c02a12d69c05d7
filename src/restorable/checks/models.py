"""Check result models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class CheckLevel(str, Enum):
    """Severity of a check."""

    CRITICAL = "critical"  # failures are blocking
    WARNING = "warning"  # failures are concerning but not blocking
    INFO = "info"  # informational only


class CheckResult(BaseModel):
    """Outcome of a single checker. Never mutated after creation.

    Example:
        >>> r = CheckResult(name="tables_exist", level=CheckLevel.CRITICAL, passed=True)
        >>> r.model_dump(mode="json")["level"]
        'critical'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    level: CheckLevel
    passed: bool
    message: str = ""
