"""Pydantic models for the restorable configuration file."""

import socket
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HOME = Path("~/.restorable")


def _expand(path: str | None) -> Path | None:
    return Path(path).expanduser() if path else None


# ============================================================================
# Project and CLI
# ============================================================================


class ProjectConfig(BaseModel):
    """Identity of the project whose backups are verified."""

    id: str
    name: str = ""


class CLIConfig(BaseModel):
    """Local paths and machine identity."""

    machine_id: str = Field(default_factory=socket.gethostname)
    report_dir: str = str(DEFAULT_HOME / "reports")
    baseline_dir: str = str(DEFAULT_HOME / "schemas")
    temp_dir: str | None = None  # None uses the system temp directory

    @property
    def report_path(self) -> Path:
        return _expand(self.report_dir)

    @property
    def baseline_path(self) -> Path:
        return _expand(self.baseline_dir)

    @property
    def temp_path(self) -> Path | None:
        return _expand(self.temp_dir)


# ============================================================================
# Backup Source and Encryption
# ============================================================================


class LocalSourceConfig(BaseModel):
    path: str


class S3SourceConfig(BaseModel):
    bucket: str
    prefix: str = ""  # key, or prefix ending in "/" to pick the newest object
    region: str = "us-east-1"
    endpoint: str | None = None  # for S3-compatible services (MinIO, etc.)
    access_key_env: str = "RESTORABLE_S3_KEY"
    secret_key_env: str = "RESTORABLE_S3_SECRET"


class CommandSourceConfig(BaseModel):
    exec: str
    timeout_seconds: int = Field(default=600, gt=0)


class BackupConfig(BaseModel):
    """Where the backup artifact comes from."""

    source: str = "local"
    local: LocalSourceConfig | None = None
    s3: S3SourceConfig | None = None
    command: CommandSourceConfig | None = None


class EncryptionConfig(BaseModel):
    """Backup artifact encryption; absent when backups are plaintext."""

    method: str = "age"
    private_key_path: str | None = None
    private_key_env: str | None = None


# ============================================================================
# Database and Docker
# ============================================================================


class RestoreConfig(BaseModel):
    """Ephemeral restore target settings."""

    docker_image: str = "postgres:16"
    user: str = "postgres"
    password_env: str = "RESTORABLE_DB_PASSWORD"
    db_name: str = "restorable_verify"
    host: str = "localhost"  # host where published container ports are reachable


class DatabaseConfig(BaseModel):
    type: str = "postgres"
    major_version: int = 16
    restore: RestoreConfig = Field(default_factory=RestoreConfig)


class DockerConfig(BaseModel):
    network: str = "bridge"
    pull_policy: Literal["always", "if-not-present", "never"] = "if-not-present"
    timeout_minutes: int = Field(default=30, gt=0)
    startup_timeout_seconds: int = Field(default=300, gt=0)


# ============================================================================
# Verification, Signing, Baseline
# ============================================================================


class SchemaVerificationConfig(BaseModel):
    enabled: bool = True


class RowCountVerificationConfig(BaseModel):
    enabled: bool = True
    warn_threshold_percent: int = 5
    minimum_tables: int = 1
    minimum_rows: int = 1


class VerificationConfig(BaseModel):
    """Which checks run and their thresholds."""

    model_config = ConfigDict(validate_by_name=True, validate_by_alias=True)

    checks: list[str] | None = None  # None runs the default set
    max_restore_seconds: int = 0  # 0 disables the duration limit
    schema_checks: SchemaVerificationConfig = Field(
        default_factory=SchemaVerificationConfig, alias="schema"
    )
    row_counts: RowCountVerificationConfig = Field(default_factory=RowCountVerificationConfig)


class SigningConfig(BaseModel):
    private_key_path: str | None = None

    @property
    def private_key(self) -> Path | None:
        return _expand(self.private_key_path)


class BaselineConfig(BaseModel):
    """Baseline update policy.

    ``first-run`` saves a baseline only when none exists and never refreshes
    it. ``on-success`` refreshes it after every run that ends with no failed
    checks.
    """

    update_policy: Literal["first-run", "on-success"] = "first-run"


# ============================================================================
# Root
# ============================================================================


class RestorableConfig(BaseModel):
    """Complete configuration from config.toml."""

    version: int = 1
    project: ProjectConfig
    cli: CLIConfig = Field(default_factory=CLIConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    encryption: EncryptionConfig | None = None
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    verification: VerificationConfig = Field(default_factory=VerificationConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
    signing: SigningConfig = Field(default_factory=SigningConfig)
    baseline: BaselineConfig = Field(default_factory=BaselineConfig)
