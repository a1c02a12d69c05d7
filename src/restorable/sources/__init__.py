"""Backup sources: local file, S3 object, or shell command output.

Usage:
    from restorable.sources import get_source

    source = get_source(config.backup, temp_dir=config.cli.temp_path)
    stream = await source.acquire()
"""

from pathlib import Path

from restorable.config.models import BackupConfig
from restorable.errors import ConfigurationError
from restorable.sources.base import BackupSource
from restorable.sources.command import CommandSource
from restorable.sources.local import LocalSource
from restorable.sources.s3 import S3Source

__all__ = ["BackupSource", "LocalSource", "S3Source", "CommandSource", "get_source"]


def get_source(config: BackupConfig, temp_dir: Path | None = None) -> BackupSource:
    """Create the backup source for the configured kind.

    Raises:
        ConfigurationError: If the kind is unknown or its settings are missing.
    """
    kind = config.source
    if kind == "local":
        if config.local is None or not config.local.path:
            raise ConfigurationError("backup source is 'local' but [backup.local] path is not configured")
        return LocalSource(config.local.path)

    if kind == "s3":
        if config.s3 is None:
            raise ConfigurationError("backup source is 's3' but [backup.s3] is not configured")
        return S3Source(config.s3, temp_dir=temp_dir)

    if kind == "command":
        if config.command is None or not config.command.exec:
            raise ConfigurationError("backup source is 'command' but [backup.command] exec is not configured")
        return CommandSource(
            config.command.exec,
            timeout_seconds=config.command.timeout_seconds,
            temp_dir=temp_dir,
        )

    raise ConfigurationError(f"Unsupported backup source type: {kind}")
