"""Backup source reading a file from the local filesystem."""

from pathlib import Path
from typing import BinaryIO

from restorable.errors import EnvironmentFailureError


class LocalSource:
    """Reads a backup file from a local path.

    Args:
        path: Path to the backup file (``~`` is expanded).
    """

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    async def acquire(self) -> BinaryIO:
        try:
            return open(self._path, "rb")
        except OSError as e:
            raise EnvironmentFailureError(
                f"Failed to open local backup file at {self._path}: {e}"
            ) from e

    def identifier(self) -> str:
        return f"local:{self._path}"
