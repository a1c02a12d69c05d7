"""Backup source protocol definition."""

from typing import BinaryIO, Protocol


class BackupSource(Protocol):
    """Where a backup artifact comes from.

    ``acquire()`` returns a readable binary stream positioned at the start
    of the artifact. The caller owns the stream and closes it.
    """

    async def acquire(self) -> BinaryIO:
        """Fetch the artifact.

        Raises:
            EnvironmentFailureError: If the artifact cannot be fetched.
        """
        ...

    def identifier(self) -> str:
        """Return a string identifying the artifact for the report."""
        ...
