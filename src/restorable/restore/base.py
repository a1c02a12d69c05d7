"""Restorer protocol definition.

Defines the ``Restorer`` Protocol that every restore backend implements.
All methods are ``async def``.

Usage:
    from restorable.restore.base import Restorer

    async def verify(restorer: Restorer, artifact: BinaryIO) -> None:
        async with restorer:
            await restorer.restore(artifact)
            schema = await restorer.extract_schema()
            metrics = await restorer.extract_metrics()
"""

from typing import BinaryIO, Protocol

from restorable.schema.models import MetricsSnapshot, SchemaSnapshot


class Restorer(Protocol):
    """Restore backend interface.

    A restorer exclusively owns one ephemeral database instance and its
    staging files for the duration of a run. Leaving the ``async with``
    block calls ``cleanup()`` on every exit path.
    """

    # Method that loaded the artifact ("pg_restore" or "psql"), set by restore()
    restore_method: str | None

    async def __aenter__(self) -> "Restorer": ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...

    async def restore(self, artifact: BinaryIO) -> None:
        """Provision an isolated instance and load the artifact into it.

        Args:
            artifact: Readable binary stream holding the backup.

        Raises:
            EnvironmentFailureError: If the instance cannot be provisioned.
            RestoreFailure: If every restore method failed.
        """
        ...

    async def extract_schema(self) -> SchemaSnapshot:
        """Extract tables and columns from the restored instance.

        Raises:
            RestoreStateError: If called before a successful ``restore()``.
        """
        ...

    async def extract_metrics(self) -> MetricsSnapshot:
        """Extract size, row counts and the measured restore duration.

        Raises:
            RestoreStateError: If called before a successful ``restore()``.
        """
        ...

    async def cleanup(self) -> None:
        """Tear down the instance and remove staging files.

        Idempotent and safe to call after a partial failure.
        """
        ...
