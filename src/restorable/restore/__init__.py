"""Restore backends.

Usage:
    from restorable.restore import get_restorer

    async with get_restorer(config) as restorer:
        await restorer.restore(artifact)
"""

from restorable.config.models import RestorableConfig
from restorable.errors import ConfigurationError
from restorable.restore.base import Restorer
from restorable.restore.postgres import PostgresRestorer

__all__ = ["Restorer", "PostgresRestorer", "get_restorer"]


def get_restorer(config: RestorableConfig) -> Restorer:
    """Create the restorer for the configured database type.

    Raises:
        ConfigurationError: If the database type is not supported.
    """
    db_type = config.database.type
    if db_type == "postgres":
        return PostgresRestorer(config)
    raise ConfigurationError(f"Unsupported database type: {db_type}")
