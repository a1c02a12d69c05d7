"""Baseline schema persistence.

One JSON file per project id holds the last trusted ``SchemaSnapshot``.
Writes replace the file wholesale (last write wins); there is no history.

Usage:
    from restorable.schema.baseline import BaselineStore

    store = BaselineStore(Path("~/.restorable/schemas").expanduser())
    baseline = store.load("billing")      # None on the first run
    store.save("billing", snapshot)
"""

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from restorable.errors import ConfigurationError
from restorable.schema.models import SchemaSnapshot

logger = logging.getLogger(__name__)


class BaselineStore:
    """Persists and loads baseline schema snapshots keyed by project id."""

    def __init__(self, base_path: Path):
        self._base_path = Path(base_path)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def path_for(self, project_id: str) -> Path:
        """Return the baseline file path for a project.

        Raises:
            ConfigurationError: If the project id is empty or contains a path separator.
        """
        if not project_id or "/" in project_id or "\\" in project_id or project_id in (".", ".."):
            raise ConfigurationError(f"Invalid project id for baseline storage: {project_id!r}")
        return self._base_path / f"{project_id}.json"

    def exists(self, project_id: str) -> bool:
        """Check whether a baseline exists for a project."""
        return self.path_for(project_id).is_file()

    def load(self, project_id: str) -> SchemaSnapshot | None:
        """Load the baseline for a project.

        Returns:
            The stored snapshot, or None if no baseline exists.

        Raises:
            ValueError: If the baseline file exists but cannot be parsed.
        """
        path = self.path_for(project_id)
        if not path.exists():
            return None

        try:
            return SchemaSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ValueError(f"Failed to parse baseline file {path}: {e}") from e

    def save(self, project_id: str, snapshot: SchemaSnapshot) -> Path:
        """Persist a snapshot as the project's baseline.

        The file is written to a temporary sibling and renamed into place.

        Returns:
            Path of the baseline file.
        """
        path = self.path_for(project_id)
        self._base_path.mkdir(parents=True, exist_ok=True)

        data = snapshot.model_dump_json(indent=2, by_alias=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._base_path, prefix=f".{project_id}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Saved baseline for project %s to %s", project_id, path)
        return path
