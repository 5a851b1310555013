"""
Durable snapshot store for the session repository.
Saves and loads the whole repository as one JSON document keyed by schema version.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as SchemaError

from models.schemas import RepositoryState
from utils.config import config

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    File-backed whole-state store.
    """

    def __init__(self, path: Optional[str] = None, schema_version: Optional[int] = None):
        self.path = Path(path or config.storage.snapshot_path)
        self.schema_version = schema_version if schema_version is not None else config.storage.schema_version

    def load(self) -> RepositoryState:
        """
        Load the saved repository state.

        Returns:
            The saved state, or an empty state when nothing usable is stored
        """
        if not self.path.exists():
            logger.info(f"No snapshot at {self.path}, starting empty")
            return RepositoryState()

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Snapshot at {self.path} unreadable: {e}")
            return RepositoryState()

        version = payload.get("version") if isinstance(payload, dict) else None
        if version != self.schema_version:
            logger.warning(
                f"Snapshot version {version!r} does not match schema {self.schema_version}, ignoring"
            )
            return RepositoryState()

        try:
            return RepositoryState.model_validate(payload.get("state") or {})
        except SchemaError as e:
            logger.warning(f"Snapshot at {self.path} failed validation: {e}")
            return RepositoryState()

    def save(self, state: RepositoryState) -> None:
        """Atomically replace the stored snapshot."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = json.dumps({
            "version": self.schema_version,
            "state": state.model_dump(mode="json"),
        })

        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".snapshot-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(document)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
