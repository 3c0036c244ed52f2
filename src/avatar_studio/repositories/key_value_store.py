"""File-based durable key-value store.

Each key is stored as ``<base_path>/<key>.json``. Writes go to a temporary
file that is then renamed over the target, so a crash mid-write never
leaves a half-written collection behind.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

from src.avatar_studio.repositories.interfaces import KeyValueStoreInterface

logger = logging.getLogger(__name__)

_VALID_KEY = re.compile(r"^[A-Za-z0-9_\-]+$")


class JsonFileStore(KeyValueStoreInterface):
    """Durable key-value store backed by one JSON file per key.

    Directory structure:
        base_path/
            projects.json
            active_tasks.json
            ...
    """

    def __init__(self, base_path: Path) -> None:
        """Initialize the store.

        Args:
            base_path: Directory holding the JSON files (created if missing)
        """
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        """Get the file path for a key, rejecting unsafe keys."""
        if not _VALID_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.base_path / f"{key}.json"

    async def load(self, key: str) -> Any | None:
        """Load the value stored under a key.

        A missing or unreadable file is treated as absent; unreadable
        files are logged so they can be inspected.

        Args:
            key: Storage key

        Returns:
            The decoded JSON value, or None
        """
        path = self._path_for(key)
        if not path.exists():
            return None

        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to load %s from %s: %s", key, path, exc)
            return None

    async def save(self, key: str, value: Any) -> None:
        """Persist a value under a key.

        Writes atomically by writing to a temporary file first, then
        renaming over the target.

        Args:
            key: Storage key
            value: JSON-serializable value
        """
        path = self._path_for(key)
        tmp_path = path.with_suffix(".json.tmp")

        try:
            tmp_path.write_text(json.dumps(value, indent=2) + "\n", encoding="utf-8")
            tmp_path.replace(path)
        except OSError:
            logger.exception("Failed to save %s to %s", key, path)
            raise

    async def clear(self, key: str) -> None:
        """Remove the file for a key. Missing files are ignored."""
        self._path_for(key).unlink(missing_ok=True)
