"""Durable storage of the persisted application snapshot.

The snapshot is stored as JSON in a local .gitdepsec directory within the
given base directory (the current working directory by default).
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .state import AppState, from_persisted, to_persisted

logger = logging.getLogger(__name__)


class SnapshotStorage:
    """Loads and saves the allow-listed part of AppState."""

    def __init__(self, base_path: Path | None = None):
        """Initialize snapshot storage.

        Args:
            base_path: Base directory for storage. If None, uses current directory.
        """
        if base_path is None:
            base_path = Path.cwd()

        self.storage_dir = base_path / ".gitdepsec"
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.state_file = self.storage_dir / "state.json"

    def _load_raw(self) -> dict[str, Any]:
        try:
            with open(self.state_file) as f:
                data = json.load(f)
                return data if isinstance(data, dict) else {}
        except (FileNotFoundError, json.JSONDecodeError):
            return {}

    def load(self) -> AppState:
        """Load the persisted snapshot into a fresh AppState.

        A missing, corrupt or invalid file yields the default state.
        """
        data = self._load_raw()
        try:
            return from_persisted(data)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid persisted state in {self.state_file}: {e}")
            return AppState()

    def save(self, state: AppState) -> None:
        """Persist the allow-listed fields of ``state``."""
        with open(self.state_file, "w") as f:
            json.dump(to_persisted(state), f, indent=2)

    def clear(self) -> None:
        """Remove the persisted snapshot."""
        self.state_file.unlink(missing_ok=True)
