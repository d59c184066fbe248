"""JSON file storage for the save blob.

The whole game is one SessionState, saved as one JSON file per namespace
key. There is no partial update: every save replaces the file.

Directory layout:

    {base}/
      saves/
        aetheria_save_v1.json   ← full SessionState snapshot
      config.json               ← see aetheria.config
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from aetheria.models import SessionState

logger = logging.getLogger(__name__)

SAVE_KEY = "aetheria_save_v1"


class PersistedStateCorruption(ValueError):
    """Raised when a save file exists but can't be read back."""


class SaveStore:
    def __init__(self, base_path: Path, key: str = SAVE_KEY) -> None:
        self._base = base_path
        self._saves = base_path / "saves"
        self._saves.mkdir(parents=True, exist_ok=True)
        self.key = key

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._saves / f"{self.key}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(path)

    # ------------------------------------------------------------------
    # Save blob
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> SessionState | None:
        """Return the saved state, or None if nothing was saved.

        Raises PersistedStateCorruption if the file is unreadable.
        """
        if not self.exists():
            return None
        try:
            return SessionState.restore(self._read_json(self.path))
        except (json.JSONDecodeError, ValidationError, UnicodeDecodeError) as e:
            raise PersistedStateCorruption(f"Save file {self.path} is corrupted: {e}") from e

    def save(self, state: SessionState) -> None:
        self._write_json(self.path, state.snapshot())
        logger.debug("saved state to %s (%d messages)", self.path, len(state.messages))

    def clear(self) -> None:
        if self.exists():
            self.path.unlink()
            logger.info("cleared save %s", self.path)
