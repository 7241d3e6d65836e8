"""JSON file persistence under the tdsweb config directory."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Can be overridden via environment variable for testing
CONFIG_DIR = Path(os.environ.get("TDSWEB_CONFIG_DIR", Path.home() / ".tdsweb"))

PRIVATE_DIR_MODE = 0o700
PRIVATE_FILE_MODE = 0o600


def chmod_private(path: Path, mode: int = PRIVATE_FILE_MODE) -> None:
    """Restrict ``path`` to the current user where the platform allows it."""
    try:
        os.chmod(path, mode)
    except OSError:
        pass  # Best effort on platforms that don't support chmod


class JSONFileStore:
    """One JSON document on disk, readable only by the current user.

    Reads never fail on a missing or corrupt file; they return None and
    the caller picks the default. Writes replace the file atomically.
    """

    def __init__(self, file_path: Path):
        self._file_path = Path(file_path).expanduser()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def read(self) -> Any:
        try:
            text = self._file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable {self._file_path}: {e}")
            return None

    def write(self, data: Any) -> None:
        directory = self._file_path.parent
        if not directory.exists():
            directory.mkdir(parents=True)
            chmod_private(directory, PRIVATE_DIR_MODE)
        # The temp file must live in the target directory for the rename to be atomic.
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".tmp_", suffix=".json")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            chmod_private(tmp_path)
            os.replace(tmp_path, self._file_path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
