"""Writing export payloads delivered with a finished query."""

from __future__ import annotations

from pathlib import Path

from tdsweb.domains.protocol.messages import DEFAULT_EXPORT_FILENAME, ExportPayload
from tdsweb.shared.core.store import chmod_private


def _safe_filename(filename: str) -> str:
    # Never let the server pick a path outside the export directory.
    name = Path(filename.replace("\\", "/")).name.strip()
    if name in ("", ".", ".."):
        return DEFAULT_EXPORT_FILENAME
    return name


def unique_path(directory: Path, filename: str) -> Path:
    """Return a path in ``directory`` that does not exist yet.

    ``report.xlsx`` becomes ``report (1).xlsx``, ``report (2).xlsx``, ...
    """
    candidate = directory / filename
    stem, suffix = candidate.stem, candidate.suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem} ({counter}){suffix}"
        counter += 1
    return candidate


class ExportWriter:
    """Saves export payloads as files in a download directory.

    Args:
        directory: Where exports are written. Created on first use.
    """

    def __init__(self, directory: Path):
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def save(self, payload: ExportPayload) -> Path:
        """Write the payload and return the path it was saved to.

        Raises:
            OSError: The directory could not be created or written.
        """
        self._directory.mkdir(parents=True, exist_ok=True)
        path = unique_path(self._directory, _safe_filename(payload.filename))
        with open(path, "xb") as f:
            f.write(payload.data)
        chmod_private(path)
        return path
