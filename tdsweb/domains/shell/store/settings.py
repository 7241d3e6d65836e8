"""Persisted client preferences (``settings.json``)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from tdsweb.shared.core.store import CONFIG_DIR, JSONFileStore

SETTINGS_FILENAME = "settings.json"


def settings_path() -> Path:
    """``$TDSWEB_SETTINGS_PATH`` if set, else ``settings.json`` in the config directory."""
    override = os.environ.get("TDSWEB_SETTINGS_PATH", "").strip()
    return Path(override).expanduser() if override else CONFIG_DIR / SETTINGS_FILENAME


class SettingsStore(JSONFileStore):
    """Client preferences kept as a single JSON object.

    Anything other than an object in the file reads as no settings.
    """

    def __init__(self, file_path: Path | None = None) -> None:
        super().__init__(file_path or settings_path())

    def load_all(self) -> dict[str, Any]:
        data = self.read()
        return data if isinstance(data, dict) else {}

    def update(self, **values: Any) -> dict[str, Any]:
        """Merge ``values`` into the stored settings and return the result."""
        settings = self.load_all()
        settings.update(values)
        self.write(settings)
        return settings


def load_settings() -> dict[str, Any]:
    """Load client settings from the settings file."""
    return SettingsStore().load_all()


def save_setting(key: str, value: Any) -> None:
    """Persist a single setting, keeping the others."""
    SettingsStore().update(**{key: value})
