"""Client configuration.

Settings are read from the JSON settings store and may be overridden from
the command line. The WebSocket endpoint is derived from the server's
base URL: ``http`` maps to ``ws`` and ``https`` to ``wss``, and the path
is always ``/ws``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlsplit, urlunsplit

from .domains.connection.app.manager import DEFAULT_KEEPALIVE_INTERVAL_MS, DEFAULT_RECONNECT_DELAY_MS
from .shared.core.store import CONFIG_DIR

DEFAULT_SERVER_URL = "http://localhost:52441"
WS_PATH = "/ws"

_SCHEME_MAP = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def default_export_dir() -> Path:
    downloads = Path.home() / "Downloads"
    return downloads if downloads.is_dir() else CONFIG_DIR / "exports"


def build_endpoint(server_url: str) -> str:
    """Return the WebSocket endpoint for a server base URL.

    ``https://db.example.com:8443/app`` -> ``wss://db.example.com:8443/ws``

    Raises:
        ValueError: The URL has no host or an unsupported scheme.
    """
    value = server_url.strip()
    if "://" not in value:
        value = f"http://{value}"
    parts = urlsplit(value)
    scheme = _SCHEME_MAP.get(parts.scheme.lower())
    if scheme is None:
        raise ValueError(f"Unsupported server URL scheme '{parts.scheme}' (use http or https)")
    if not parts.netloc:
        raise ValueError(f"Server URL '{server_url}' has no host")
    return urlunsplit((scheme, parts.netloc, WS_PATH, "", ""))


@dataclass(frozen=True)
class ClientSettings:
    """Everything the client needs to know before it connects."""

    server_url: str = DEFAULT_SERVER_URL
    keepalive_interval_ms: int = DEFAULT_KEEPALIVE_INTERVAL_MS
    reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS
    export_dir: Path = field(default_factory=default_export_dir)
    username: str = ""

    def __post_init__(self) -> None:
        build_endpoint(self.server_url)
        for name in ("keepalive_interval_ms", "reconnect_delay_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @property
    def endpoint(self) -> str:
        return build_endpoint(self.server_url)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ClientSettings:
        """Build settings from a stored JSON object, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        if "export_dir" in values:
            values["export_dir"] = Path(str(values["export_dir"])).expanduser()
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> ClientSettings:
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if "export_dir" in values:
            values["export_dir"] = Path(str(values["export_dir"])).expanduser()
        return replace(self, **values) if values else self


def load_client_settings(**overrides: Any) -> ClientSettings:
    """Load settings from the settings store and apply overrides."""
    from .domains.shell.store.settings import load_settings

    return ClientSettings.from_mapping(load_settings()).with_overrides(**overrides)
