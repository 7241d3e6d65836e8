"""tdsweb - A terminal client for the tdsweb query service."""

from typing import TYPE_CHECKING, Any

__all__ = [
    "__version__",
    "main",
    "QueryClient",
    "ClientSettings",
    "TdswebApp",
]

try:
    from ._version import __version__
except ImportError:
    __version__ = "0.0.0.dev"

if TYPE_CHECKING:
    from tdsweb.config import ClientSettings
    from tdsweb.domains.shell.app.client import QueryClient
    from tdsweb.domains.shell.app.main import TdswebApp

    from .cli import main


def __getattr__(name: str) -> Any:
    """Lazy import for heavy modules to keep package import side-effect free."""
    if name == "main":
        from .cli import main

        return main
    if name == "QueryClient":
        from tdsweb.domains.shell.app.client import QueryClient

        return QueryClient
    if name == "ClientSettings":
        from tdsweb.config import ClientSettings

        return ClientSettings
    if name == "TdswebApp":
        from tdsweb.domains.shell.app.main import TdswebApp

        return TdswebApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
