"""Protocol message types exchanged with the query service.

Every frame on the wire is a JSON object discriminated by its ``type``
field. Outbound requests and inbound events are modelled as frozen
dataclasses; each class carries its wire tag in ``TYPE``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

EXPORT_FORMAT = "excel"
DEFAULT_EXPORT_FILENAME = "export.xlsx"
DEFAULT_EXPORT_MIME = "application/octet-stream"

# Notices above this severity are errors rather than informational.
ERROR_SEVERITY_THRESHOLD = 10


# Outbound requests


@dataclass(frozen=True)
class LoginRequest:
    TYPE: ClassVar[str] = "login"

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class LogoutRequest:
    TYPE: ClassVar[str] = "logout"


@dataclass(frozen=True)
class QueryRequest:
    TYPE: ClassVar[str] = "query"

    query: str
    export: bool = False


@dataclass(frozen=True)
class CancelRequest:
    TYPE: ClassVar[str] = "cancel"


@dataclass(frozen=True)
class ChangeDatabaseRequest:
    TYPE: ClassVar[str] = "change_database"

    database: str


@dataclass(frozen=True)
class PingRequest:
    TYPE: ClassVar[str] = "ping"


# Inbound events


@dataclass(frozen=True)
class LoginResponse:
    """Successful authentication, with the session's database context."""

    TYPE: ClassVar[str] = "login"

    server: str
    username: str
    database: str | None = None
    databases: tuple[str, ...] = ()


@dataclass(frozen=True)
class LogoutResponse:
    TYPE: ClassVar[str] = "logout"


@dataclass(frozen=True)
class ErrorResponse:
    TYPE: ClassVar[str] = "error"

    message: str


@dataclass(frozen=True)
class ServerNotice:
    """An informational or error message raised by the server while running a query."""

    TYPE: ClassVar[str] = "message"

    msgno: int
    severity: int
    state: int
    line_number: int
    text: str
    server: str | None = None
    proc_name: str | None = None
    sql_state: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity > ERROR_SEVERITY_THRESHOLD


@dataclass(frozen=True)
class TableHeader:
    TYPE: ClassVar[str] = "table"

    columns: tuple[str, ...]


@dataclass(frozen=True)
class Row:
    """One result row. ``None`` values are SQL NULLs, distinct from ``""``."""

    TYPE: ClassVar[str] = "row"

    values: tuple[Any, ...]


@dataclass(frozen=True)
class RowCount:
    TYPE: ClassVar[str] = "row_count"

    count: int


@dataclass(frozen=True)
class ExportPayload:
    data: bytes = field(repr=False)
    mime: str = DEFAULT_EXPORT_MIME
    filename: str = DEFAULT_EXPORT_FILENAME

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class QueryFinished:
    TYPE: ClassVar[str] = "query_finished"

    export: ExportPayload | None = None
    # Set instead of ``export`` when the attached payload could not be decoded.
    export_error: str | None = None


@dataclass(frozen=True)
class Pong:
    TYPE: ClassVar[str] = "pong"


OutboundMessage = Union[
    LoginRequest,
    LogoutRequest,
    QueryRequest,
    CancelRequest,
    ChangeDatabaseRequest,
    PingRequest,
]

InboundMessage = Union[
    LoginResponse,
    LogoutResponse,
    ErrorResponse,
    ServerNotice,
    TableHeader,
    Row,
    RowCount,
    QueryFinished,
    Pong,
]
