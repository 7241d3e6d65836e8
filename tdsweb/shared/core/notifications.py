"""Notifications emitted by the client core to the presentation layer.

The core never touches widgets. Every observable state change is
described by one of these immutable records and handed to a
``Presenter`` in the order it happened.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from tdsweb.domains.protocol.messages import ServerNotice
    from tdsweb.domains.session.domain.state import Session


class ErrorKind(str, Enum):
    PROTOCOL = "protocol"
    SERVER = "server"
    EXPORT = "export"


@dataclass(frozen=True)
class Connected:
    pass


@dataclass(frozen=True)
class Disconnected:
    reconnect_delay_ms: int | None = None


@dataclass(frozen=True)
class LoginStarted:
    username: str


@dataclass(frozen=True)
class LoggedIn:
    session: Session


@dataclass(frozen=True)
class LoginFailed:
    message: str


@dataclass(frozen=True)
class LoggedOut:
    pass


@dataclass(frozen=True)
class DatabaseChangeRequested:
    name: str


@dataclass(frozen=True)
class QueryStarted:
    query: str
    export: bool = False


@dataclass(frozen=True)
class CancelRequested:
    pass


@dataclass(frozen=True)
class TableStarted:
    columns: tuple[str, ...]
    index: int = 0


@dataclass(frozen=True)
class RowAppended:
    values: tuple[Any, ...]
    index: int


@dataclass(frozen=True)
class MessageLogged:
    notice: ServerNotice


@dataclass(frozen=True)
class RowCountLogged:
    count: int


@dataclass(frozen=True)
class QueryFinished:
    cancelled: bool = False
    rows: int = 0


@dataclass(frozen=True)
class QueryFailed:
    message: str


@dataclass(frozen=True)
class ExportReady:
    filename: str
    mime: str
    path: Path
    size: int


@dataclass(frozen=True)
class ErrorNotice:
    message: str
    kind: ErrorKind = ErrorKind.SERVER


Notification = Union[
    Connected,
    Disconnected,
    LoginStarted,
    LoggedIn,
    LoginFailed,
    LoggedOut,
    DatabaseChangeRequested,
    QueryStarted,
    CancelRequested,
    TableStarted,
    RowAppended,
    MessageLogged,
    RowCountLogged,
    QueryFinished,
    QueryFailed,
    ExportReady,
    ErrorNotice,
]
