"""JSON wire codec for the query service protocol."""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Callable
from typing import Any

from .exceptions import MalformedFrameError, MissingTypeError, UnknownTypeError
from .messages import (
    DEFAULT_EXPORT_FILENAME,
    DEFAULT_EXPORT_MIME,
    EXPORT_FORMAT,
    CancelRequest,
    ChangeDatabaseRequest,
    ErrorResponse,
    ExportPayload,
    InboundMessage,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    LogoutResponse,
    OutboundMessage,
    PingRequest,
    Pong,
    QueryFinished,
    QueryRequest,
    Row,
    RowCount,
    ServerNotice,
    TableHeader,
)


def encode(message: OutboundMessage) -> str:
    """Serialize an outbound request into a single JSON text frame."""
    payload: dict[str, Any] = {"type": message.TYPE}
    if isinstance(message, LoginRequest):
        payload["username"] = message.username
        payload["password"] = message.password
    elif isinstance(message, QueryRequest):
        payload["query"] = message.query
        if message.export:
            payload["export"] = EXPORT_FORMAT
    elif isinstance(message, ChangeDatabaseRequest):
        payload["database"] = message.database
    elif not isinstance(message, (LogoutRequest, CancelRequest, PingRequest)):
        raise TypeError(f"Cannot encode {type(message).__name__}")
    return json.dumps(payload, separators=(",", ":"))


def decode(raw: str | bytes) -> InboundMessage:
    """Parse one inbound frame into a protocol message.

    Raises:
        MissingTypeError: The frame has no ``type`` field.
        UnknownTypeError: The ``type`` is not one the client understands.
        MalformedFrameError: The frame is not a JSON object, or a known
            message is missing required fields.
    """
    try:
        obj = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedFrameError(f"Invalid JSON frame: {exc}") from exc

    if not isinstance(obj, dict):
        raise MalformedFrameError("Frame is not a JSON object.")

    tag = obj.get("type")
    if tag is None:
        raise MissingTypeError()
    if not isinstance(tag, str) or tag not in _DECODERS:
        raise UnknownTypeError(str(tag))

    return _DECODERS[tag](obj)


def _require(obj: dict[str, Any], key: str, kind: type) -> Any:
    value = obj.get(key)
    # bool is an int subclass but never a valid numeric field
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise MalformedFrameError(f'"{obj.get("type")}" message has missing or invalid "{key}".')
    return value


def _optional(obj: dict[str, Any], key: str, kind: type) -> Any:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, kind):
        raise MalformedFrameError(f'"{obj.get("type")}" message has invalid "{key}".')
    return value


def _decode_login(obj: dict[str, Any]) -> LoginResponse:
    databases = obj.get("databases") or []
    if not isinstance(databases, list) or not all(isinstance(d, str) for d in databases):
        raise MalformedFrameError('"login" message has invalid "databases".')
    return LoginResponse(
        server=_require(obj, "server", str),
        username=_require(obj, "username", str),
        database=_optional(obj, "database", str),
        databases=tuple(databases),
    )


def _decode_error(obj: dict[str, Any]) -> ErrorResponse:
    return ErrorResponse(message=_require(obj, "message", str))


def _decode_message(obj: dict[str, Any]) -> ServerNotice:
    return ServerNotice(
        msgno=_require(obj, "msgno", int),
        severity=_require(obj, "severity", int),
        state=_require(obj, "state", int),
        line_number=_require(obj, "line_number", int),
        text=_require(obj, "message", str),
        server=_optional(obj, "server", str) or None,
        proc_name=_optional(obj, "proc_name", str) or None,
        sql_state=_optional(obj, "sql_state", str) or None,
    )


def _decode_table(obj: dict[str, Any]) -> TableHeader:
    columns = _require(obj, "columns", list)
    names = []
    for column in columns:
        if not isinstance(column, dict) or not isinstance(column.get("name"), str):
            raise MalformedFrameError('"table" message has a column without a name.')
        names.append(column["name"])
    return TableHeader(columns=tuple(names))


def _decode_row(obj: dict[str, Any]) -> Row:
    return Row(values=tuple(_require(obj, "columns", list)))


def _decode_row_count(obj: dict[str, Any]) -> RowCount:
    return RowCount(count=_require(obj, "count", int))


def _decode_query_finished(obj: dict[str, Any]) -> QueryFinished:
    # The frame always ends the query; a bad attachment only loses the export.
    data = obj.get("data")
    if data is None:
        return QueryFinished()
    if not isinstance(data, str):
        return QueryFinished(export_error='Export payload "data" is not a string.')
    try:
        blob = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        return QueryFinished(export_error=f"Export payload is not valid base64: {exc}")
    mime = obj.get("mime")
    filename = obj.get("filename")
    return QueryFinished(
        export=ExportPayload(
            data=blob,
            mime=mime if isinstance(mime, str) and mime else DEFAULT_EXPORT_MIME,
            filename=filename if isinstance(filename, str) and filename else DEFAULT_EXPORT_FILENAME,
        )
    )


_DECODERS: dict[str, Callable[[dict[str, Any]], InboundMessage]] = {
    LoginResponse.TYPE: _decode_login,
    LogoutResponse.TYPE: lambda obj: LogoutResponse(),
    ErrorResponse.TYPE: _decode_error,
    ServerNotice.TYPE: _decode_message,
    TableHeader.TYPE: _decode_table,
    Row.TYPE: _decode_row,
    RowCount.TYPE: _decode_row_count,
    QueryFinished.TYPE: _decode_query_finished,
    Pong.TYPE: lambda obj: Pong(),
}
