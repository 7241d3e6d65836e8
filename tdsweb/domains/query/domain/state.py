"""Single-flight query lifecycle and its transitions.

``QueryExecution`` is the in-flight query (if any); ``ResultStream`` is
everything the server has streamed back for it so far. Transition
functions are pure: they return the next execution, the stream to keep,
and the notifications to emit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from tdsweb.shared.core import notifications as n

if TYPE_CHECKING:
    from tdsweb.domains.protocol.messages import ExportPayload, ServerNotice


class QueryStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLING = "cancelling"


@dataclass(frozen=True)
class QueryExecution:
    query_text: str = ""
    export_requested: bool = False
    status: QueryStatus = QueryStatus.IDLE

    @property
    def is_active(self) -> bool:
        return self.status is not QueryStatus.IDLE


IDLE = QueryExecution()


@dataclass
class ResultSet:
    columns: tuple[str, ...]
    rows: list[tuple[Any, ...]] = field(default_factory=list)


@dataclass
class ResultStream:
    """Accumulated output of one query, in arrival order."""

    result_sets: list[ResultSet] = field(default_factory=list)
    notices: list[ServerNotice] = field(default_factory=list)
    rows_affected: int = 0

    @property
    def current(self) -> ResultSet | None:
        return self.result_sets[-1] if self.result_sets else None

    @property
    def columns(self) -> tuple[str, ...]:
        current = self.current
        return current.columns if current else ()

    @property
    def rows(self) -> list[tuple[Any, ...]]:
        current = self.current
        return current.rows if current else []

    @property
    def total_rows(self) -> int:
        return sum(len(rs.rows) for rs in self.result_sets)


@dataclass
class Transition:
    execution: QueryExecution
    stream: ResultStream | None
    notifications: list[n.Notification] = field(default_factory=list)


def start(execution: QueryExecution, query_text: str, export: bool) -> Transition | None:
    """Idle -> Running. Returns None for a busy executor or empty query."""
    if execution.is_active or not query_text:
        return None
    nxt = QueryExecution(query_text=query_text, export_requested=export, status=QueryStatus.RUNNING)
    return Transition(nxt, ResultStream(), [n.QueryStarted(query_text, export)])


def request_cancel(execution: QueryExecution, stream: ResultStream | None) -> Transition | None:
    """Running -> Cancelling. The query stays in flight until the server finishes it."""
    if execution.status is not QueryStatus.RUNNING:
        return None
    nxt = QueryExecution(execution.query_text, execution.export_requested, QueryStatus.CANCELLING)
    return Transition(nxt, stream, [n.CancelRequested()])


def table_started(execution: QueryExecution, stream: ResultStream, columns: tuple[str, ...]) -> Transition:
    stream.result_sets.append(ResultSet(columns=columns))
    index = len(stream.result_sets) - 1
    return Transition(execution, stream, [n.TableStarted(columns, index)])


def row_received(execution: QueryExecution, stream: ResultStream, values: tuple[Any, ...]) -> Transition:
    notifications: list[n.Notification] = []
    current = stream.current
    if current is None:
        # Rows without a header still get a result set to land in.
        current = ResultSet(columns=tuple(f"column{i + 1}" for i in range(len(values))))
        stream.result_sets.append(current)
        notifications.append(n.TableStarted(current.columns, len(stream.result_sets) - 1))
    current.rows.append(values)
    notifications.append(n.RowAppended(values, len(current.rows) - 1))
    return Transition(execution, stream, notifications)


def notice_received(execution: QueryExecution, stream: ResultStream, notice: ServerNotice) -> Transition:
    stream.notices.append(notice)
    return Transition(execution, stream, [n.MessageLogged(notice)])


def row_count_received(execution: QueryExecution, stream: ResultStream, count: int) -> Transition:
    stream.rows_affected += count
    return Transition(execution, stream, [n.RowCountLogged(count)])


def finished(execution: QueryExecution, stream: ResultStream | None) -> Transition:
    """Running or Cancelling -> Idle."""
    cancelled = execution.status is QueryStatus.CANCELLING
    rows = stream.total_rows if stream else 0
    return Transition(IDLE, stream, [n.QueryFinished(cancelled=cancelled, rows=rows)])


def failed(execution: QueryExecution, stream: ResultStream | None, message: str) -> Transition:
    """Abort to Idle, keeping whatever was already streamed."""
    return Transition(IDLE, stream, [n.QueryFailed(message)])


def reset(execution: QueryExecution) -> Transition:
    return Transition(IDLE, None)


def format_row_count(count: int) -> str:
    return "1 row" if count == 1 else f"{count} rows"


def describe_export(payload: ExportPayload) -> str:
    return f"{payload.filename} ({payload.mime}, {payload.size} bytes)"
