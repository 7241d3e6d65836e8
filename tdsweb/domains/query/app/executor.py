"""Query executor: the single in-flight query and its streamed results."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from tdsweb.domains.protocol.messages import (
    CancelRequest,
    OutboundMessage,
    QueryRequest,
)
from tdsweb.shared.core.notifications import ErrorKind, ErrorNotice, ExportReady, MessageLogged

from ..domain import state as transitions
from ..domain.state import IDLE, QueryExecution, QueryStatus, ResultStream, Transition

if TYPE_CHECKING:
    from pathlib import Path

    from tdsweb.domains.protocol.messages import ExportPayload, ServerNotice
    from tdsweb.shared.core.protocols import Presenter

logger = logging.getLogger(__name__)


class QueryExecutor:
    """Tracks at most one running query through its streamed lifecycle.

    Submissions while a query is in flight are rejected, not queued.
    Cancellation only asks the server to stop; the executor stays in
    ``CANCELLING`` until ``query_finished`` or an error arrives.

    Args:
        send: Callable that puts an outbound message on the wire.
        presenter: Receives query lifecycle notifications.
        can_submit: Returns True while the session is authenticated.
        save_export: Writes an export payload and returns its path.
    """

    def __init__(
        self,
        send: Callable[[OutboundMessage], None],
        presenter: Presenter,
        can_submit: Callable[[], bool],
        save_export: Callable[[ExportPayload], Path] | None = None,
    ):
        self._send = send
        self._presenter = presenter
        self._can_submit = can_submit
        self._save_export = save_export
        self._execution: QueryExecution = IDLE
        self._stream: ResultStream | None = None

    @property
    def execution(self) -> QueryExecution:
        return self._execution

    @property
    def status(self) -> QueryStatus:
        return self._execution.status

    @property
    def is_idle(self) -> bool:
        return not self._execution.is_active

    @property
    def stream(self) -> ResultStream | None:
        return self._stream

    # User intents

    def submit(self, query_text: str, export: bool = False) -> bool:
        """Send a query if the session is authenticated and nothing is running.

        Returns:
            True if the query was sent, False if the submission was ignored.
        """
        if not self._can_submit():
            logger.debug("Query ignored: not authenticated")
            return False
        transition = transitions.start(self._execution, query_text, export)
        if transition is None:
            logger.debug(f"Query ignored in state {self.status.value}")
            return False
        self._apply(transition)
        self._send(QueryRequest(query=query_text, export=export))
        return True

    def cancel(self) -> bool:
        transition = transitions.request_cancel(self._execution, self._stream)
        if transition is None:
            return False
        self._apply(transition)
        self._send(CancelRequest())
        return True

    # Inbound events. Result frames only count while a query is in flight.

    def on_table(self, columns: tuple[str, ...]) -> None:
        if self._ignore_when_idle("table"):
            return
        self._apply(transitions.table_started(self._execution, self._require_stream(), columns))

    def on_row(self, values: tuple[Any, ...]) -> None:
        if self._ignore_when_idle("row"):
            return
        self._apply(transitions.row_received(self._execution, self._require_stream(), values))

    def on_message(self, notice: ServerNotice) -> None:
        """Log a server notice. Outside a query it is shown but not collected."""
        if self.is_idle:
            self._presenter.notify(MessageLogged(notice))
            return
        self._apply(transitions.notice_received(self._execution, self._require_stream(), notice))

    def on_row_count(self, count: int) -> None:
        if self._ignore_when_idle("row_count"):
            return
        self._apply(transitions.row_count_received(self._execution, self._require_stream(), count))

    def on_finished(self, export: ExportPayload | None, export_error: str | None = None) -> None:
        if self._ignore_when_idle("query_finished"):
            return
        self._apply(transitions.finished(self._execution, self._stream))
        if export is not None:
            self._deliver_export(export)
        elif export_error is not None:
            logger.warning(f"Discarding export: {export_error}")
            self._presenter.notify(ErrorNotice(f"Could not read export: {export_error}", ErrorKind.EXPORT))

    def on_error(self, message: str) -> None:
        """Abort the in-flight query. Rows already streamed are kept."""
        self._apply(transitions.failed(self._execution, self._stream, message))

    def reset(self) -> None:
        """Force Idle and drop any partial results (disconnect or logout)."""
        if self._execution.is_active:
            logger.info(f"Abandoning {self.status.value} query")
        self._apply(transitions.reset(self._execution))

    def _ignore_when_idle(self, tag: str) -> bool:
        if self.is_idle:
            logger.debug(f"Ignoring {tag} with no query in flight")
            return True
        return False

    def _require_stream(self) -> ResultStream:
        if self._stream is None:
            self._stream = ResultStream()
        return self._stream

    def _deliver_export(self, payload: ExportPayload) -> None:
        if self._save_export is None:
            logger.warning(f"Discarding export {transitions.describe_export(payload)}: no export writer")
            return
        try:
            path = self._save_export(payload)
        except OSError as e:
            logger.warning(f"Saving export {payload.filename} failed: {e}")
            self._presenter.notify(ErrorNotice(f"Could not save {payload.filename}: {e}", ErrorKind.EXPORT))
            return
        logger.info(f"Saved export {transitions.describe_export(payload)} to {path}")
        self._presenter.notify(ExportReady(payload.filename, payload.mime, path, payload.size))

    def _apply(self, transition: Transition) -> None:
        previous = self._execution.status
        self._execution = transition.execution
        self._stream = transition.stream
        if previous is not self._execution.status:
            logger.debug(f"Query {previous.value} -> {self._execution.status.value}")
        for notification in transition.notifications:
            self._presenter.notify(notification)
