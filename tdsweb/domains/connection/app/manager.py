"""Connection manager: socket lifecycle, keepalive, reconnect and dispatch.

The manager owns the one connection to the query service. It turns
socket events into state changes on the session controller and query
executor, and it is the only component that schedules timers:

- a keepalive ``ping`` every ``keepalive_interval_ms`` while open
- a single reconnect attempt ``reconnect_delay_ms`` after every
  unexpected close, retried forever with no backoff
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from tdsweb.domains.protocol import codec
from tdsweb.domains.protocol.exceptions import DecodeError, NotConnectedError
from tdsweb.domains.protocol.messages import (
    ErrorResponse,
    LoginResponse,
    LogoutResponse,
    OutboundMessage,
    PingRequest,
    Pong,
    QueryFinished,
    Row,
    RowCount,
    ServerNotice,
    TableHeader,
)
from tdsweb.shared.core.notifications import Connected, Disconnected, ErrorKind, ErrorNotice

if TYPE_CHECKING:
    from tdsweb.domains.query.app.executor import QueryExecutor
    from tdsweb.domains.session.app.controller import SessionController
    from tdsweb.shared.core.protocols import (
        Presenter,
        SchedulerProtocol,
        TimerHandle,
        TransportProtocol,
    )

logger = logging.getLogger(__name__)

DEFAULT_KEEPALIVE_INTERVAL_MS = 15000
DEFAULT_RECONNECT_DELAY_MS = 5000


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


class ConnectionManager:
    """Owns the single live connection and routes inbound messages.

    Usage:
        manager = ConnectionManager(url, transport, scheduler, presenter)
        manager.bind(session_controller, query_executor)
        manager.connect()

    Args:
        url: WebSocket endpoint of the query service.
        transport: Opens connections and carries frames.
        scheduler: Runs the keepalive and reconnect timers.
        presenter: Receives connection status and error notifications.
        keepalive_interval_ms: Period between pings while open.
        reconnect_delay_ms: Delay before reconnecting after a close.
    """

    def __init__(
        self,
        url: str,
        transport: TransportProtocol,
        scheduler: SchedulerProtocol,
        presenter: Presenter,
        keepalive_interval_ms: int = DEFAULT_KEEPALIVE_INTERVAL_MS,
        reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS,
    ):
        self._url = url
        self._transport = transport
        self._scheduler = scheduler
        self._presenter = presenter
        self._keepalive_interval_ms = keepalive_interval_ms
        self._reconnect_delay_ms = reconnect_delay_ms
        self._state = ConnectionState.DISCONNECTED
        self._keepalive: TimerHandle | None = None
        self._reconnect: TimerHandle | None = None
        self._session: SessionController | None = None
        self._executor: QueryExecutor | None = None
        self._closed = False

    def bind(self, session: SessionController, executor: QueryExecutor) -> None:
        """Attach the components inbound messages are dispatched to."""
        self._session = session
        self._executor = executor

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect is not None

    def connect(self) -> bool:
        """Start a connection attempt. Returns False if one is already under way."""
        if self._state is not ConnectionState.DISCONNECTED:
            return False
        self._closed = False
        self._cancel_reconnect()
        self._state = ConnectionState.CONNECTING
        logger.info(f"Connecting to {self._url}")
        self._transport.open(self._url, self._on_open, self._on_frame, self._on_close)
        return True

    def close(self) -> None:
        """Shut the connection down for good. No reconnect is scheduled."""
        self._closed = True
        self._cancel_reconnect()
        self._cancel_keepalive()
        if self._state is ConnectionState.DISCONNECTED:
            return
        self._transport.close()
        self._state = ConnectionState.DISCONNECTED
        self._reset_components()
        logger.info("Connection closed")

    def send(self, message: OutboundMessage) -> None:
        """Encode and send one message.

        Raises:
            NotConnectedError: The connection is not open.
        """
        if self._state is not ConnectionState.OPEN:
            raise NotConnectedError()
        logger.debug(f"-> {message.TYPE}")
        self._transport.send(codec.encode(message))

    # Transport callbacks

    def _on_open(self) -> None:
        self._state = ConnectionState.OPEN
        logger.info(f"Connected to {self._url}")
        if self._session is not None:
            self._session.on_connected()
        self._presenter.notify(Connected())
        self._arm_keepalive()

    def _on_close(self) -> None:
        if self._closed:
            return
        was = self._state
        self._state = ConnectionState.DISCONNECTED
        self._cancel_keepalive()
        self._reset_components()
        self._reconnect = self._scheduler.call_later(self._reconnect_delay_ms, self._on_reconnect_timer)
        if was is ConnectionState.OPEN:
            logger.warning(f"Connection lost; reconnecting in {self._reconnect_delay_ms} ms")
        else:
            logger.warning(f"Connection failed; retrying in {self._reconnect_delay_ms} ms")
        self._presenter.notify(Disconnected(reconnect_delay_ms=self._reconnect_delay_ms))

    def _on_frame(self, raw: str) -> None:
        try:
            message = codec.decode(raw)
        except DecodeError as e:
            logger.warning(f"Dropping undecodable frame: {e}")
            self._presenter.notify(ErrorNotice(str(e), ErrorKind.PROTOCOL))
            return
        logger.debug(f"<- {message.TYPE}")
        handler = _ROUTES[type(message)]
        handler(self, message)

    # Timers

    def _arm_keepalive(self) -> None:
        self._keepalive = self._scheduler.call_later(self._keepalive_interval_ms, self._on_keepalive_timer)

    def _on_keepalive_timer(self) -> None:
        self._keepalive = None
        if self._state is not ConnectionState.OPEN:
            return
        self.send(PingRequest())
        self._arm_keepalive()

    def _on_reconnect_timer(self) -> None:
        self._reconnect = None
        self.connect()

    def _cancel_keepalive(self) -> None:
        if self._keepalive is not None:
            self._keepalive.cancel()
            self._keepalive = None

    def _cancel_reconnect(self) -> None:
        if self._reconnect is not None:
            self._reconnect.cancel()
            self._reconnect = None

    def _reset_components(self) -> None:
        if self._session is not None:
            self._session.on_disconnected()
        if self._executor is not None:
            self._executor.reset()

    # Inbound routing

    def _route_login(self, message: LoginResponse) -> None:
        if self._session is not None:
            self._session.on_login(message)

    def _route_logout(self, message: LogoutResponse) -> None:
        if self._executor is not None:
            self._executor.reset()
        if self._session is not None:
            self._session.on_logout()

    def _route_error(self, message: ErrorResponse) -> None:
        if self._session is not None and self._session.is_authenticating:
            self._session.on_error(message.message)
        elif self._executor is not None and not self._executor.is_idle:
            self._executor.on_error(message.message)
        else:
            logger.info(f"Server notice: {message.message}")
            self._presenter.notify(ErrorNotice(message.message, ErrorKind.SERVER))

    def _route_notice(self, message: ServerNotice) -> None:
        if self._executor is not None:
            self._executor.on_message(message)

    def _route_table(self, message: TableHeader) -> None:
        if self._executor is not None:
            self._executor.on_table(message.columns)

    def _route_row(self, message: Row) -> None:
        if self._executor is not None:
            self._executor.on_row(message.values)

    def _route_row_count(self, message: RowCount) -> None:
        if self._executor is not None:
            self._executor.on_row_count(message.count)

    def _route_query_finished(self, message: QueryFinished) -> None:
        if self._executor is not None:
            self._executor.on_finished(message.export, message.export_error)

    def _route_pong(self, message: Pong) -> None:
        pass


_ROUTES: dict[type, Any] = {
    LoginResponse: ConnectionManager._route_login,
    LogoutResponse: ConnectionManager._route_logout,
    ErrorResponse: ConnectionManager._route_error,
    ServerNotice: ConnectionManager._route_notice,
    TableHeader: ConnectionManager._route_table,
    Row: ConnectionManager._route_row,
    RowCount: ConnectionManager._route_row_count,
    QueryFinished: ConnectionManager._route_query_finished,
    Pong: ConnectionManager._route_pong,
}
