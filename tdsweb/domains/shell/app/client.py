"""Composition root for the client core.

``QueryClient`` wires the connection manager, session controller and
query executor together and exposes the user-intent entry points the
presentation layer calls. Everything runs on one event loop, one event
at a time.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from tdsweb.domains.connection.app.manager import ConnectionManager, ConnectionState
from tdsweb.domains.query.app.executor import QueryExecutor
from tdsweb.domains.query.app.export import ExportWriter
from tdsweb.domains.session.app.controller import SessionController

if TYPE_CHECKING:
    from pathlib import Path

    from tdsweb.config import ClientSettings
    from tdsweb.domains.protocol.messages import ExportPayload
    from tdsweb.domains.query.domain.state import QueryStatus, ResultStream
    from tdsweb.domains.session.domain.state import Session
    from tdsweb.shared.core.protocols import Presenter, SchedulerProtocol, TransportProtocol


class QueryClient:
    """Client for the query service.

    Usage:
        client = QueryClient.create(settings, presenter)
        client.start()
        client.login("alice", "secret")
        client.submit_query("SELECT 1")
        ...
        client.stop()

    Args:
        url: WebSocket endpoint.
        transport: Transport carrying frames to the server.
        scheduler: Timer scheduler for keepalive and reconnect.
        presenter: Presentation layer receiving notifications.
        save_export: Writes export payloads, returning the saved path.
        keepalive_interval_ms: Keepalive period.
        reconnect_delay_ms: Reconnect delay.
    """

    def __init__(
        self,
        url: str,
        transport: TransportProtocol,
        scheduler: SchedulerProtocol,
        presenter: Presenter,
        save_export: Callable[[ExportPayload], Path] | None = None,
        keepalive_interval_ms: int | None = None,
        reconnect_delay_ms: int | None = None,
    ):
        timing = {}
        if keepalive_interval_ms is not None:
            timing["keepalive_interval_ms"] = keepalive_interval_ms
        if reconnect_delay_ms is not None:
            timing["reconnect_delay_ms"] = reconnect_delay_ms
        self.connection = ConnectionManager(url, transport, scheduler, presenter, **timing)
        self.session = SessionController(self.connection.send, presenter)
        self.executor = QueryExecutor(
            self.connection.send,
            presenter,
            can_submit=lambda: self.session.is_authenticated,
            save_export=save_export,
        )
        self.connection.bind(self.session, self.executor)

    @classmethod
    def create(
        cls,
        settings: ClientSettings,
        presenter: Presenter,
        transport: TransportProtocol | None = None,
        scheduler: SchedulerProtocol | None = None,
    ) -> QueryClient:
        """Build a client from settings, using the WebSocket transport by default."""
        if transport is None:
            from tdsweb.domains.connection.app.transport import WebSocketTransport

            transport = WebSocketTransport()
        if scheduler is None:
            from tdsweb.domains.connection.app.scheduler import AsyncioScheduler

            scheduler = AsyncioScheduler()
        writer = ExportWriter(settings.export_dir)
        return cls(
            settings.endpoint,
            transport,
            scheduler,
            presenter,
            save_export=writer.save,
            keepalive_interval_ms=settings.keepalive_interval_ms,
            reconnect_delay_ms=settings.reconnect_delay_ms,
        )

    # State

    @property
    def connection_state(self) -> ConnectionState:
        return self.connection.state

    @property
    def current_session(self) -> Session:
        return self.session.session

    @property
    def query_status(self) -> QueryStatus:
        return self.executor.status

    @property
    def results(self) -> ResultStream | None:
        return self.executor.stream

    # Lifecycle

    def start(self) -> None:
        self.connection.connect()

    def stop(self) -> None:
        self.connection.close()

    # User intents

    def login(self, username: str, password: str) -> bool:
        return self.session.submit_login(username, password)

    def logout(self) -> bool:
        return self.session.submit_logout()

    def change_database(self, name: str) -> bool:
        return self.session.change_database(name)

    def submit_query(self, query_text: str, export: bool = False) -> bool:
        return self.executor.submit(query_text, export)

    def cancel_query(self) -> bool:
        return self.executor.cancel()
