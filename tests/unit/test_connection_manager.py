"""Unit tests for the connection manager's lifecycle, timers and routing."""

from __future__ import annotations

import pytest

from tdsweb.domains.connection.app.manager import (
    DEFAULT_KEEPALIVE_INTERVAL_MS,
    DEFAULT_RECONNECT_DELAY_MS,
    ConnectionState,
)
from tdsweb.domains.protocol.exceptions import NotConnectedError
from tdsweb.domains.protocol.messages import PingRequest
from tdsweb.domains.query.domain.state import QueryStatus
from tdsweb.domains.session.domain.state import AuthState
from tdsweb.shared.core import notifications as n
from tdsweb.shared.core.notifications import ErrorKind

from tests.mocks import LOGIN_REPLY, FakeTransport, logged_in_client, make_client


class TestConnect:
    def test_default_timers(self):
        assert DEFAULT_KEEPALIVE_INTERVAL_MS == 15000
        assert DEFAULT_RECONNECT_DELAY_MS == 5000

    def test_connect_opens_endpoint(self):
        client, transport, _, presenter = make_client()
        client.start()
        assert transport.url == "ws://localhost:52441/ws"
        assert client.connection_state is ConnectionState.OPEN
        assert presenter.of_type(n.Connected)

    def test_connecting_until_transport_opens(self):
        client, transport, _, presenter = make_client(transport=FakeTransport(auto_open=False))
        client.start()
        assert client.connection_state is ConnectionState.CONNECTING
        assert not presenter.of_type(n.Connected)
        transport.accept()
        assert client.connection_state is ConnectionState.OPEN

    def test_connect_is_ignored_while_connected(self):
        client, transport, _, _ = make_client()
        client.start()
        assert client.connection.connect() is False
        assert transport.open_calls == 1

    def test_send_requires_open_connection(self):
        client, _, _, _ = make_client(transport=FakeTransport(auto_open=False))
        with pytest.raises(NotConnectedError):
            client.connection.send(PingRequest())


class TestKeepalive:
    def test_ping_every_interval_while_open(self):
        client, transport, scheduler, _ = make_client()
        client.start()
        scheduler.advance(14999)
        assert transport.count("ping") == 0
        scheduler.advance(1)
        assert transport.count("ping") == 1
        scheduler.advance(15000 * 3)
        assert transport.count("ping") == 4

    def test_no_ping_while_disconnected(self):
        client, transport, scheduler, _ = make_client()
        client.start()
        transport.auto_open = False
        transport.close_from_server()
        scheduler.advance(60000)
        assert transport.count("ping") == 0

    def test_no_ping_before_open(self):
        client, transport, scheduler, _ = make_client(transport=FakeTransport(auto_open=False))
        client.start()
        scheduler.advance(30000)
        assert transport.sent == []

    def test_pong_is_consumed_silently(self):
        client, transport, _, presenter = make_client()
        client.start()
        presenter.clear()
        transport.deliver({"type": "pong"})
        assert presenter.notifications == []


class TestReconnect:
    def test_one_reconnect_per_close_after_delay(self):
        client, transport, scheduler, presenter = make_client()
        client.start()
        transport.close_from_server()

        assert client.connection_state is ConnectionState.DISCONNECTED
        assert [t.delay_ms for t in scheduler.pending] == [5000]
        assert presenter.of_type(n.Disconnected) == [n.Disconnected(reconnect_delay_ms=5000)]

        scheduler.advance(4999)
        assert transport.open_calls == 1
        scheduler.advance(1)
        assert transport.open_calls == 2
        assert client.connection_state is ConnectionState.OPEN

    def test_retries_forever_without_backoff(self):
        transport = FakeTransport(fail_open=True)
        client, _, scheduler, presenter = make_client(transport=transport)
        client.start()
        for attempt in range(2, 12):
            assert len(scheduler.pending) == 1
            assert scheduler.pending[0].delay_ms == 5000
            scheduler.advance(5000)
            assert transport.open_calls == attempt
        assert len(presenter.of_type(n.Disconnected)) == 11

        transport.fail_open = False
        scheduler.advance(5000)
        assert client.connection_state is ConnectionState.OPEN
        assert scheduler.pending[0].delay_ms == 15000  # keepalive only

    def test_deliberate_close_does_not_reconnect(self):
        client, transport, scheduler, presenter = make_client()
        client.start()
        client.stop()
        assert transport.close_calls == 1
        assert scheduler.pending == []
        assert not presenter.of_type(n.Disconnected)

    def test_close_cancels_pending_reconnect(self):
        client, transport, scheduler, _ = make_client()
        client.start()
        transport.close_from_server()
        client.stop()
        scheduler.advance(10000)
        assert transport.open_calls == 1
        assert not client.connection.reconnect_pending

    def test_close_while_running_resets_everything(self):
        client, transport, scheduler, _ = logged_in_client()
        client.submit_query("SELECT 1")
        transport.deliver({"type": "table", "columns": [{"name": "x"}]})
        assert client.query_status is QueryStatus.RUNNING

        transport.close_from_server()

        assert client.query_status is QueryStatus.IDLE
        assert client.results is None
        assert client.current_session.auth_state is AuthState.ANONYMOUS
        assert [t.delay_ms for t in scheduler.pending] == [5000]

    def test_login_needed_again_after_reconnect(self):
        client, transport, scheduler, _ = logged_in_client()
        transport.close_from_server()
        scheduler.advance(5000)
        assert client.connection_state is ConnectionState.OPEN
        assert client.current_session.auth_state is AuthState.ANONYMOUS
        assert client.submit_query("SELECT 1") is False


class TestInboundRouting:
    def test_undecodable_frame_is_reported_and_dropped(self):
        client, transport, _, presenter = logged_in_client()
        presenter.clear()
        transport.deliver('{"type":"bogus"}')
        transport.deliver("{broken")
        notices = presenter.of_type(n.ErrorNotice)
        assert [e.kind for e in notices] == [ErrorKind.PROTOCOL, ErrorKind.PROTOCOL]
        assert notices[0].message == 'Unrecognized message type "bogus".'
        assert client.connection_state is ConnectionState.OPEN

    def test_missing_type_is_reported(self):
        client, transport, _, presenter = make_client()
        client.start()
        transport.deliver({"columns": []})
        assert presenter.of_type(n.ErrorNotice) == [n.ErrorNotice("No message type given.", ErrorKind.PROTOCOL)]

    def test_error_during_login_fails_login(self):
        client, transport, _, presenter = make_client()
        client.start()
        client.login("alice", "wrong")
        transport.deliver({"type": "error", "message": "Login failed for user 'alice'."})
        assert presenter.of_type(n.LoginFailed) == [n.LoginFailed("Login failed for user 'alice'.")]
        assert client.current_session.auth_state is AuthState.ANONYMOUS

    def test_error_during_query_fails_query(self):
        client, transport, _, presenter = logged_in_client()
        client.submit_query("SELECT * FROM nope")
        transport.deliver({"type": "error", "message": "Invalid object name 'nope'."})
        assert presenter.of_type(n.QueryFailed) == [n.QueryFailed("Invalid object name 'nope'.")]
        assert client.query_status is QueryStatus.IDLE
        assert client.current_session.is_authenticated

    def test_unsolicited_error_is_a_server_notice(self):
        client, transport, _, presenter = logged_in_client()
        transport.deliver({"type": "error", "message": "Database 'x' does not exist."})
        assert presenter.of_type(n.ErrorNotice) == [n.ErrorNotice("Database 'x' does not exist.", ErrorKind.SERVER)]

    def test_server_logout_resets_query(self):
        client, transport, _, presenter = logged_in_client()
        client.submit_query("WAITFOR DELAY '00:01'")
        transport.deliver({"type": "logout"})
        assert client.query_status is QueryStatus.IDLE
        assert client.current_session.auth_state is AuthState.ANONYMOUS
        assert presenter.of_type(n.LoggedOut)

    def test_login_reply_routes_to_session(self):
        client, transport, _, _ = make_client()
        client.start()
        client.login("alice", "p")
        transport.deliver(LOGIN_REPLY)
        assert client.current_session.is_authenticated
