"""Session controller: login, logout and database selection."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from tdsweb.domains.protocol.messages import (
    ChangeDatabaseRequest,
    LoginRequest,
    LogoutRequest,
    OutboundMessage,
)
from tdsweb.shared.core.notifications import DatabaseChangeRequested

from ..domain import state as transitions
from ..domain.state import ANONYMOUS, AuthState, Session, Transition

if TYPE_CHECKING:
    from tdsweb.domains.protocol.messages import LoginResponse
    from tdsweb.shared.core.protocols import Presenter

logger = logging.getLogger(__name__)


class SessionController:
    """Owns the authentication state for the single connection.

    The controller is the only writer of ``session``. User intents that are
    not valid in the current state are ignored and return False; nothing is
    sent in that case.

    Args:
        send: Callable that puts an outbound message on the wire.
        presenter: Receives notifications about authentication changes.
    """

    def __init__(self, send: Callable[[OutboundMessage], None], presenter: Presenter):
        self._send = send
        self._presenter = presenter
        self._session: Session = ANONYMOUS
        self._connected = False

    @property
    def session(self) -> Session:
        return self._session

    @property
    def auth_state(self) -> AuthState:
        return self._session.auth_state

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def is_authenticating(self) -> bool:
        return self._session.auth_state is AuthState.AUTHENTICATING

    # User intents

    def submit_login(self, username: str, password: str) -> bool:
        if not self._connected:
            logger.debug("Login ignored: not connected")
            return False
        transition = transitions.begin_login(self._session, username)
        if transition is None:
            logger.debug(f"Login ignored in state {self.auth_state.value}")
            return False
        self._apply(transition)
        self._send(LoginRequest(username=username, password=password))
        return True

    def submit_logout(self) -> bool:
        # The session is cleared when the server confirms, not here.
        if not self.is_authenticated:
            logger.debug(f"Logout ignored in state {self.auth_state.value}")
            return False
        self._send(LogoutRequest())
        return True

    def change_database(self, name: str) -> bool:
        if not self.is_authenticated or not name:
            return False
        self._send(ChangeDatabaseRequest(database=name))
        self._presenter.notify(DatabaseChangeRequested(name))
        return True

    # Connection and inbound events

    def on_connected(self) -> None:
        self._connected = True

    def on_disconnected(self) -> None:
        self._connected = False
        self._apply(transitions.connection_lost(self._session))

    def on_login(self, response: LoginResponse) -> None:
        self._apply(transitions.login_succeeded(self._session, response))

    def on_logout(self) -> None:
        self._apply(transitions.logged_out(self._session))

    def on_error(self, message: str) -> None:
        """Handle a server error received while a login is pending."""
        self._apply(transitions.login_failed(self._session, message))

    def _apply(self, transition: Transition) -> None:
        previous = self._session.auth_state
        self._session = transition.session
        if previous is not self._session.auth_state:
            logger.debug(f"Session {previous.value} -> {self._session.auth_state.value}")
        for notification in transition.notifications:
            self._presenter.notify(notification)
