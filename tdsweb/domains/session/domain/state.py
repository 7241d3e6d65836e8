"""Authentication state and its transitions.

Transitions are pure functions: they take the current ``Session`` and an
event and return a ``Transition`` holding the next session plus the
notifications the presentation layer should receive. They never send
anything on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from tdsweb.shared.core.notifications import (
    LoggedIn,
    LoggedOut,
    LoginFailed,
    LoginStarted,
    Notification,
)

if TYPE_CHECKING:
    from tdsweb.domains.protocol.messages import LoginResponse


class AuthState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Session:
    """Who is logged in, where, and which databases they can pick from."""

    auth_state: AuthState = AuthState.ANONYMOUS
    server: str | None = None
    username: str | None = None
    database: str | None = None
    available_databases: tuple[str, ...] = ()

    @property
    def is_authenticated(self) -> bool:
        return self.auth_state is AuthState.AUTHENTICATED


ANONYMOUS = Session()


@dataclass(frozen=True)
class Transition:
    session: Session
    notifications: list[Notification] = field(default_factory=list)


def begin_login(session: Session, username: str) -> Transition | None:
    """Anonymous -> Authenticating. Returns None if not allowed from here."""
    if session.auth_state is not AuthState.ANONYMOUS:
        return None
    nxt = Session(auth_state=AuthState.AUTHENTICATING, username=username)
    return Transition(nxt, [LoginStarted(username)])


def login_succeeded(session: Session, response: LoginResponse) -> Transition:
    nxt = Session(
        auth_state=AuthState.AUTHENTICATED,
        server=response.server,
        username=response.username,
        database=response.database,
        available_databases=response.databases,
    )
    return Transition(nxt, [LoggedIn(nxt)])


def login_failed(session: Session, message: str) -> Transition:
    return Transition(ANONYMOUS, [LoginFailed(message)])


def logged_out(session: Session) -> Transition:
    if session.auth_state is AuthState.ANONYMOUS:
        return Transition(ANONYMOUS)
    return Transition(ANONYMOUS, [LoggedOut()])


def connection_lost(session: Session) -> Transition:
    return Transition(ANONYMOUS)
