"""Protocols for dependency injection in the tdsweb client core.

The core state machines only talk to the outside world through these
interfaces, so tests can drive them with a fake transport and a manual
clock instead of real sockets and delays.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .notifications import Notification


@runtime_checkable
class Presenter(Protocol):
    """Receives notifications from the core, in the order they occur."""

    def notify(self, notification: Notification) -> None:
        """Render or record a single notification."""
        ...


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from firing. Safe to call more than once."""
        ...


@runtime_checkable
class SchedulerProtocol(Protocol):
    """Runs callbacks after a delay on the client's event loop."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Schedule ``callback`` to run once after ``delay_ms`` milliseconds.

        Args:
            delay_ms: Delay in milliseconds.
            callback: Zero-argument callable.

        Returns:
            A handle that can cancel the pending call.
        """
        ...


@runtime_checkable
class TransportProtocol(Protocol):
    """A message-framed, ordered connection to the query service.

    ``open`` starts a connection attempt and returns immediately. Exactly
    one of the following then happens: ``on_open`` followed by zero or
    more ``on_message`` calls and finally ``on_close``; or ``on_close``
    alone if the attempt failed.
    """

    def open(
        self,
        url: str,
        on_open: Callable[[], None],
        on_message: Callable[[str], None],
        on_close: Callable[[], None],
    ) -> None:
        ...

    def send(self, text: str) -> None:
        """Send one text frame. Fire-and-forget."""
        ...

    def close(self) -> None:
        """Close the connection without invoking ``on_close``."""
        ...
