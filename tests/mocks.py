"""Test doubles for the client core.

These let tests drive the connection, session and executor without a
real socket or event loop timers.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

from tdsweb.config import ClientSettings
from tdsweb.domains.shell.app.client import QueryClient


class FakeTransport:
    """In-memory transport that records outbound frames.

    Args:
        auto_open: Call ``on_open`` as soon as ``open`` is called.
        fail_open: Call ``on_close`` from ``open`` instead, like a refused connection.
        responder: Called with every sent message (decoded); each payload it
            returns is delivered back to the client immediately.
    """

    def __init__(
        self,
        auto_open: bool = True,
        fail_open: bool = False,
        responder: Callable[[dict], list[dict]] | None = None,
    ):
        self.auto_open = auto_open
        self.fail_open = fail_open
        self.responder = responder
        self.url: str | None = None
        self.sent: list[str] = []
        self.open_calls = 0
        self.close_calls = 0
        self.is_open = False
        self._on_open: Callable[[], None] | None = None
        self._on_message: Callable[[str], None] | None = None
        self._on_close: Callable[[], None] | None = None

    def open(
        self,
        url: str,
        on_open: Callable[[], None],
        on_message: Callable[[str], None],
        on_close: Callable[[], None],
    ) -> None:
        self.open_calls += 1
        self.url = url
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close
        if self.fail_open:
            on_close()
        elif self.auto_open:
            self.accept()

    def send(self, frame: str) -> None:
        self.sent.append(frame)
        if self.responder is not None:
            for reply in self.responder(json.loads(frame)):
                self.deliver(reply)

    def close(self) -> None:
        self.close_calls += 1
        self.is_open = False

    # Server side

    def accept(self) -> None:
        assert self._on_open is not None
        self.is_open = True
        self._on_open()

    def deliver(self, payload: dict[str, Any] | str) -> None:
        assert self._on_message is not None
        self._on_message(payload if isinstance(payload, str) else json.dumps(payload))

    def close_from_server(self) -> None:
        assert self._on_close is not None
        self.is_open = False
        self._on_close()

    # Inspection

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]

    @property
    def sent_types(self) -> list[str]:
        return [message["type"] for message in self.sent_messages]

    def count(self, message_type: str) -> int:
        return self.sent_types.count(message_type)


class ManualTimer:
    def __init__(self, due: int, delay_ms: int, callback: Callable[[], None]):
        self.due = due
        self.delay_ms = delay_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by ``advance`` instead of wall-clock time."""

    def __init__(self):
        self.now = 0
        self.timers: list[ManualTimer] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay_ms, delay_ms, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, ms: int) -> None:
        """Move time forward, firing due timers in order."""
        target = self.now + ms
        while True:
            due = sorted((t for t in self.pending if t.due <= target), key=lambda t: t.due)
            if not due:
                break
            timer = due[0]
            self.now = timer.due
            timer.fired = True
            timer.callback()
        self.now = target


class RecordingPresenter:
    """Presenter that keeps every notification it receives."""

    def __init__(self):
        self.notifications: list[Any] = []

    def notify(self, notification: Any) -> None:
        self.notifications.append(notification)

    def of_type(self, cls: type) -> list[Any]:
        return [item for item in self.notifications if isinstance(item, cls)]

    def clear(self) -> None:
        self.notifications.clear()


LOGIN_REPLY = {
    "type": "login",
    "server": "S1",
    "username": "alice",
    "database": "db1",
    "databases": ["db1", "db2"],
}


def make_client(
    transport: FakeTransport | None = None,
    scheduler: ManualScheduler | None = None,
    presenter: RecordingPresenter | None = None,
    export_dir: Path | None = None,
) -> tuple[QueryClient, FakeTransport, ManualScheduler, RecordingPresenter]:
    """Build a client on fakes. Nothing is opened until ``client.start()``."""
    transport = transport or FakeTransport()
    scheduler = scheduler or ManualScheduler()
    presenter = presenter or RecordingPresenter()
    settings = ClientSettings(export_dir=export_dir) if export_dir else ClientSettings()
    client = QueryClient.create(settings, presenter, transport=transport, scheduler=scheduler)
    return client, transport, scheduler, presenter


def logged_in_client(
    export_dir: Path | None = None,
) -> tuple[QueryClient, FakeTransport, ManualScheduler, RecordingPresenter]:
    """A started client already authenticated as alice on S1."""
    client, transport, scheduler, presenter = make_client(export_dir=export_dir)
    client.start()
    client.login("alice", "p")
    transport.deliver(LOGIN_REPLY)
    return client, transport, scheduler, presenter


def make_settings(export_dir: Path, **kwargs: Any) -> ClientSettings:
    return ClientSettings(export_dir=export_dir, **kwargs)
