"""Timer scheduling on the asyncio event loop.

The connection manager owns two timers (keepalive and reconnect). Both go
through a scheduler object instead of calling ``asyncio`` directly so the
state machine can be tested with a manual clock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class AsyncioScheduler:
    """Scheduler backed by ``loop.call_later``.

    Callbacks run on the event loop thread, interleaved with socket events
    and UI input, one at a time.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_ms / 1000, callback)
