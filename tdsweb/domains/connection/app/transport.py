"""WebSocket transport backed by aiohttp."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import aiohttp

logger = logging.getLogger(__name__)


class WebSocketTransport:
    """One WebSocket connection at a time, driven by a reader task.

    All callbacks run on the event loop that called ``open``. Outbound
    frames are queued and written by a single writer task so they reach
    the server in the order they were sent.

    Usage:
        transport = WebSocketTransport()
        transport.open("ws://localhost:52441/ws", on_open, on_message, on_close)
        transport.send('{"type":"ping"}')
        transport.close()
    """

    def __init__(self, connect_timeout: float = 10.0):
        self._connect_timeout = connect_timeout
        self._task: asyncio.Task[None] | None = None
        self._outbox: asyncio.Queue[str] | None = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def open(
        self,
        url: str,
        on_open: Callable[[], None],
        on_message: Callable[[str], None],
        on_close: Callable[[], None],
    ) -> None:
        if self.is_active:
            raise RuntimeError("Transport already has an active connection")
        self._outbox = asyncio.Queue()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(url, on_open, on_message, on_close))

    def send(self, text: str) -> None:
        if self._outbox is None:
            raise RuntimeError("Transport is not open")
        self._outbox.put_nowait(text)

    def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._outbox = None

    async def _run(
        self,
        url: str,
        on_open: Callable[[], None],
        on_message: Callable[[str], None],
        on_close: Callable[[], None],
    ) -> None:
        outbox = self._outbox
        if outbox is None:
            # Closed before the task got to run.
            return
        writer: asyncio.Task[None] | None = None
        try:
            timeout = aiohttp.ClientTimeout(total=None, connect=self._connect_timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.ws_connect(url, autoping=True) as ws:
                    logger.info(f"WebSocket connected: {url}")
                    writer = asyncio.create_task(self._drain(ws, outbox))
                    on_open()
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            on_message(msg.data)
                        elif msg.type == aiohttp.WSMsgType.BINARY:
                            logger.warning(f"Ignoring binary frame of {len(msg.data)} bytes")
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            logger.warning(f"WebSocket error: {ws.exception()}")
                            break
                    logger.info(f"WebSocket closed by server (code={ws.close_code})")
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"WebSocket connection to {url} failed: {e}")
        except Exception:
            # A failing callback ends this connection like any other close.
            logger.exception(f"WebSocket handler for {url} raised")
        finally:
            if writer is not None:
                writer.cancel()
            # A task that was closed deliberately has already been detached.
            if asyncio.current_task() is self._task:
                self._task = None
                self._outbox = None
                on_close()

    async def _drain(self, ws: aiohttp.ClientWebSocketResponse, outbox: asyncio.Queue[str]) -> None:
        while True:
            text = await outbox.get()
            try:
                await ws.send_str(text)
            except (aiohttp.ClientError, ConnectionResetError) as e:
                logger.warning(f"WebSocket send failed: {e}")
                return
