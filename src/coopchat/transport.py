"""WebSocket transport for the session link."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Set

import websockets
from websockets.exceptions import WebSocketException

from .collaborators import LinkEvents


class WebSocketLink:
    """One participant's connection to the coordination point.

    Everything runs on the asyncio loop that created the link. ``send`` only
    schedules the write; a failed write is reported via ``events.on_error``.
    """

    def __init__(
        self,
        address: str,
        events: LinkEvents,
        connect: Optional[Callable] = None,
    ):
        self.address = address
        self._events = events
        self._connect = connect or websockets.connect
        self._websocket = None
        self._closing = False
        self._reader: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def is_open(self) -> bool:
        return self._websocket is not None and not self._closing

    def start(self) -> None:
        self._reader = asyncio.get_running_loop().create_task(self._run())

    def send(self, text: str) -> bool:
        if not self.is_open:
            return False
        task = asyncio.get_running_loop().create_task(self._write(text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        if self._websocket is not None:
            task = asyncio.get_running_loop().create_task(self._websocket.close())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        elif self._reader is not None:
            # still connecting
            self._reader.cancel()

    async def _run(self) -> None:
        try:
            self._websocket = await self._connect(self.address)
        except (OSError, WebSocketException) as e:
            self._events.on_error(e)
            return

        if self._closing:
            await self._websocket.close()
            self._websocket = None
            return

        self._events.on_open()
        try:
            async for message in self._websocket:
                self._events.on_message(message)
        except WebSocketException as e:
            self._websocket = None
            self._events.on_error(e)
            return
        self._websocket = None
        self._events.on_close()

    async def _write(self, text: str) -> None:
        websocket = self._websocket
        if websocket is None:
            return
        try:
            await websocket.send(text)
        except (OSError, WebSocketException) as e:
            self._events.on_error(e)


class WebSocketTransport:
    """Opens :class:`WebSocketLink` instances on the running loop."""

    def __init__(self, connect: Optional[Callable] = None):
        self._connect = connect

    def open(self, address: str, events: LinkEvents) -> WebSocketLink:
        if not address.startswith(("ws://", "wss://")):
            raise ConnectionError(f"Unsupported server address {address!r}")
        try:
            asyncio.get_running_loop()
        except RuntimeError as e:
            raise ConnectionError("No running event loop") from e

        link = WebSocketLink(address, events, connect=self._connect)
        link.start()
        return link
