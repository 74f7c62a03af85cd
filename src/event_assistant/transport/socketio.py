"""
Socket.IO bridge — feeds map backend events into the assistant bus.

Connection: {base_url}{socketio_path} with optional auth={token}.
Waits for the `ready` event before resolving connect().
"""

import asyncio
import logging
from typing import Any, Optional

import socketio

from event_assistant.bus import EventBus
from event_assistant.errors import EventPayloadError
from event_assistant.models.events import AssistantEvent
from event_assistant.transport.envelope import parse_envelope

logger = logging.getLogger(__name__)

SOCKETIO_PATH = "/socket.io/"
SOURCE = "socketio"
CONTROL_EVENTS = ("connect", "disconnect", "connect_error", "ready")


class SocketIOBridge:
    def __init__(
        self,
        bus: EventBus,
        base_url: str,
        token: Optional[str] = None,
        transports: Optional[list[str]] = None,
        socketio_path: str = SOCKETIO_PATH,
        ready_timeout: float = 15.0,
    ):
        self._bus = bus
        self._base_url = base_url
        self._token = token
        self._transports = transports or ["websocket"]
        self._socketio_path = socketio_path
        self._ready_timeout = ready_timeout
        self._sio: Optional[socketio.AsyncClient] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected and self._sio is not None and self._sio.connected

    async def connect(self) -> None:
        """Connect and wait for `ready`. Raises TimeoutError if it never arrives."""
        if self._sio and self._sio.connected:
            return

        self._sio = socketio.AsyncClient()
        ready_event = asyncio.Event()

        @self._sio.on("ready")
        async def on_ready(*_args: Any) -> None:
            self._set_connected(True)
            ready_event.set()

        @self._sio.on("*")
        async def on_any(event: str, data: Any = None) -> None:
            self.dispatch(event, data)

        @self._sio.event
        async def disconnect(_reason: str = "") -> None:
            self._set_connected(False)

        await self._sio.connect(
            self._base_url,
            auth={"token": self._token} if self._token else None,
            transports=self._transports,
            socketio_path=self._socketio_path,
        )

        try:
            await asyncio.wait_for(ready_event.wait(), timeout=self._ready_timeout)
        except asyncio.TimeoutError:
            await self._sio.disconnect()
            raise TimeoutError(f"Timed out waiting for 'ready' event after {self._ready_timeout}s")

    def dispatch(self, event: str, data: Any) -> bool:
        """Re-emit one inbound event on the bus. Returns False when it was dropped."""
        if event in CONTROL_EVENTS:
            return False
        envelope = parse_envelope(event, data)
        if envelope is None:
            logger.debug("Ignoring inbound event %s", event)
            return False
        try:
            self._bus.emit(envelope.type, envelope.payload, source=envelope.source or SOURCE)
        except EventPayloadError as e:
            logger.warning("Dropping %s with invalid payload: %s", envelope.type, e.details)
            return False
        return True

    async def disconnect(self) -> None:
        if self._sio:
            await self._sio.disconnect()
            self._sio = None
        self._set_connected(False)

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        self._bus.emit(AssistantEvent.CONNECTION_CHANGED, {"connected": connected}, source=SOURCE)
