"""Socket.IO transport.

Wraps ``python-socketio``'s async client behind the Transport protocol.
The client's own reconnection is switched off; the channel owns retries.
"""

from __future__ import annotations

import logging
from typing import Any

from intake_funnel.channel.transport import (
    SERVER_DISCONNECT,
    TRANSPORT_CLOSE,
    DisconnectCallback,
    InboundCallback,
)
from intake_funnel.errors import TransportError

logger = logging.getLogger(__name__)


class SocketIOTransport:
    """Event transport over a Socket.IO connection."""

    def __init__(
        self,
        url: str,
        *,
        transports: list[str] | None = None,
        wait_timeout: float = 10.0,
    ) -> None:
        import socketio

        self.url = url
        self.transports = transports or ["websocket", "polling"]
        self.wait_timeout = wait_timeout
        self.client = socketio.AsyncClient(reconnection=False, logger=False)
        self._on_event: InboundCallback | None = None
        self._on_disconnect: DisconnectCallback | None = None
        self._closing = False

        self.client.on("*", self._handle_event)
        self.client.on("disconnect", self._handle_disconnect)

    @property
    def connected(self) -> bool:
        return bool(self.client.connected)

    def bind(self, on_event: InboundCallback, on_disconnect: DisconnectCallback) -> None:
        self._on_event = on_event
        self._on_disconnect = on_disconnect

    async def connect(self) -> None:
        from socketio.exceptions import ConnectionError as SocketIOConnectionError

        self._closing = False
        try:
            await self.client.connect(
                self.url,
                transports=self.transports,
                wait_timeout=self.wait_timeout,
            )
        except SocketIOConnectionError as exc:
            raise TransportError(f"connect to {self.url} failed: {exc}") from exc

    async def disconnect(self) -> None:
        self._closing = True
        if self.client.connected:
            await self.client.disconnect()

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        from socketio.exceptions import SocketIOError

        try:
            await self.client.emit(event, payload)
        except SocketIOError as exc:
            raise TransportError(f"emit of {event!r} failed: {exc}") from exc

    async def _handle_event(self, event: str, data: Any = None) -> None:
        if self._on_event is not None:
            await self._on_event(event, data)

    async def _handle_disconnect(self, reason: Any = None) -> None:
        if self._closing:
            return
        # Older clients pass no reason.
        text = str(reason) if reason else TRANSPORT_CLOSE
        if text == SERVER_DISCONNECT:
            logger.warning("Server closed the connection; automatic reconnection is off")
        logger.info("Socket.IO connection to %s closed: %s", self.url, text)
        if self._on_disconnect is not None:
            await self._on_disconnect(text)
