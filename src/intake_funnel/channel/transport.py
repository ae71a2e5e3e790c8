"""Transport protocol: the wire underneath an :class:`EventChannel`.

A transport only knows how to connect, disconnect, and move named JSON
payloads.  Retry policy, queuing, and handler bookkeeping live in the
channel, so every transport must report failures by raising
:class:`TransportError` and must never retry on its own.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, Callable, Protocol, runtime_checkable

InboundCallback = Callable[[str, Any], Awaitable[None]]
DisconnectCallback = Callable[[str], Awaitable[None]]

# Disconnect reasons, named the way Socket.IO clients report them.
SERVER_DISCONNECT = "io server disconnect"
CLIENT_DISCONNECT = "io client disconnect"
TRANSPORT_CLOSE = "transport close"
TRANSPORT_ERROR = "transport error"


@runtime_checkable
class Transport(Protocol):
    """Abstract bidirectional event transport."""

    @property
    def connected(self) -> bool: ...

    def bind(self, on_event: InboundCallback, on_disconnect: DisconnectCallback) -> None:
        """Install the channel's callbacks.  Called once, before ``connect``."""
        ...

    async def connect(self) -> None:
        """Open the connection or raise ``TransportError``."""
        ...

    async def disconnect(self) -> None: ...

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Send one event or raise ``TransportError``."""
        ...


def create_transport(name: str, url: str = "", **kwargs: Any) -> Transport:
    """Factory function to create a transport by name.

    Args:
        name: "socketio" or "memory".
        url: Server URL (ignored by the in-memory transport).

    Raises:
        ValueError: If *name* is not recognised.
    """
    if name == "socketio":
        from intake_funnel.channel.transports.socketio_client import SocketIOTransport

        return SocketIOTransport(url, **kwargs)
    elif name == "memory":
        from intake_funnel.channel.transports.memory import InMemoryTransport

        return InMemoryTransport(**kwargs)
    else:
        raise ValueError(f"Unknown transport: {name}")
