from __future__ import annotations

import asyncio
import copy
from typing import Any

from intake_funnel.channel.transport import (
    CLIENT_DISCONNECT,
    TRANSPORT_CLOSE,
    DisconnectCallback,
    InboundCallback,
)
from intake_funnel.errors import TransportError


class InMemoryTransport:
    """Scriptable loopback transport.

    ``fail_connects`` makes the next N ``connect`` calls fail;
    ``fail_emits`` makes the next N ``emit`` calls fail and drop the link.
    ``deliver`` and ``drop`` play the server side.
    """

    def __init__(self, *, fail_connects: int = 0, fail_emits: int = 0) -> None:
        self.fail_connects = fail_connects
        self.fail_emits = fail_emits
        self.emitted: list[tuple[str, dict[str, Any]]] = []
        self.connect_calls = 0
        self._connected = False
        self._on_event: InboundCallback | None = None
        self._on_disconnect: DisconnectCallback | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    def bind(self, on_event: InboundCallback, on_disconnect: DisconnectCallback) -> None:
        self._on_event = on_event
        self._on_disconnect = on_disconnect

    async def connect(self) -> None:
        self.connect_calls += 1
        await asyncio.sleep(0)
        if self.fail_connects > 0:
            self.fail_connects -= 1
            raise TransportError("connection refused")
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        if not self._connected:
            raise TransportError(f"cannot emit {event!r}: not connected")
        await asyncio.sleep(0)
        if self.fail_emits > 0:
            self.fail_emits -= 1
            self._connected = False
            raise TransportError(f"emit of {event!r} failed")
        self.emitted.append((event, copy.deepcopy(payload)))

    # ── server side ───────────────────────────────────────────────

    async def deliver(self, event: str, payload: Any = None) -> None:
        if self._on_event is not None:
            await self._on_event(event, payload if payload is not None else {})

    async def drop(self, reason: str = TRANSPORT_CLOSE) -> None:
        self._connected = False
        if self._on_disconnect is not None and reason != CLIENT_DISCONNECT:
            await self._on_disconnect(reason)

    def names(self) -> list[str]:
        return [name for name, _ in self.emitted]

    def payloads(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.emitted if name == event]
