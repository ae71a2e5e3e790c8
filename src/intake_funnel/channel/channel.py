"""Event channel — connection lifecycle, pending queue, and handler registry.

Every connect attempt runs in a single task owned by the channel.  The
channel only reports ``connected`` after the pending queue has drained, so
a ``send`` issued while draining lands behind the queued events and FIFO
order holds across reconnects.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import random
from collections import deque
from collections.abc import Awaitable, Mapping
from enum import Enum
from typing import Any, Callable

from intake_funnel.channel import events
from intake_funnel.channel.backoff import ReconnectPolicy
from intake_funnel.channel.transport import (
    CLIENT_DISCONNECT,
    SERVER_DISCONNECT,
    TRANSPORT_ERROR,
    Transport,
)
from intake_funnel.clock import iso_now
from intake_funnel.errors import ChannelNotConnectedError, TransportError
from intake_funnel.telemetry import (
    NoOpTelemetrySink,
    TelemetrySink,
    channel_connected,
    channel_disconnected,
    channel_queue_drained,
    channel_reconnect_failed,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]
SnapshotProvider = Callable[[], "dict[str, Any] | None"]
Sleep = Callable[[float], Awaitable[None]]

DEFAULT_USER_AGENT = "intake-funnel-client"


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class EventChannel:
    """Bidirectional event channel over a :class:`Transport`."""

    def __init__(
        self,
        transport: Transport,
        *,
        policy: ReconnectPolicy | None = None,
        snapshot_provider: SnapshotProvider | None = None,
        telemetry: TelemetrySink | None = None,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.transport = transport
        self.policy = policy or ReconnectPolicy()
        self.snapshot_provider = snapshot_provider
        self.telemetry = telemetry or NoOpTelemetrySink()
        self._sleep = sleep
        self._rng = rng

        self._state = ChannelState.DISCONNECTED
        self._pending: deque[tuple[str, dict[str, Any], bool]] = deque()
        self._handlers: dict[str, list[Handler]] = {}
        self._groups: set[str] = set()
        self._connect_task: asyncio.Task[bool] | None = None
        self._closed = False
        self._reconnect_failed = False

        transport.bind(self._on_transport_event, self._on_transport_disconnect)

    # ── state ─────────────────────────────────────────────────────

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ChannelState.CONNECTED

    @property
    def reconnect_failed(self) -> bool:
        """True once automatic retries hit the ceiling; cleared by ``connect()``."""
        return self._reconnect_failed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_events(self) -> list[str]:
        return [name for name, _, _ in self._pending]

    # ── connection lifecycle ──────────────────────────────────────

    async def connect(self) -> bool:
        """Connect, retrying per the policy.  Returns the final connected state.

        A call while an attempt is already in flight joins that attempt.
        """
        self._closed = False
        self._reconnect_failed = False
        if self.is_connected:
            return True
        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(self._run_connect(reconnecting=False))
        return await self._connect_task

    async def wait_for_connection(self) -> bool:
        """Wait for any in-flight connect or reconnect to settle."""
        task = self._connect_task
        if task is not None and not task.done():
            await task
        return self.is_connected

    async def disconnect(self) -> None:
        """Close the channel.  No automatic reconnection follows."""
        self._closed = True
        task = self._connect_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        was_connected = self.is_connected
        self._state = ChannelState.DISCONNECTED
        try:
            await self.transport.disconnect()
        except TransportError:
            logger.warning("Transport raised while disconnecting", exc_info=True)
        if was_connected:
            channel_disconnected(self.telemetry, reason=CLIENT_DISCONNECT)
            await self._dispatch(events.DISCONNECT, {"reason": CLIENT_DISCONNECT})

    async def _run_connect(self, *, reconnecting: bool) -> bool:
        retries = 0
        first = True
        while True:
            if reconnecting or not first:
                if retries >= self.policy.max_attempts:
                    await self._give_up(retries)
                    return False
                retries += 1
                await self._dispatch(events.RECONNECT_ATTEMPT, {"attempt": retries})
                await self._sleep(self.policy.delay_for(retries, self._rng))
            first = False
            if self._closed:
                self._state = ChannelState.DISCONNECTED
                return False

            self._state = ChannelState.CONNECTING
            try:
                await asyncio.wait_for(self.transport.connect(), timeout=self.policy.connect_timeout)
            except (TransportError, asyncio.TimeoutError, OSError) as exc:
                self._state = ChannelState.DISCONNECTED
                logger.warning("Connect attempt %d failed: %s", retries + 1, exc)
                continue

            if not await self._drain():
                # The link died mid-drain; what is left stays queued.
                self._state = ChannelState.DISCONNECTED
                reconnecting = True
                continue

            self._state = ChannelState.CONNECTED
            self._reconnect_failed = False
            logger.info("Channel connected after %d retries", retries)
            channel_connected(self.telemetry, retries=retries)
            await self._dispatch(events.CONNECT, {})
            if retries:
                await self._dispatch(events.RECONNECT, {"attempts": retries})
            return True

    async def _drain(self) -> bool:
        drained = 0
        while self._pending:
            event, payload, enrich = self._pending[0]
            try:
                await self._transmit(event, payload, enrich)
            except TransportError as exc:
                logger.warning(
                    "Drain stopped at %r with %d events queued: %s",
                    event,
                    len(self._pending),
                    exc,
                )
                return False
            self._pending.popleft()
            drained += 1
        if drained:
            logger.debug("Drained %d queued events", drained)
            channel_queue_drained(self.telemetry, count=drained)
        return True

    async def _give_up(self, retries: int) -> None:
        self._state = ChannelState.DISCONNECTED
        self._reconnect_failed = True
        logger.info(
            "Reconnection failed after %d attempts; %d events stay queued until connect()",
            retries,
            len(self._pending),
        )
        channel_reconnect_failed(self.telemetry, attempts=retries, pending=len(self._pending))
        await self._dispatch(events.RECONNECT_FAILED, {"attempts": retries})

    async def _on_transport_disconnect(self, reason: str) -> None:
        if not self.is_connected:
            # A connect task is running and sees the failure itself.
            return
        self._state = ChannelState.DISCONNECTED
        logger.info("Channel disconnected: %s", reason)
        channel_disconnected(self.telemetry, reason=reason)
        await self._dispatch(events.DISCONNECT, {"reason": reason})
        if self._closed or reason == SERVER_DISCONNECT:
            logger.info("Not reconnecting after %s; call connect() to resume", reason)
            return
        self._connect_task = asyncio.create_task(self._run_connect(reconnecting=True))

    # ── outbound ──────────────────────────────────────────────────

    async def send(
        self, event: str, payload: dict[str, Any] | None = None, *, enrich: bool = True
    ) -> bool:
        """Send now when connected, otherwise queue.  Returns True if sent now.

        With *enrich* the payload gains ``session`` (from the snapshot
        provider) and ``timestamp`` at the moment it is transmitted.
        """
        payload = dict(payload or {})
        if self.is_connected:
            try:
                await self._transmit(event, payload, enrich)
                return True
            except TransportError as exc:
                logger.warning("Send of %r failed, queued for retry: %s", event, exc)
                self._pending.append((event, payload, enrich))
                await self._on_transport_disconnect(TRANSPORT_ERROR)
                return False
        self._pending.append((event, payload, enrich))
        logger.debug("Queued %r (%d pending)", event, len(self._pending))
        return False

    async def start_consultation(
        self,
        behavior_data: dict[str, Any] | None = None,
        *,
        ip_address: str | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        """Emit ``chatStart``.  Never queued.

        Raises:
            ChannelNotConnectedError: If the channel is not connected.
        """
        self.require_connected("start a consultation")
        payload = events.ChatStart(
            ip_address=ip_address,
            user_agent=user_agent,
            timestamp=iso_now(),
            behavior_data=behavior_data,
        ).to_wire()
        try:
            await self.transport.emit(events.CHAT_START, payload)
        except TransportError as exc:
            await self._on_transport_disconnect(TRANSPORT_ERROR)
            raise ChannelNotConnectedError(f"chatStart failed: {exc}") from exc

    def require_connected(self, action: str = "send") -> None:
        if not self.is_connected:
            raise ChannelNotConnectedError(f"Cannot {action}: channel is {self._state.value}")

    async def _transmit(self, event: str, payload: dict[str, Any], enrich: bool) -> None:
        out = dict(payload)
        if enrich:
            snapshot = self._snapshot()
            if snapshot is not None:
                out["session"] = snapshot
            out.setdefault("timestamp", iso_now())
        await self.transport.emit(event, out)

    def _snapshot(self) -> dict[str, Any] | None:
        if self.snapshot_provider is None:
            return None
        try:
            return self.snapshot_provider()
        except Exception:
            logger.exception("Snapshot provider failed; sending without session block")
            return None

    # ── inbound ───────────────────────────────────────────────────

    def on(self, event: str, handler: Handler) -> bool:
        """Register *handler* for *event*.  Returns False if already registered."""
        handlers = self._handlers.setdefault(event, [])
        if handler in handlers:
            logger.debug("Handler already registered for %r", event)
            return False
        handlers.append(handler)
        return True

    def off(self, event: str, handler: Handler | None = None) -> int:
        """Remove one handler, or all handlers for *event*.  Returns the count removed."""
        handlers = self._handlers.get(event)
        if not handlers:
            return 0
        if handler is None:
            removed = len(handlers)
            del self._handlers[event]
            return removed
        if handler in handlers:
            handlers.remove(handler)
            return 1
        return 0

    def register_handlers(self, group: str, handlers: Mapping[str, Handler]) -> bool:
        """Register a named handler set once for the life of the channel."""
        if group in self._groups:
            return False
        for event, handler in handlers.items():
            self.on(event, handler)
        self._groups.add(group)
        return True

    def has_group(self, group: str) -> bool:
        return group in self._groups

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    async def _on_transport_event(self, event: str, payload: Any) -> None:
        await self._dispatch(event, payload)

    async def _dispatch(self, event: str, payload: Any) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %r failed", event)
