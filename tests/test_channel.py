"""Tests for intake_funnel.channel.channel."""

from __future__ import annotations

import asyncio
import random

import pytest

from intake_funnel.channel import events
from intake_funnel.channel.backoff import ReconnectPolicy
from intake_funnel.channel.channel import ChannelState, EventChannel
from intake_funnel.channel.transport import (
    CLIENT_DISCONNECT,
    SERVER_DISCONNECT,
    Transport,
    create_transport,
)
from intake_funnel.channel.transports.memory import InMemoryTransport
from intake_funnel.errors import ChannelNotConnectedError
from intake_funnel.telemetry import (
    CHANNEL_CONNECTED,
    CHANNEL_DISCONNECTED,
    CHANNEL_QUEUE_DRAINED,
    CHANNEL_RECONNECT_FAILED,
    InMemoryTelemetrySink,
)

_NO_JITTER = ReconnectPolicy(jitter=0.0)


class HookTransport(InMemoryTransport):
    """Runs a one-shot coroutine hook right after the next successful emit."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.after_emit = None

    async def emit(self, event, payload):
        await super().emit(event, payload)
        hook, self.after_emit = self.after_emit, None
        if hook is not None:
            await hook(event)


class HangingTransport(InMemoryTransport):
    async def connect(self) -> None:
        self.connect_calls += 1
        await asyncio.sleep(10)


def _channel(transport, recording_sleep, policy=_NO_JITTER, **kwargs) -> EventChannel:
    return EventChannel(transport, policy=policy, sleep=recording_sleep, rng=random.Random(7), **kwargs)


class TestBackoffPolicy:
    def test_doubles_and_caps(self):
        policy = ReconnectPolicy(jitter=0.0)
        assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_jitter_stays_within_bounds(self):
        policy = ReconnectPolicy()
        rng = random.Random(1)
        for attempt in range(1, 8):
            delay = policy.delay_for(attempt, rng)
            assert 0.0 <= delay <= policy.max_delay

    def test_rejects_bad_values(self):
        with pytest.raises(ValueError):
            ReconnectPolicy(jitter=1.5)
        with pytest.raises(ValueError):
            ReconnectPolicy(max_attempts=-1)
        with pytest.raises(ValueError):
            ReconnectPolicy().delay_for(0)


class TestPendingQueue:
    @pytest.mark.asyncio
    async def test_queued_events_drain_fifo_before_new_sends(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        for name in ("E1", "E2", "E3"):
            assert await channel.send(name, {"n": name}) is False
        assert channel.pending_events() == ["E1", "E2", "E3"]

        assert await channel.connect() is True
        assert await channel.send("E4", {}) is True
        assert transport.names() == ["E1", "E2", "E3", "E4"]
        assert channel.pending_count == 0

    @pytest.mark.asyncio
    async def test_send_during_drain_queues_behind(self, recording_sleep):
        transport = HookTransport()
        channel = _channel(transport, recording_sleep)
        for name in ("E1", "E2", "E3"):
            await channel.send(name, {})

        sent_now = []

        async def late_send(_event):
            sent_now.append(await channel.send("LATE", {}))

        transport.after_emit = late_send
        await channel.connect()
        assert sent_now == [False]
        assert transport.names() == ["E1", "E2", "E3", "LATE"]

    @pytest.mark.asyncio
    async def test_failure_mid_drain_keeps_head(self, recording_sleep):
        transport = HookTransport()
        channel = _channel(transport, recording_sleep)
        for name in ("E1", "E2", "E3"):
            await channel.send(name, {})

        async def break_next(_event):
            transport.fail_emits = 1

        transport.after_emit = break_next
        assert await channel.connect() is True
        assert transport.names() == ["E1", "E2", "E3"]
        assert transport.connect_calls == 2
        assert recording_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_enrichment_happens_at_transmission(self, recording_sleep):
        state = {"pages": 1}
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep, snapshot_provider=lambda: dict(state))
        await channel.send("E1", {"n": 1})
        state["pages"] = 5
        await channel.connect()
        payload = transport.payloads("E1")[0]
        assert payload["n"] == 1
        assert payload["session"] == {"pages": 5}
        assert payload["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_enrich_false_sends_payload_as_is(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep, snapshot_provider=lambda: {"x": 1})
        await channel.connect()
        await channel.send("raw", {"a": 1}, enrich=False)
        assert transport.payloads("raw") == [{"a": 1}]

    @pytest.mark.asyncio
    async def test_failing_snapshot_provider_does_not_block_send(self, recording_sleep):
        def broken():
            raise RuntimeError("no session")

        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep, snapshot_provider=broken)
        await channel.connect()
        assert await channel.send("E1", {}) is True
        assert "session" not in transport.payloads("E1")[0]

    @pytest.mark.asyncio
    async def test_failed_send_is_queued_and_retried(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        await channel.connect()
        transport.fail_emits = 1
        assert await channel.send("E1", {}) is False
        assert channel.state is ChannelState.DISCONNECTED
        assert channel.pending_events() == ["E1"]
        assert await channel.wait_for_connection() is True
        assert transport.names() == ["E1"]


class TestReconnect:
    @pytest.mark.asyncio
    async def test_retries_then_connects(self, recording_sleep):
        transport = InMemoryTransport(fail_connects=2)
        channel = _channel(transport, recording_sleep)
        attempts = []
        channel.on(events.RECONNECT_ATTEMPT, attempts.append)
        assert await channel.connect() is True
        assert transport.connect_calls == 3
        assert recording_sleep.delays == [1.0, 2.0]
        assert attempts == [{"attempt": 1}, {"attempt": 2}]

    @pytest.mark.asyncio
    async def test_ceiling_surfaces_terminal_failure(self, recording_sleep):
        sink = InMemoryTelemetrySink()
        transport = InMemoryTransport(fail_connects=100)
        channel = _channel(transport, recording_sleep, telemetry=sink)
        failed = []
        channel.on(events.RECONNECT_FAILED, failed.append)
        await channel.send("E1", {})

        assert await channel.connect() is False
        assert transport.connect_calls == 6
        assert recording_sleep.delays == [1.0, 2.0, 4.0, 5.0, 5.0]
        assert channel.reconnect_failed is True
        assert channel.state is ChannelState.DISCONNECTED
        assert failed == [{"attempts": 5}]
        assert CHANNEL_RECONNECT_FAILED in sink.names()
        assert channel.pending_events() == ["E1"]

    @pytest.mark.asyncio
    async def test_fresh_connect_after_ceiling(self, recording_sleep):
        transport = InMemoryTransport(fail_connects=100)
        channel = _channel(transport, recording_sleep, policy=ReconnectPolicy(max_attempts=1, jitter=0.0))
        await channel.send("E1", {})
        assert await channel.connect() is False
        transport.fail_connects = 0
        assert await channel.connect() is True
        assert channel.reconnect_failed is False
        assert transport.names() == ["E1"]

    @pytest.mark.asyncio
    async def test_connect_timeout_counts_as_failure(self, recording_sleep):
        transport = HangingTransport()
        policy = ReconnectPolicy(max_attempts=0, connect_timeout=0.01)
        channel = _channel(transport, recording_sleep, policy=policy)
        assert await channel.connect() is False
        assert channel.reconnect_failed is True

    @pytest.mark.asyncio
    async def test_transport_drop_reconnects_automatically(self, recording_sleep):
        sink = InMemoryTelemetrySink()
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep, telemetry=sink)
        reconnects = []
        channel.on(events.RECONNECT, reconnects.append)
        await channel.connect()

        await transport.drop()
        assert channel.state is not ChannelState.CONNECTED
        await channel.send("while-down", {})
        assert await channel.wait_for_connection() is True
        assert transport.names() == ["while-down"]
        assert reconnects == [{"attempts": 1}]
        assert sink.names().count(CHANNEL_CONNECTED) == 2
        assert CHANNEL_DISCONNECTED in sink.names()
        assert CHANNEL_QUEUE_DRAINED in sink.names()

    @pytest.mark.asyncio
    async def test_server_disconnect_is_not_retried(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        reasons = []
        channel.on(events.DISCONNECT, reasons.append)
        await channel.connect()

        await transport.drop(SERVER_DISCONNECT)
        assert await channel.wait_for_connection() is False
        assert transport.connect_calls == 1
        assert reasons == [{"reason": SERVER_DISCONNECT}]

    @pytest.mark.asyncio
    async def test_explicit_disconnect_is_not_retried(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        reasons = []
        channel.on(events.DISCONNECT, reasons.append)
        await channel.connect()

        await channel.disconnect()
        assert channel.state is ChannelState.DISCONNECTED
        assert reasons == [{"reason": CLIENT_DISCONNECT}]
        assert await channel.send("E1", {}) is False
        assert transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_disconnect_cancels_pending_reconnect(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        await channel.connect()
        await transport.drop()
        await channel.disconnect()
        assert await channel.wait_for_connection() is False
        assert transport.connect_calls == 1


class TestConsultationStart:
    @pytest.mark.asyncio
    async def test_raises_when_disconnected_and_is_not_queued(self, recording_sleep):
        channel = _channel(InMemoryTransport(), recording_sleep)
        with pytest.raises(ChannelNotConnectedError):
            await channel.start_consultation({"sessionId": "s"})
        assert channel.pending_count == 0

    @pytest.mark.asyncio
    async def test_emits_chat_start(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        await channel.connect()
        await channel.start_consultation(
            {"sessionId": "s", "pagesVisited": 2, "topDepartments": ["Cardiology"]},
            ip_address="10.0.0.1",
        )
        payload = transport.payloads(events.CHAT_START)[0]
        assert payload["ip_address"] == "10.0.0.1"
        assert payload["user_agent"]
        assert payload["behaviorData"]["sessionId"] == "s"
        assert payload["behaviorData"]["topDepartments"] == ["Cardiology"]

    @pytest.mark.asyncio
    async def test_unknown_fields_are_sent_as_null(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        await channel.connect()
        await channel.start_consultation(None)
        payload = transport.payloads(events.CHAT_START)[0]
        assert set(payload) == {"ip_address", "user_agent", "timestamp", "behaviorData"}
        assert payload["ip_address"] is None
        assert payload["behaviorData"] is None


class TestHandlers:
    @pytest.mark.asyncio
    async def test_duplicate_registration_is_noop(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        seen = []
        assert channel.on(events.BOT_MESSAGE, seen.append) is True
        assert channel.on(events.BOT_MESSAGE, seen.append) is False
        await transport.deliver(events.BOT_MESSAGE, {"message": "hi"})
        assert seen == [{"message": "hi"}]

    def test_group_registered_once(self, recording_sleep):
        channel = _channel(InMemoryTransport(), recording_sleep)
        seen = []
        assert channel.register_handlers("ui", {events.ERROR: seen.append}) is True
        assert channel.register_handlers("ui", {events.ERROR: lambda p: None}) is False
        assert channel.has_group("ui")
        assert channel.handler_count(events.ERROR) == 1

    def test_off(self, recording_sleep):
        channel = _channel(InMemoryTransport(), recording_sleep)
        a, b = [], []
        channel.on("x", a.append)
        channel.on("x", b.append)
        assert channel.off("x", a.append) == 1
        assert channel.handler_count("x") == 1
        assert channel.off("x") == 1
        assert channel.off("x") == 0

    @pytest.mark.asyncio
    async def test_async_and_failing_handlers(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        seen = []

        def broken(payload):
            raise RuntimeError("handler failure")

        async def record(payload):
            seen.append(payload)

        channel.on(events.CHAT_ENDED, broken)
        channel.on(events.CHAT_ENDED, record)
        await transport.deliver(events.CHAT_ENDED, {"message": "bye"})
        assert seen == [{"message": "bye"}]

    @pytest.mark.asyncio
    async def test_connect_dispatched_after_drain(self, recording_sleep):
        transport = InMemoryTransport()
        channel = _channel(transport, recording_sleep)
        seen_at_connect = []
        channel.on(events.CONNECT, lambda _p: seen_at_connect.append(list(transport.names())))
        await channel.send("E1", {})
        await channel.connect()
        assert seen_at_connect == [["E1"]]


class TestTransportFactory:
    def test_memory(self):
        transport = create_transport("memory")
        assert isinstance(transport, InMemoryTransport)
        assert isinstance(transport, Transport)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown transport"):
            create_transport("carrier-pigeon")
