"""Structured telemetry for channel lifecycle and routing decisions.

Components never build events by hand; they call the helper for the
event they report (``channel_connected``, ``routing_resolved``, ...), so
every event of a given name carries the same attribute keys.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

CHANNEL_CONNECTED = "channel.connected"
CHANNEL_DISCONNECTED = "channel.disconnected"
CHANNEL_RECONNECT_FAILED = "channel.reconnect_failed"
CHANNEL_QUEUE_DRAINED = "channel.queue_drained"
ROUTING_RESOLVED = "routing.resolved"


@dataclass
class TelemetryEvent:
    name: str
    attributes: dict[str, Any] = field(default_factory=dict)
    timestamp_ms: float = field(default_factory=lambda: time.time() * 1000)

    def describe(self) -> str:
        """``name key=value ...`` with keys in insertion order."""
        parts = [self.name] + [f"{k}={v}" for k, v in self.attributes.items()]
        return " ".join(parts)


@runtime_checkable
class TelemetrySink(Protocol):
    def emit(self, event: TelemetryEvent) -> None: ...


class NoOpTelemetrySink:
    def emit(self, event: TelemetryEvent) -> None:
        _ = event


class InMemoryTelemetrySink:
    """Keeps events in a list so tests can assert on them."""

    def __init__(self) -> None:
        self.events: list[TelemetryEvent] = []

    def emit(self, event: TelemetryEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def attributes(self, name: str) -> list[dict[str, Any]]:
        """Attributes of every event called *name*, oldest first."""
        return [e.attributes for e in self.events if e.name == name]


class LoggerTelemetrySink:
    """Logs one line per event, attributes also attached in ``extra``.

    Routing decisions other than a direct match (over capacity, nobody
    found) are logged at WARNING; everything else at INFO.
    """

    def __init__(self, logger_name: str = "intake_funnel.telemetry") -> None:
        self.logger = logging.getLogger(logger_name)

    def emit(self, event: TelemetryEvent) -> None:
        level = logging.INFO
        if event.name == ROUTING_RESOLVED and event.attributes.get("reason") != "matched":
            level = logging.WARNING
        self.logger.log(
            level,
            "telemetry_event %s",
            event.describe(),
            extra={
                "event_name": event.name,
                "event_timestamp_ms": event.timestamp_ms,
                "event_attributes": event.attributes,
            },
        )


def _emit(sink: TelemetrySink, name: str, **attributes: Any) -> None:
    # Sink failures are logged, never raised.
    try:
        sink.emit(TelemetryEvent(name=name, attributes=attributes))
    except Exception:
        logger.exception("Telemetry sink failed for %s", name)


# ── channel lifecycle ─────────────────────────────────────────────


def channel_connected(sink: TelemetrySink, *, retries: int) -> None:
    _emit(sink, CHANNEL_CONNECTED, retries=retries)


def channel_disconnected(sink: TelemetrySink, *, reason: str) -> None:
    _emit(sink, CHANNEL_DISCONNECTED, reason=reason)


def channel_queue_drained(sink: TelemetrySink, *, count: int) -> None:
    """Queued events flushed after a (re)connect."""
    _emit(sink, CHANNEL_QUEUE_DRAINED, count=count)


def channel_reconnect_failed(sink: TelemetrySink, *, attempts: int, pending: int) -> None:
    """Retries exhausted; *pending* events stay queued until ``connect()``."""
    _emit(sink, CHANNEL_RECONNECT_FAILED, attempts=attempts, pending=pending)


# ── routing ───────────────────────────────────────────────────────


def routing_resolved(
    sink: TelemetrySink,
    *,
    specialization: str | None,
    staff_id: str | None,
    reason: str,
) -> None:
    """One routing decision.  *staff_id* is None when nobody was found."""
    _emit(
        sink,
        ROUTING_RESOLVED,
        specialization=specialization,
        staff_id=staff_id,
        reason=reason,
    )
