"""Transport channel: event catalog, transports, reconnecting channel, consultations."""

from intake_funnel.channel.backoff import NO_RETRY, ReconnectPolicy
from intake_funnel.channel import events
from intake_funnel.channel.transport import (
    SERVER_DISCONNECT,
    Transport,
    create_transport,
)
from intake_funnel.channel.channel import ChannelState, EventChannel
from intake_funnel.channel.consultation import ConsultationSession, TranscriptEntry

__all__ = [
    "NO_RETRY",
    "SERVER_DISCONNECT",
    "ChannelState",
    "ConsultationSession",
    "EventChannel",
    "ReconnectPolicy",
    "TranscriptEntry",
    "Transport",
    "create_transport",
    "events",
]
