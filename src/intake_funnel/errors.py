"""Exception hierarchy shared by the session, channel, and routing layers."""

from __future__ import annotations


class IntakeError(Exception):
    """Base class for intake funnel errors."""


class TransportError(IntakeError):
    """A transport failed to connect or to emit an event.

    Raised by transports and handled by :class:`EventChannel`; callers of the
    channel never see it directly.
    """


class ChannelNotConnectedError(IntakeError):
    """An operation that must not be queued was attempted while disconnected."""


class ConsultationError(IntakeError):
    """A consultation operation was called out of protocol order."""


class StaffNotFoundError(IntakeError, KeyError):
    """A directory mutation referenced an unknown staff id."""

    def __init__(self, staff_id: str) -> None:
        super().__init__(staff_id)
        self.staff_id = staff_id

    def __str__(self) -> str:
        return f"Unknown staff member: {self.staff_id!r}"


class RosterError(IntakeError, ValueError):
    """A staff roster file could not be parsed into staff members."""
