"""Consultation flow on top of an :class:`EventChannel`.

``start`` opens a chat with the visitor's intent summary attached; the
server answers ``chatStarted`` with its own session id, after which
messages can flow until either side ends the chat.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from intake_funnel.channel import events
from intake_funnel.channel.channel import DEFAULT_USER_AGENT, EventChannel
from intake_funnel.clock import iso_now
from intake_funnel.errors import ConsultationError

logger = logging.getLogger(__name__)

HANDLER_GROUP = "consultation"


@dataclass
class TranscriptEntry:
    role: str
    content: str
    timestamp: str = field(default_factory=iso_now)


class ConsultationSession:
    """One visitor's chat with the intake assistant.

    ``summary_provider`` returns the intent summary sent as
    ``behaviorData`` with ``chatStart``.
    """

    def __init__(
        self,
        channel: EventChannel,
        *,
        summary_provider: Callable[[], dict[str, Any] | None] | None = None,
        ip_address: str | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.channel = channel
        self.summary_provider = summary_provider
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.server_session_id: str | None = None
        self.transcript: list[TranscriptEntry] = []
        self.patient_complete = False
        self.ended = False
        self.last_error: str | None = None
        self._listeners: list[Callable[[str, Any], Any]] = []

        channel.register_handlers(
            HANDLER_GROUP,
            {
                events.CHAT_STARTED: self._on_chat_started,
                events.BOT_MESSAGE: self._on_bot_message,
                events.PATIENT_PROCESSED: self._on_patient_processed,
                events.CHAT_ENDED: self._on_chat_ended,
                events.ERROR: self._on_error,
            },
        )

    @property
    def active(self) -> bool:
        return self.server_session_id is not None and not self.ended

    def add_listener(self, listener: Callable[[str, Any], Any]) -> None:
        """Called with ``(event, parsed_model)`` for every inbound event."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    async def start(self) -> None:
        """Send ``chatStart``.  Requires a connected channel."""
        summary = self.summary_provider() if self.summary_provider else None
        self.server_session_id = None
        self.ended = False
        self.patient_complete = False
        await self.channel.start_consultation(
            summary, ip_address=self.ip_address, user_agent=self.user_agent
        )
        logger.info("Consultation requested")

    async def send_message(self, text: str) -> bool:
        """Send a visitor message.  Returns True if sent now, False if queued."""
        text = text.strip()
        if not text:
            raise ValueError("message must not be empty")
        if self.server_session_id is None:
            raise ConsultationError("No consultation in progress; wait for chatStarted")
        if self.ended:
            raise ConsultationError("Consultation has ended")
        self.transcript.append(TranscriptEntry("user", text))
        payload = events.UserMessage(
            session_id=self.server_session_id, message=text, timestamp=iso_now()
        ).to_wire()
        return await self.channel.send(events.USER_MESSAGE, payload, enrich=False)

    async def end(self, reason: str = "user_ended") -> bool:
        if self.server_session_id is None:
            raise ConsultationError("No consultation in progress")
        payload = events.ChatEnd(
            session_id=self.server_session_id, reason=reason, timestamp=iso_now()
        ).to_wire()
        self.ended = True
        return await self.channel.send(events.CHAT_END, payload, enrich=False)

    # ── inbound handlers ──────────────────────────────────────────

    async def _notify(self, event: str, model: Any) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event, model)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Consultation listener failed for %r", event)

    async def _on_chat_started(self, payload: Any) -> None:
        model = events.parse_inbound(events.CHAT_STARTED, payload)
        if model is None:
            logger.warning("Ignoring malformed chatStarted payload")
            return
        self.server_session_id = model.session_id
        if model.message:
            self.transcript.append(TranscriptEntry("assistant", model.message))
        logger.info("Consultation started: %s", model.session_id)
        await self._notify(events.CHAT_STARTED, model)

    async def _on_bot_message(self, payload: Any) -> None:
        model = events.parse_inbound(events.BOT_MESSAGE, payload)
        if model is None:
            logger.warning("Ignoring malformed botMessage payload")
            return
        self.transcript.append(TranscriptEntry("assistant", model.message))
        if model.is_patient_complete:
            self.patient_complete = True
        await self._notify(events.BOT_MESSAGE, model)

    async def _on_patient_processed(self, payload: Any) -> None:
        model = events.parse_inbound(events.PATIENT_PROCESSED, payload)
        self.patient_complete = True
        await self._notify(events.PATIENT_PROCESSED, model)

    async def _on_chat_ended(self, payload: Any) -> None:
        model = events.parse_inbound(events.CHAT_ENDED, payload)
        self.ended = True
        logger.info("Consultation %s ended by server", self.server_session_id)
        await self._notify(events.CHAT_ENDED, model)

    async def _on_error(self, payload: Any) -> None:
        model = events.parse_inbound(events.ERROR, payload)
        self.last_error = model.message if model is not None else "Unknown error"
        logger.warning("Server error during consultation: %s", self.last_error)
        await self._notify(events.ERROR, model)
