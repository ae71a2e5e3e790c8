"""Channel event catalog: names and payload models for both directions.

Payloads are camelCase on the wire except ``ip_address`` and
``user_agent`` on ``chatStart``, which the server reads in snake_case.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Outbound
CHAT_START = "chatStart"
USER_MESSAGE = "userMessage"
CHAT_END = "chatEnd"
BEHAVIOR_UPDATE = "behaviorUpdate"

# Inbound
CHAT_STARTED = "chatStarted"
BOT_MESSAGE = "botMessage"
PATIENT_PROCESSED = "patientProcessed"
CHAT_ENDED = "chatEnded"
ERROR = "error"

# Local lifecycle events, dispatched by the channel itself
CONNECT = "connect"
DISCONNECT = "disconnect"
RECONNECT_ATTEMPT = "reconnect_attempt"
RECONNECT = "reconnect"
RECONNECT_FAILED = "reconnect_failed"

LIFECYCLE_EVENTS = frozenset({CONNECT, DISCONNECT, RECONNECT_ATTEMPT, RECONNECT, RECONNECT_FAILED})


class BehaviorEvent(str, Enum):
    SESSION_STARTED = "session_started"
    PAGE_VIEW = "page_view"
    PAGE_EXIT = "page_exit"
    SCROLL = "scroll"
    CLICK = "click"
    HEARTBEAT = "heartbeat"
    SESSION_ENDED = "session_ended"


class _EventModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class SessionSnapshot(_EventModel):
    session_id: str
    pages_visited: int = 0
    departments_viewed: list[str] = Field(default_factory=list)
    total_time_spent: int = 0
    behavior_score: int = 0
    engagement_level: str = "none"


class IntentSummary(SessionSnapshot):
    top_departments: list[str] = Field(default_factory=list)


class ChatStart(_EventModel):
    ip_address: str | None = Field(default=None, alias="ip_address")
    user_agent: str = Field(default="", alias="user_agent")
    timestamp: str
    behavior_data: IntentSummary | None = None

    def to_wire(self) -> dict[str, Any]:
        # The server reads every field; unknowns go out as null.
        return self.model_dump(by_alias=True, mode="json")


class UserMessage(_EventModel):
    session_id: str
    message: str
    timestamp: str


class ChatEnd(_EventModel):
    session_id: str
    reason: str = "user_ended"
    timestamp: str


class BehaviorUpdate(_EventModel):
    event: BehaviorEvent
    data: dict[str, Any] = Field(default_factory=dict)
    session: SessionSnapshot | None = None
    timestamp: str | None = None


class ChatStarted(_EventModel):
    session_id: str
    message: str = ""


class BotMessage(_EventModel):
    message: str
    is_patient_complete: bool = False


class PatientProcessed(_EventModel):
    message: str = ""


class ChatEnded(_EventModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    message: str = ""


class ErrorEvent(_EventModel):
    message: str = "Unknown error"


INBOUND_MODELS: dict[str, type[_EventModel]] = {
    CHAT_STARTED: ChatStarted,
    BOT_MESSAGE: BotMessage,
    PATIENT_PROCESSED: PatientProcessed,
    CHAT_ENDED: ChatEnded,
    ERROR: ErrorEvent,
}


def parse_inbound(event: str, payload: Any) -> _EventModel | None:
    """Validate an inbound payload; unknown events and bad payloads give None."""
    model = INBOUND_MODELS.get(event)
    if model is None:
        return None
    try:
        return model.model_validate(payload if isinstance(payload, dict) else {})
    except ValueError:
        return None
