"""Engagement session: data model, id generation, storage, and lifecycle."""

from intake_funnel.session.ids import generate_session_id
from intake_funnel.session.models import Click, PageVisit, Session, new_session
from intake_funnel.session.storage import (
    InMemorySessionStorage,
    JsonFileSessionStorage,
    SessionStorage,
    SqliteSessionStorage,
)
from intake_funnel.session.store import SessionStore, crossed_scroll_quantile

__all__ = [
    "Click",
    "InMemorySessionStorage",
    "JsonFileSessionStorage",
    "PageVisit",
    "Session",
    "SessionStorage",
    "SessionStore",
    "SqliteSessionStorage",
    "crossed_scroll_quantile",
    "generate_session_id",
    "new_session",
]
