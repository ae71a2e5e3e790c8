"""Session store: one engagement session with lifecycle rules.

The store owns exactly one :class:`Session` at a time.  It resumes a
persisted snapshot while the session is younger than the TTL, replaces it
otherwise, and writes the full snapshot back after every mutation.
"""

from __future__ import annotations

import logging

from intake_funnel.clock import Clock, epoch_ms
from intake_funnel.config import SESSION_TTL_SECONDS, IntakeConfig
from intake_funnel.session.ids import generate_session_id
from intake_funnel.session.models import Click, PageVisit, Session, new_session
from intake_funnel.session.storage import InMemorySessionStorage, SessionStorage

logger = logging.getLogger(__name__)

SCROLL_QUANTILE = 25


def crossed_scroll_quantile(old_depth: int, new_depth: int) -> bool:
    """True when *new_depth* lands in a higher 25% band than *old_depth*."""
    return new_depth // SCROLL_QUANTILE > old_depth // SCROLL_QUANTILE


class SessionStore:
    """Load, mutate, and persist a single engagement session.

    Parameters
    ----------
    storage:
        Key/value backend for the snapshot.  Defaults to in-memory.
    key:
        Storage key of the snapshot.
    ttl_ms:
        Sessions whose age (``now - start_time``) reaches this are replaced.
    topic_page_type:
        Page type whose views increment ``department_interest``.
    topic_names:
        Topic id to display name, used for topic page labels.
    clock:
        Returns the current epoch ms; injectable for tests.
    """

    def __init__(
        self,
        storage: SessionStorage | None = None,
        *,
        key: str = "mediflow_session",
        ttl_ms: int = SESSION_TTL_SECONDS * 1000,
        topic_page_type: str = "department",
        topic_names: dict[str, str] | None = None,
        clock: Clock = epoch_ms,
        fingerprint: str | None = None,
    ) -> None:
        self._storage = storage if storage is not None else InMemorySessionStorage()
        self._key = key
        self._ttl_ms = ttl_ms
        self._topic_page_type = topic_page_type
        self._topic_names = dict(topic_names or {})
        self._clock = clock
        self._fingerprint = fingerprint
        self._session: Session | None = None
        self._current: PageVisit | None = None
        self.resumed = False

    @classmethod
    def from_config(
        cls,
        config: IntakeConfig,
        storage: SessionStorage | None = None,
        *,
        clock: Clock = epoch_ms,
    ) -> SessionStore:
        return cls(
            storage,
            key=config.storage_key,
            ttl_ms=config.session_ttl_ms,
            topic_page_type=config.topic_page_type,
            topic_names=config.topic_names,
            clock=clock,
        )

    # ── state ─────────────────────────────────────────────────────

    @property
    def session(self) -> Session:
        if self._session is None:
            return self.load_or_create()
        return self._session

    @property
    def current_visit(self) -> PageVisit | None:
        return self._current

    @property
    def topic_page_type(self) -> str:
        return self._topic_page_type

    @property
    def topic_names(self) -> dict[str, str]:
        return dict(self._topic_names)

    def now(self) -> int:
        return self._clock()

    def topic_name(self, topic_id: str) -> str:
        return self._topic_names.get(topic_id, topic_id)

    # ── lifecycle ─────────────────────────────────────────────────

    def _read_persisted(self) -> Session | None:
        try:
            raw = self._storage.read(self._key)
        except Exception:
            logger.warning("Session storage read failed; starting fresh", exc_info=True)
            return None
        if not raw:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValueError:
            logger.warning("Discarding unparsable session snapshot under %r", self._key)
            return None

    def load_or_create(self) -> Session:
        """Resume the persisted session if it is still fresh, else start a new one."""
        now = self._clock()
        stored = self._read_persisted()
        self._current = None
        if stored is not None and not stored.is_expired(now, self._ttl_ms):
            logger.info("Resuming session %s", stored.session_id)
            self._session = stored
            self.resumed = True
            return stored

        if stored is not None:
            logger.info("Session %s expired, creating a new one", stored.session_id)
            self._storage.delete(self._key)

        session = new_session(generate_session_id(now, self._fingerprint), now)
        self._session = session
        self.resumed = False
        self.save()
        logger.info("New session created: %s", session.session_id)
        return session

    def save(self) -> None:
        """Persist the full snapshot and refresh ``last_activity``."""
        session = self.session
        session.last_activity = max(session.last_activity, self._clock())
        self._storage.write(self._key, session.model_dump_json(by_alias=True))

    def clear(self) -> Session:
        """Drop the persisted snapshot and start a fresh session."""
        logger.info("Clearing session %s", self._session.session_id if self._session else "-")
        self._storage.delete(self._key)
        self._session = None
        return self.load_or_create()

    # ── mutations ─────────────────────────────────────────────────

    def record_page_view(
        self,
        page_id: str,
        page_type: str = "general",
        display_name: str | None = None,
    ) -> PageVisit:
        """Append a visit and make it current.  Topic pages count as interest."""
        session = self.session
        is_topic = page_type == self._topic_page_type
        if display_name is None:
            display_name = self.topic_name(page_id) if is_topic else page_id

        visit = PageVisit(
            page_id=page_id,
            display_name=display_name,
            type=page_type,
            entry_time=self._clock(),
        )
        session.pages.append(visit)
        self._current = visit

        if is_topic:
            interest = dict(session.department_interest)
            interest[page_id] = interest.get(page_id, 0) + 1
            session.department_interest = interest

        self.save()
        return visit

    def close_current_page_view(self) -> PageVisit | None:
        """Close the open visit and account its time.  No-op without one."""
        visit = self._current
        if visit is None or not visit.is_open:
            return None
        spent = visit.close(self._clock())
        self.session.total_time_spent += spent
        self.save()
        return visit

    def record_scroll(self, percentage: float) -> bool:
        """Raise the current visit's max scroll depth.

        Returns True only when the visit crosses a 25% boundary; the stored
        maximum is updated either way.
        """
        visit = self._current
        if visit is None:
            return False
        pct = max(0, min(100, int(percentage + 0.5)))
        old = visit.scroll_depth
        visit.scroll_depth = max(old, pct)

        session = self.session
        depths = dict(session.scroll_depth)
        depths[visit.page_id] = max(depths.get(visit.page_id, 0), visit.scroll_depth)
        session.scroll_depth = depths

        self.save()
        return crossed_scroll_quantile(old, pct)

    def record_click(self, element: str, label: str) -> Click:
        click = Click(element=element, label=label, timestamp=self._clock())
        self.session.clicks.append(click)
        if self._current is not None:
            self._current.interactions += 1
        self.save()
        return click
