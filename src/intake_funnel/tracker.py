"""Behavior tracker: the client-side recorder feeding the event channel.

A tracker owns one :class:`SessionStore` and is meant to live for the
whole visitor process: build it, call :meth:`BehaviorTracker.init` once,
then wire the channel with :meth:`attach_channel`.  Every mutation is
persisted first and then reported as a ``behaviorUpdate`` event, so the
remote side sees the same history the store holds.

Events produced before a channel is attached are kept in order and handed
to the channel on attach, where they join its pending queue.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from intake_funnel.channel import events
from intake_funnel.channel.channel import EventChannel
from intake_funnel.clock import Clock, epoch_ms
from intake_funnel.config import IntakeConfig
from intake_funnel.engagement.scoring import (
    DEFAULT_SCORING,
    EngagementScoringConfig,
    behavior_score,
    intent_summary,
    round_half_up,
    session_snapshot,
)
from intake_funnel.session.models import Session
from intake_funnel.session.storage import SessionStorage
from intake_funnel.session.store import SessionStore

logger = logging.getLogger(__name__)


def scroll_percentage(scroll_top: float, viewport_height: float, document_height: float) -> int:
    """Share of the document seen so far, as a whole percentage."""
    if document_height <= 0:
        return 0
    return round_half_up((scroll_top + viewport_height) / document_height * 100)


class BehaviorTracker:
    def __init__(
        self,
        store: SessionStore,
        *,
        scoring: EngagementScoringConfig = DEFAULT_SCORING,
        heartbeat_seconds: float = 30.0,
    ) -> None:
        self.store = store
        self.scoring = scoring
        self.heartbeat_seconds = heartbeat_seconds
        self.channel: EventChannel | None = None
        self._backlog: list[tuple[str, dict[str, Any]]] = []
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._initialized = False

    @classmethod
    def from_config(
        cls,
        config: IntakeConfig,
        storage: SessionStorage | None = None,
        *,
        clock: Clock = epoch_ms,
        scoring: EngagementScoringConfig = DEFAULT_SCORING,
    ) -> BehaviorTracker:
        store = SessionStore.from_config(config, storage, clock=clock)
        return cls(store, scoring=scoring, heartbeat_seconds=config.heartbeat_seconds)

    @property
    def session(self) -> Session:
        return self.store.session

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init(self) -> Session:
        """Load or create the session and announce it.  Later calls are no-ops."""
        if self._initialized:
            return self.store.session
        session = self.store.load_or_create()
        self._initialized = True
        await self._report(
            events.BehaviorEvent.SESSION_STARTED,
            {"sessionId": session.session_id, "resumed": self.store.resumed},
        )
        return session

    async def attach_channel(self, channel: EventChannel) -> None:
        """Wire the outbound channel and hand it anything recorded so far."""
        self.channel = channel
        channel.snapshot_provider = self.snapshot
        backlog, self._backlog = self._backlog, []
        for name, payload in backlog:
            await channel.send(name, payload)

    # ── snapshots ─────────────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        """The ``session`` block attached to outbound events."""
        return session_snapshot(
            self.store.session, self.store.now(), self.store.topic_names, self.scoring
        )

    def intent_summary(self) -> dict[str, Any]:
        """Summary sent as ``behaviorData`` when a consultation starts."""
        return intent_summary(
            self.store.session, self.store.now(), self.store.topic_names, self.scoring
        )

    def score(self) -> int:
        return behavior_score(self.store.session, self.store.now(), self.scoring)

    # ── tracking ──────────────────────────────────────────────────

    async def track_page_view(self, page_id: str, page_type: str = "general") -> None:
        visit = self.store.record_page_view(page_id, page_type)
        logger.debug("Page view: %s (%s)", visit.display_name, page_type)
        await self._report(
            events.BehaviorEvent.PAGE_VIEW,
            {
                "page": visit.display_name,
                "type": page_type,
                "isDepartmentPage": page_type == self.store.topic_page_type,
            },
        )

    async def track_page_exit(self) -> None:
        visit = self.store.close_current_page_view()
        if visit is None:
            return
        await self._report(
            events.BehaviorEvent.PAGE_EXIT,
            {
                "page": visit.display_name,
                "timeSpent": round_half_up(visit.time_spent / 1000),
                "scrollDepth": visit.scroll_depth,
            },
        )

    async def track_scroll(self, percentage: float) -> bool:
        """Record scroll depth; reports only when a 25% boundary is crossed."""
        visit = self.store.current_visit
        if not self.store.record_scroll(percentage):
            return False
        await self._report(
            events.BehaviorEvent.SCROLL,
            {"page": visit.display_name if visit else None, "depth": visit.scroll_depth if visit else 0},
        )
        return True

    async def track_click(self, element: str, label: str) -> None:
        self.store.record_click(element, label)
        visit = self.store.current_visit
        await self._report(
            events.BehaviorEvent.CLICK,
            {"element": element, "label": label, "page": visit.display_name if visit else None},
        )

    async def heartbeat(self) -> bool:
        """Send a heartbeat if connected and a page is open.  Never queued."""
        visit = self.store.current_visit
        if self.channel is None or not self.channel.is_connected:
            return False
        if visit is None or not visit.is_open:
            return False
        await self._report(
            events.BehaviorEvent.HEARTBEAT,
            {
                "currentPage": visit.display_name,
                "timeOnPage": round_half_up((self.store.now() - visit.entry_time) / 1000),
            },
        )
        return True

    def start_heartbeat(self, interval: float | None = None) -> asyncio.Task[None]:
        if self._heartbeat_task is not None and not self._heartbeat_task.done():
            return self._heartbeat_task
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(interval if interval is not None else self.heartbeat_seconds)
        )
        return self._heartbeat_task

    async def stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _heartbeat_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.heartbeat()
            except Exception:
                logger.exception("Heartbeat failed")

    async def end_session(self) -> int:
        """Close the open visit and report the session totals.  Returns the final score."""
        await self.stop_heartbeat()
        await self.track_page_exit()
        session = self.store.session
        final_score = self.score()
        await self._report(
            events.BehaviorEvent.SESSION_ENDED,
            {
                "totalPages": session.page_count,
                "totalTimeSpent": round_half_up(session.total_time_spent / 1000),
                "finalScore": final_score,
            },
        )
        logger.info("Session %s ended with score %d", session.session_id, final_score)
        return final_score

    async def clear_session(self) -> Session:
        """Discard the session and start (and announce) a fresh one."""
        session = self.store.clear()
        await self._report(
            events.BehaviorEvent.SESSION_STARTED,
            {"sessionId": session.session_id, "resumed": False},
        )
        return session

    async def _report(self, event: events.BehaviorEvent, data: dict[str, Any]) -> None:
        payload = events.BehaviorUpdate(event=event, data=data).to_wire()
        if self.channel is None:
            self._backlog.append((events.BEHAVIOR_UPDATE, payload))
            return
        await self.channel.send(events.BEHAVIOR_UPDATE, payload)
