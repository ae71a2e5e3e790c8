"""Behavior monitor: the receiving side of ``behaviorUpdate`` events.

Keeps one :class:`ActiveSession` per visitor session, keyed by the
connection that carries it, and runs every update through an
:class:`AlertDetector` so rising engagement and high-value page views
surface as lead alerts.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from intake_funnel.channel.events import BehaviorEvent, BehaviorUpdate
from intake_funnel.clock import Clock, epoch_ms
from intake_funnel.config import IntakeConfig
from intake_funnel.engagement.alerts import AlertConfig, AlertDetector

logger = logging.getLogger(__name__)


@dataclass
class ActiveSession:
    session_id: str
    connection_id: str
    started_at: int
    last_seen: int
    last_event: str = ""
    event_count: int = 0
    score: int = 0
    level: str = "none"
    departments: list[str] = field(default_factory=list)
    pages_visited: int = 0


class BehaviorMonitor:
    def __init__(
        self,
        *,
        detector: AlertDetector | None = None,
        high_value_threshold: int = 70,
        alert_history: int = 200,
        clock: Clock = epoch_ms,
    ) -> None:
        self.detector = detector or AlertDetector(AlertConfig(high_value_threshold=high_value_threshold))
        self._clock = clock
        self._sessions: dict[str, ActiveSession] = {}
        self._connections: dict[str, set[str]] = {}
        self._alerts: deque[dict[str, Any]] = deque(maxlen=alert_history)

    @classmethod
    def from_config(cls, config: IntakeConfig, *, clock: Clock = epoch_ms) -> BehaviorMonitor:
        return cls(high_value_threshold=config.high_value_threshold, clock=clock)

    @property
    def alerts(self) -> list[dict[str, Any]]:
        return list(self._alerts)

    def active_sessions(self) -> list[ActiveSession]:
        return list(self._sessions.values())

    def get(self, session_id: str) -> ActiveSession | None:
        return self._sessions.get(session_id)

    def handle_update(self, connection_id: str, payload: Any) -> dict[str, Any] | None:
        """Apply one ``behaviorUpdate``.  Returns the alert it raised, if any."""
        try:
            update = BehaviorUpdate.model_validate(payload if isinstance(payload, dict) else {})
        except ValidationError as exc:
            logger.warning("Dropping malformed behaviorUpdate from %s: %s", connection_id, exc)
            return None

        now = self._clock()
        snapshot = update.session
        session_id = snapshot.session_id if snapshot is not None else connection_id
        active = self._sessions.get(session_id)
        if active is None:
            active = ActiveSession(
                session_id=session_id,
                connection_id=connection_id,
                started_at=now,
                last_seen=now,
            )
            self._sessions[session_id] = active
            self._connections.setdefault(connection_id, set()).add(session_id)

        old_level = active.level
        active.last_seen = now
        active.last_event = update.event.value
        active.event_count += 1
        if snapshot is not None:
            active.score = snapshot.behavior_score
            active.level = snapshot.engagement_level
            active.departments = list(snapshot.departments_viewed)
            active.pages_visited = snapshot.pages_visited

        self._log_event(active, update)

        alert = self.detector.check(
            session_id=session_id,
            score=active.score,
            old_level=old_level,
            new_level=active.level,
            event=update.event.value,
            departments=active.departments,
        )
        if alert is not None:
            self._alerts.append(alert)
            logger.info(
                "Lead alert %s for session %s (score %d)",
                alert["alert_type"],
                session_id,
                active.score,
            )

        if update.event is BehaviorEvent.SESSION_ENDED:
            self._remove(session_id)
        return alert

    def connection_closed(self, connection_id: str) -> list[str]:
        """Forget every session carried by *connection_id*.  Returns their ids."""
        session_ids = sorted(self._connections.pop(connection_id, set()))
        for session_id in session_ids:
            self._sessions.pop(session_id, None)
        if session_ids:
            logger.info("Connection %s closed, dropped %d sessions", connection_id, len(session_ids))
        return session_ids

    def _remove(self, session_id: str) -> None:
        active = self._sessions.pop(session_id, None)
        if active is None:
            return
        carried = self._connections.get(active.connection_id)
        if carried is not None:
            carried.discard(session_id)
            if not carried:
                del self._connections[active.connection_id]

    def _log_event(self, active: ActiveSession, update: BehaviorUpdate) -> None:
        data = update.data
        event = update.event
        if event is BehaviorEvent.SESSION_STARTED:
            logger.info("Session started: %s", active.session_id)
        elif event is BehaviorEvent.PAGE_VIEW:
            logger.info("Page view %s: %s (score %d)", active.session_id, data.get("page"), active.score)
        elif event is BehaviorEvent.PAGE_EXIT:
            logger.info("Page exit %s: %s after %ss", active.session_id, data.get("page"), data.get("timeSpent"))
        elif event is BehaviorEvent.SCROLL:
            logger.debug("Scroll %s: %s%%", active.session_id, data.get("depth"))
        elif event is BehaviorEvent.CLICK:
            logger.info("Click %s: %s", active.session_id, data.get("label"))
        elif event is BehaviorEvent.HEARTBEAT:
            logger.debug("Heartbeat %s on %s", active.session_id, data.get("currentPage"))
        elif event is BehaviorEvent.SESSION_ENDED:
            logger.info(
                "Session ended: %s with score %s over %s pages",
                active.session_id,
                data.get("finalScore"),
                data.get("totalPages"),
            )
