"""Lead alert detection — pure logic, no I/O.

An alert fires when a session's engagement level climbs across a
configured transition (e.g. ``low -> high``) or when a qualifying event
arrives with a score at or above the high-value threshold.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

AlertCallback = Callable[[dict[str, Any]], None]

HIGH_VALUE_LEAD = "high_value_lead"

_DEFAULT_TRANSITIONS: dict[tuple[str, str], str] = {
    ("none", "medium"): "cold_to_warm",
    ("low", "medium"): "cold_to_warm",
    ("none", "high"): "cold_to_hot",
    ("low", "high"): "cold_to_hot",
    ("medium", "high"): "warm_to_hot",
}


@dataclass(frozen=True)
class AlertConfig:
    """Alert settings.

    Parameters
    ----------
    transitions:
        ``{(old_level, new_level): alert_type}`` map.
    high_value_threshold:
        Score at which a qualifying event raises a high-value alert.
    high_value_events:
        Behavior events that qualify for the high-value check.
    """

    transitions: dict[tuple[str, str], str] = field(
        default_factory=lambda: dict(_DEFAULT_TRANSITIONS)
    )
    high_value_threshold: int = 70
    high_value_events: frozenset[str] = frozenset({"page_view"})


def check_alert(
    *,
    config: AlertConfig,
    session_id: str,
    score: int,
    old_level: str,
    new_level: str,
    event: str = "",
    departments: list[str] | None = None,
    callbacks: list[AlertCallback] | None = None,
) -> dict[str, Any] | None:
    """Return an alert record if the update warrants one, else ``None``.

    Does NOT persist or dedupe; the caller decides what to do with it.
    """
    alert_type = None
    if old_level != new_level:
        alert_type = config.transitions.get((old_level, new_level))
    high_value = event in config.high_value_events and score >= config.high_value_threshold
    if alert_type is None and not high_value:
        return None

    alert: dict[str, Any] = {
        "id": f"alert-{uuid.uuid4().hex[:12]}",
        "session_id": session_id,
        "alert_type": alert_type or HIGH_VALUE_LEAD,
        "high_value": high_value,
        "old_level": old_level,
        "new_level": new_level,
        "score": score,
        "triggering_event": event,
        "departments": list(departments or []),
        "created_at": datetime.now(timezone.utc).isoformat(),
    }

    for cb in callbacks or []:
        try:
            cb(alert)
        except Exception:
            logger.exception("Alert callback failed")

    return alert


class AlertDetector:
    """Stateful wrapper around :func:`check_alert` with a callback registry."""

    def __init__(self, config: AlertConfig | None = None) -> None:
        self._config = config or AlertConfig()
        self._lock = threading.RLock()
        self._callbacks: list[AlertCallback] = []

    @property
    def config(self) -> AlertConfig:
        return self._config

    def register_callback(self, cb: AlertCallback) -> None:
        with self._lock:
            if cb not in self._callbacks:
                self._callbacks.append(cb)

    def clear_callbacks(self) -> None:
        with self._lock:
            self._callbacks.clear()

    def check(self, **kwargs: Any) -> dict[str, Any] | None:
        """Delegate to :func:`check_alert` with this detector's config and callbacks."""
        with self._lock:
            cbs = list(self._callbacks)
        return check_alert(config=self._config, callbacks=cbs, **kwargs)
