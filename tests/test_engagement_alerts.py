"""Tests for intake_funnel.engagement.alerts."""

from __future__ import annotations

from intake_funnel.engagement.alerts import (
    HIGH_VALUE_LEAD,
    AlertConfig,
    AlertDetector,
    check_alert,
)

_CONFIG = AlertConfig(high_value_threshold=70)


def _check(**overrides):
    defaults = {
        "config": _CONFIG,
        "session_id": "sess-1",
        "score": 30,
        "old_level": "none",
        "new_level": "low",
        "event": "click",
        "departments": ["Cardiology"],
    }
    defaults.update(overrides)
    return check_alert(**defaults)


class TestCheckAlert:
    def test_cold_to_warm(self):
        alert = _check(old_level="low", new_level="medium", score=55)
        assert alert is not None
        assert alert["alert_type"] == "cold_to_warm"
        assert alert["high_value"] is False

    def test_cold_to_hot(self):
        alert = _check(old_level="none", new_level="high", score=80)
        assert alert["alert_type"] == "cold_to_hot"

    def test_warm_to_hot(self):
        alert = _check(old_level="medium", new_level="high", score=80)
        assert alert["alert_type"] == "warm_to_hot"

    def test_unlisted_transition_returns_none(self):
        assert _check(old_level="none", new_level="low") is None

    def test_same_level_returns_none(self):
        assert _check(old_level="medium", new_level="medium", score=60) is None

    def test_high_value_page_view(self):
        alert = _check(old_level="high", new_level="high", score=70, event="page_view")
        assert alert["alert_type"] == HIGH_VALUE_LEAD
        assert alert["high_value"] is True
        assert alert["departments"] == ["Cardiology"]

    def test_high_value_needs_qualifying_event(self):
        assert _check(old_level="high", new_level="high", score=90, event="scroll") is None

    def test_below_threshold(self):
        assert _check(old_level="high", new_level="high", score=69, event="page_view") is None

    def test_record_fields(self):
        alert = _check(old_level="low", new_level="medium", score=55)
        assert alert["id"].startswith("alert-")
        assert alert["session_id"] == "sess-1"
        assert alert["triggering_event"] == "click"
        assert alert["created_at"]

    def test_callbacks_called_and_isolated(self):
        seen = []

        def boom(alert):
            raise RuntimeError("callback failure")

        alert = _check(
            old_level="low",
            new_level="medium",
            callbacks=[boom, seen.append],
        )
        assert seen == [alert]


class TestAlertDetector:
    def test_register_is_idempotent(self):
        detector = AlertDetector()
        seen = []
        detector.register_callback(seen.append)
        detector.register_callback(seen.append)
        detector.check(session_id="s", score=55, old_level="low", new_level="medium")
        assert len(seen) == 1

    def test_clear_callbacks(self):
        detector = AlertDetector()
        seen = []
        detector.register_callback(seen.append)
        detector.clear_callbacks()
        assert detector.check(session_id="s", score=55, old_level="low", new_level="medium") is not None
        assert seen == []

    def test_uses_own_config(self):
        detector = AlertDetector(AlertConfig(high_value_threshold=50))
        alert = detector.check(
            session_id="s", score=50, old_level="medium", new_level="medium", event="page_view"
        )
        assert alert["alert_type"] == HIGH_VALUE_LEAD
