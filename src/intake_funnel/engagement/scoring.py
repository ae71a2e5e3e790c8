"""Engagement scoring — weighted signals, urgency multiplier, engagement levels.

All functions are pure (no I/O, no session mutation) and parameterized via
:class:`EngagementScoringConfig`.  They are safe to call on every outbound
event and on every heartbeat.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from intake_funnel.session.models import Session


class EngagementLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


Bands = tuple[tuple[float, float], ...]


@dataclass(frozen=True)
class EngagementScoringConfig:
    """Scoring thresholds.

    Every ``*_bands`` field is a descending ``(min_value, points)`` tuple;
    the first pair whose ``min_value`` is <= the measured value wins, and
    the matching ``*_floor`` applies when none does.

    Parameters
    ----------
    topic_breadth_bands:
        Points by number of distinct topics viewed.
    revisit_points / revisit_cap:
        Points per repeated topic visit and the cap on their sum.
    time_bands / time_floor:
        Points by minutes spent on closed visits.
    scroll_bands / scroll_floor:
        Points by mean max-scroll percentage across pages.
    page_bands:
        Points by number of page visits.
    interaction_points / interaction_cap:
        Points per click and the cap on their sum.
    recency_bands:
        Ascending ``(max_age_minutes, points)`` pairs checked in order.
    adjustments:
        Multiplier deltas keyed by signal name, applied to a base of 1.0.
    level_thresholds:
        Descending ``(min_score, level)`` pairs.
    """

    topic_breadth_bands: Bands = ((3, 25), (2, 18), (1, 10))
    revisit_points: float = 3
    revisit_cap: float = 10
    time_bands: Bands = ((10, 20), (5, 15), (3, 10), (1, 5))
    time_floor: float = 2
    scroll_bands: Bands = ((80, 15), (60, 10), (40, 5))
    scroll_floor: float = 2
    page_bands: Bands = ((8, 10), (5, 7), (3, 4), (2, 2))
    interaction_points: float = 1.5
    interaction_cap: float = 10
    recency_bands: Bands = ((5, 5), (15, 3), (30, 1))
    adjustments: dict[str, float] = field(
        default_factory=lambda: {
            "multi_topic": 0.1,
            "thorough_reading": 0.1,
            "active_engagement": 0.1,
            "very_quick_visit": -0.2,
            "low_scroll": -0.1,
        }
    )
    multi_topic_min: int = 2
    thorough_scroll_min: float = 70
    active_interactions_min: int = 5
    quick_visit_minutes: float = 0.5
    low_scroll_max: float = 30
    level_thresholds: tuple[tuple[int, EngagementLevel], ...] = (
        (75, EngagementLevel.HIGH),
        (50, EngagementLevel.MEDIUM),
        (25, EngagementLevel.LOW),
    )


DEFAULT_SCORING = EngagementScoringConfig()


@dataclass(frozen=True)
class ScoreBreakdown:
    """Every intermediate value that went into a score, for explanations."""

    topic_breadth: float
    revisit_bonus: float
    time_investment: float
    content_depth: float
    page_depth: float
    interaction_density: float
    recency: float
    multiplier: float
    score: int
    distinct_topics: int
    minutes_spent: float
    avg_scroll: float
    total_interactions: int

    @property
    def base(self) -> float:
        return (
            self.topic_breadth
            + self.revisit_bonus
            + self.time_investment
            + self.content_depth
            + self.page_depth
            + self.interaction_density
            + self.recency
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "topicBreadth": self.topic_breadth,
            "revisitBonus": self.revisit_bonus,
            "timeInvestment": self.time_investment,
            "contentDepth": self.content_depth,
            "pageDepth": self.page_depth,
            "interactionDensity": self.interaction_density,
            "recency": self.recency,
            "base": round(self.base, 2),
            "multiplier": round(self.multiplier, 2),
            "score": self.score,
        }


def band_points(value: float, bands: Bands, floor: float = 0) -> float:
    """Points of the first descending band whose minimum *value* reaches."""
    for minimum, points in bands:
        if value >= minimum:
            return points
    return floor


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def average_scroll(session: Session) -> float:
    if not session.pages:
        return 0.0
    return sum(p.scroll_depth for p in session.pages) / len(session.pages)


def _recency_points(age_minutes: float, config: EngagementScoringConfig) -> float:
    for max_age, points in config.recency_bands:
        if age_minutes <= max_age:
            return points
    return 0


def _multiplier(
    *,
    distinct_topics: int,
    avg_scroll: float,
    interactions: int,
    minutes: float,
    config: EngagementScoringConfig,
) -> float:
    adj = config.adjustments
    multiplier = 1.0
    if distinct_topics >= config.multi_topic_min:
        multiplier += adj.get("multi_topic", 0.0)
    if avg_scroll >= config.thorough_scroll_min:
        multiplier += adj.get("thorough_reading", 0.0)
    if interactions >= config.active_interactions_min:
        multiplier += adj.get("active_engagement", 0.0)
    if minutes < config.quick_visit_minutes:
        multiplier += adj.get("very_quick_visit", 0.0)
    if avg_scroll < config.low_scroll_max:
        multiplier += adj.get("low_scroll", 0.0)
    return multiplier


def score_breakdown(
    session: Session,
    now_ms: int,
    config: EngagementScoringConfig = DEFAULT_SCORING,
) -> ScoreBreakdown:
    """Compute every scoring component for *session* as of *now_ms*."""
    interest = session.department_interest
    distinct = len(interest)
    revisits = sum(interest.values()) - distinct
    minutes = session.total_time_spent / 60_000
    avg_scroll = average_scroll(session)
    interactions = session.total_interactions
    age_minutes = (now_ms - session.start_time) / 60_000

    topic_breadth = band_points(distinct, config.topic_breadth_bands)
    revisit_bonus = min(revisits * config.revisit_points, config.revisit_cap) if revisits > 0 else 0
    time_investment = band_points(minutes, config.time_bands, config.time_floor)
    content_depth = band_points(avg_scroll, config.scroll_bands, config.scroll_floor)
    page_depth = band_points(session.page_count, config.page_bands)
    interaction_density = min(interactions * config.interaction_points, config.interaction_cap)
    recency = _recency_points(age_minutes, config)

    multiplier = _multiplier(
        distinct_topics=distinct,
        avg_scroll=avg_scroll,
        interactions=interactions,
        minutes=minutes,
        config=config,
    )
    base = (
        topic_breadth
        + revisit_bonus
        + time_investment
        + content_depth
        + page_depth
        + interaction_density
        + recency
    )
    final = max(0, min(100, round_half_up(base * multiplier)))

    return ScoreBreakdown(
        topic_breadth=topic_breadth,
        revisit_bonus=revisit_bonus,
        time_investment=time_investment,
        content_depth=content_depth,
        page_depth=page_depth,
        interaction_density=interaction_density,
        recency=recency,
        multiplier=multiplier,
        score=final,
        distinct_topics=distinct,
        minutes_spent=minutes,
        avg_scroll=avg_scroll,
        total_interactions=interactions,
    )


def behavior_score(
    session: Session,
    now_ms: int,
    config: EngagementScoringConfig = DEFAULT_SCORING,
) -> int:
    """Integer engagement score in ``[0, 100]``."""
    return score_breakdown(session, now_ms, config).score


def engagement_level(
    score: float,
    config: EngagementScoringConfig = DEFAULT_SCORING,
) -> EngagementLevel:
    for min_score, level in config.level_thresholds:
        if score >= min_score:
            return level
    return EngagementLevel.NONE


def top_topics(session: Session, limit: int = 3) -> list[str]:
    """Topic ids by visit count, most visited first; ties keep first-seen order."""
    ranked = sorted(
        session.department_interest.items(), key=lambda item: -item[1]
    )
    return [topic for topic, _ in ranked[:limit]]


def session_snapshot(
    session: Session,
    now_ms: int,
    topic_names: dict[str, str] | None = None,
    config: EngagementScoringConfig = DEFAULT_SCORING,
) -> dict[str, Any]:
    """The ``session`` block attached to every outbound behavior event."""
    names = topic_names or {}
    score = behavior_score(session, now_ms, config)
    return {
        "sessionId": session.session_id,
        "pagesVisited": session.page_count,
        "departmentsViewed": [names.get(t, t) for t in session.department_interest],
        "totalTimeSpent": session.total_time_spent,
        "behaviorScore": score,
        "engagementLevel": engagement_level(score, config).value,
    }


def intent_summary(
    session: Session,
    now_ms: int,
    topic_names: dict[str, str] | None = None,
    config: EngagementScoringConfig = DEFAULT_SCORING,
) -> dict[str, Any]:
    """The ``behaviorData`` attached to ``chatStart``.  Time is in seconds."""
    names = topic_names or {}
    score = behavior_score(session, now_ms, config)
    return {
        "sessionId": session.session_id,
        "pagesVisited": session.page_count,
        "departmentsViewed": [names.get(t, t) for t in session.department_interest],
        "topDepartments": [names.get(t, t) for t in top_topics(session)],
        "totalTimeSpent": round_half_up(session.total_time_spent / 1000),
        "behaviorScore": score,
        "engagementLevel": engagement_level(score, config).value,
    }
