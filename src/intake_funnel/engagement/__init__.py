"""Engagement utilities: behavior scoring, engagement levels, and lead alerts."""

from intake_funnel.engagement.alerts import (
    HIGH_VALUE_LEAD,
    AlertCallback,
    AlertConfig,
    AlertDetector,
    check_alert,
)
from intake_funnel.engagement.scoring import (
    DEFAULT_SCORING,
    EngagementLevel,
    EngagementScoringConfig,
    ScoreBreakdown,
    behavior_score,
    engagement_level,
    intent_summary,
    score_breakdown,
    session_snapshot,
    top_topics,
)

__all__ = [
    "DEFAULT_SCORING",
    "HIGH_VALUE_LEAD",
    "AlertCallback",
    "AlertConfig",
    "AlertDetector",
    "EngagementLevel",
    "EngagementScoringConfig",
    "ScoreBreakdown",
    "behavior_score",
    "check_alert",
    "engagement_level",
    "intent_summary",
    "score_breakdown",
    "session_snapshot",
    "top_topics",
]
