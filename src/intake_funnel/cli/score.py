"""CLI handler for ``intake-funnel score``."""

from __future__ import annotations

import json
import sys
from argparse import Namespace
from pathlib import Path

from intake_funnel.clock import epoch_ms
from intake_funnel.config import IntakeConfig, load_config_file
from intake_funnel.engagement.scoring import engagement_level, score_breakdown, top_topics
from intake_funnel.session.models import Session


def _format_table(session: Session, breakdown: dict, level: str, topics: list[str]) -> str:
    lines = [
        f"Session:   {session.session_id}",
        f"Pages:     {session.page_count}",
        f"Topics:    {', '.join(topics) or '(none)'}",
        "",
        f"{'component':<14} {'points':>8}",
    ]
    for name, value in breakdown.items():
        if name in ("score", "multiplier"):
            continue
        lines.append(f"{name:<14} {value:>8.1f}")
    lines.append(f"{'multiplier':<14} {breakdown['multiplier']:>8.2f}")
    lines.append("")
    lines.append(f"Score: {breakdown['score']} ({level})")
    return "\n".join(lines)


def run_score(args: Namespace) -> None:
    path = Path(args.snapshot)
    if not path.is_file():
        print(f"Error: snapshot file does not exist: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        session = Session.model_validate_json(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        print(f"Error: invalid session snapshot {path}: {exc}", file=sys.stderr)
        sys.exit(1)

    config = load_config_file(args.config) if args.config else IntakeConfig()
    now = args.now or epoch_ms()
    breakdown = score_breakdown(session, now)
    level = engagement_level(breakdown.score).value
    topics = [config.topic_name(t) for t in top_topics(session)]

    if args.json:
        print(json.dumps(
            {
                "sessionId": session.session_id,
                "breakdown": breakdown.as_dict(),
                "engagementLevel": level,
                "topDepartments": topics,
            },
            indent=2,
        ))
    else:
        print(_format_table(session, breakdown.as_dict(), level, topics))
