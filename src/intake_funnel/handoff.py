"""Hand-off from an engagement session to a staff member."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from intake_funnel.engagement.scoring import top_topics
from intake_funnel.errors import StaffNotFoundError
from intake_funnel.routing.directory import StaffDirectory
from intake_funnel.routing.models import RoutingReason
from intake_funnel.session.models import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    session_id: str
    staff_id: str | None
    staff_name: str | None
    specialization: str | None
    reason: RoutingReason

    @property
    def found(self) -> bool:
        return self.staff_id is not None

    def as_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "staffId": self.staff_id,
            "staffName": self.staff_name,
            "specialization": self.specialization,
            "reason": self.reason.value,
        }


def topic_specialization(
    session: Session,
    topic_names: dict[str, str] | None = None,
    specializations: dict[str, str] | None = None,
) -> str | None:
    """Specialization for the session's most visited topic, or None.

    *specializations* maps topic ids to catalog entries; topics missing
    from it fall back to their display name.
    """
    top = top_topics(session, limit=1)
    if not top:
        return None
    topic = top[0]
    if specializations and topic in specializations:
        return specializations[topic]
    return (topic_names or {}).get(topic, topic)


def route_session(
    session: Session,
    directory: StaffDirectory,
    *,
    topic_names: dict[str, str] | None = None,
    specializations: dict[str, str] | None = None,
    include_admins: bool = False,
) -> Assignment:
    """Assign *session* to a staff member and count it against their load."""
    specialization = topic_specialization(session, topic_names, specializations)
    result = directory.assign(specialization, include_admins=include_admins)
    staff = result.staff
    assignment = Assignment(
        session_id=session.session_id,
        staff_id=staff.id if staff else None,
        staff_name=staff.name if staff else None,
        specialization=specialization,
        reason=result.reason,
    )
    logger.info(
        "Session %s handed to %s (%s)",
        session.session_id,
        assignment.staff_id,
        assignment.reason.value,
    )
    return assignment


def release(assignment: Assignment, directory: StaffDirectory) -> int | None:
    """Give back the load taken by *assignment*.  Returns the new load."""
    if assignment.staff_id is None:
        return None
    try:
        return directory.decrement_load(assignment.staff_id)
    except StaffNotFoundError:
        logger.warning(
            "Staff member %s left the directory before session %s was released",
            assignment.staff_id,
            assignment.session_id,
        )
        return None
