"""Capacity-aware staff selection: pure functions over a candidate list.

The resolver never changes ``current_load``; assigning the session and
bumping the load is the caller's job.  Two concurrent callers can
therefore both pick the same least-loaded member before either
increments.  ``StaffDirectory.assign`` serializes the two steps for
callers that need strict capacity.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from intake_funnel.config import GENERAL_SPECIALIZATION
from intake_funnel.routing.models import RoutingReason, RoutingResult, StaffMember


class StaffLookup(Protocol):
    def get(self, staff_id: str) -> StaffMember | None: ...


def is_available(member: StaffMember) -> bool:
    """True when *member* is active and below its load limit (0 = unlimited)."""
    return member.active and member.has_capacity()


def eligible(
    specialization: str,
    candidates: Iterable[StaffMember],
    *,
    include_admins: bool = False,
) -> list[StaffMember]:
    wanted = {specialization, GENERAL_SPECIALIZATION}
    return [
        c
        for c in candidates
        if c.active
        and c.specialization in wanted
        and (include_admins or not c.is_admin)
    ]


def rank(candidates: Iterable[StaffMember]) -> list[StaffMember]:
    """Least-loaded first; name then id break ties."""
    return sorted(candidates, key=lambda c: (c.current_load, c.name, c.id))


def resolve(
    specialization: str,
    candidates: Iterable[StaffMember],
    *,
    include_admins: bool = False,
) -> RoutingResult:
    """Pick the staff member for *specialization*.

    Returns the first ranked candidate with spare capacity (``matched``),
    else the least-loaded one anyway (``over_capacity``), else nobody
    (``no_candidate``).

    Raises:
        ValueError: If *specialization* is blank.
    """
    if not specialization or not specialization.strip():
        raise ValueError("specialization is required")
    specialization = specialization.strip()

    pool = rank(eligible(specialization, candidates, include_admins=include_admins))
    if not pool:
        return RoutingResult(None, RoutingReason.NO_CANDIDATE, specialization)
    for member in pool:
        if member.has_capacity():
            return RoutingResult(member, RoutingReason.MATCHED, specialization)
    return RoutingResult(pool[0], RoutingReason.OVER_CAPACITY, specialization)


def resolve_default(candidates: Iterable[StaffMember]) -> RoutingResult:
    """Fallback chain for sessions with no specialization.

    Earliest-created active admin, else the least-loaded active General
    specialist, else the least-loaded active specialist.
    """
    active = [c for c in candidates if c.active]

    admins = sorted((c for c in active if c.is_admin), key=lambda c: (c.created_at, c.id))
    if admins:
        return RoutingResult(admins[0], RoutingReason.MATCHED)

    specialists = sorted(
        (c for c in active if not c.is_admin),
        key=lambda c: (c.current_load, c.created_at, c.id),
    )
    for member in specialists:
        if member.is_general:
            return RoutingResult(member, RoutingReason.MATCHED)
    if specialists:
        return RoutingResult(specialists[0], RoutingReason.MATCHED)
    return RoutingResult(None, RoutingReason.NO_CANDIDATE)


def validate(staff_id: str, directory: StaffLookup) -> bool:
    """True iff *staff_id* exists in *directory* and is active.

    Use before honoring a cached routing decision; staff can be
    deactivated between resolution and use.
    """
    member = directory.get(staff_id)
    return member is not None and member.active
