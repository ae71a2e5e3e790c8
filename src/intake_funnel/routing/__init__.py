"""Routing: staff models, capacity-aware resolver, directory, and YAML rosters."""

from intake_funnel.routing.directory import StaffDirectory
from intake_funnel.routing.loader import load_staff_directory, load_staff_file
from intake_funnel.routing.models import (
    RoutingReason,
    RoutingResult,
    StaffMember,
    StaffRole,
)
from intake_funnel.routing.resolver import (
    eligible,
    is_available,
    rank,
    resolve,
    resolve_default,
    validate,
)

__all__ = [
    "RoutingReason",
    "RoutingResult",
    "StaffDirectory",
    "StaffMember",
    "StaffRole",
    "eligible",
    "is_available",
    "load_staff_directory",
    "load_staff_file",
    "rank",
    "resolve",
    "resolve_default",
    "validate",
]
