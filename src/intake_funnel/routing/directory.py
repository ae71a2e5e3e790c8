"""Thread-safe in-memory staff directory.

Members are stored by id and handed out as copies, so load changes only
happen through the directory under its lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Any

from intake_funnel.config import GENERAL_SPECIALIZATION
from intake_funnel.errors import StaffNotFoundError
from intake_funnel.routing import resolver
from intake_funnel.routing.models import RoutingResult, StaffMember
from intake_funnel.telemetry import NoOpTelemetrySink, TelemetrySink, routing_resolved

logger = logging.getLogger(__name__)


class StaffDirectory:
    def __init__(
        self,
        members: Iterable[StaffMember] = (),
        *,
        catalog: Iterable[str] | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._members: dict[str, StaffMember] = {}
        self.catalog = frozenset(catalog or ())
        self.telemetry = telemetry or NoOpTelemetrySink()
        for member in members:
            self.add(member)

    def __len__(self) -> int:
        with self._lock:
            return len(self._members)

    def __contains__(self, staff_id: object) -> bool:
        with self._lock:
            return staff_id in self._members

    def _check_specialization(self, specialization: str) -> None:
        if not self.catalog or specialization == GENERAL_SPECIALIZATION:
            return
        if specialization not in self.catalog:
            raise ValueError(
                f"Unknown specialization {specialization!r}; "
                f"expected one of {sorted(self.catalog)} or {GENERAL_SPECIALIZATION!r}"
            )

    # ── reads ─────────────────────────────────────────────────────

    def get(self, staff_id: str) -> StaffMember | None:
        with self._lock:
            member = self._members.get(staff_id)
            return member.model_copy() if member is not None else None

    def require(self, staff_id: str) -> StaffMember:
        member = self.get(staff_id)
        if member is None:
            raise StaffNotFoundError(staff_id)
        return member

    def all(self) -> list[StaffMember]:
        """Every member, oldest first."""
        with self._lock:
            members = [m.model_copy() for m in self._members.values()]
        return sorted(members, key=lambda m: (m.created_at, m.id))

    def list_staff(self, include_admins: bool = True) -> list[StaffMember]:
        """Active members; specialists first, then by specialization and name."""
        members = [
            m for m in self.all() if m.active and (include_admins or not m.is_admin)
        ]
        return sorted(members, key=lambda m: (m.is_admin, m.specialization, m.name))

    # ── writes ────────────────────────────────────────────────────

    def add(self, member: StaffMember) -> StaffMember:
        self._check_specialization(member.specialization)
        with self._lock:
            if member.id in self._members:
                raise ValueError(f"Duplicate staff id: {member.id!r}")
            self._members[member.id] = member.model_copy()
        logger.debug("Added staff member %s (%s)", member.id, member.specialization)
        return member.model_copy()

    def update(self, staff_id: str, **changes: Any) -> StaffMember:
        """Apply field changes; each assignment is validated by the model."""
        if "id" in changes:
            raise ValueError("staff id cannot be changed")
        if "specialization" in changes:
            self._check_specialization(str(changes["specialization"]).strip() or GENERAL_SPECIALIZATION)
        with self._lock:
            current = self._members.get(staff_id)
            if current is None:
                raise StaffNotFoundError(staff_id)
            updated = current.model_copy()
            for name, value in changes.items():
                setattr(updated, name, value)
            self._members[staff_id] = updated
            return updated.model_copy()

    def deactivate(self, staff_id: str) -> StaffMember:
        member = self.update(staff_id, active=False)
        logger.info("Deactivated staff member %s", staff_id)
        return member

    def increment_load(self, staff_id: str) -> int:
        with self._lock:
            member = self._members.get(staff_id)
            if member is None:
                raise StaffNotFoundError(staff_id)
            member.current_load += 1
            return member.current_load

    def decrement_load(self, staff_id: str) -> int:
        """Lower the load by one, never below zero."""
        with self._lock:
            member = self._members.get(staff_id)
            if member is None:
                raise StaffNotFoundError(staff_id)
            member.current_load = max(0, member.current_load - 1)
            return member.current_load

    # ── routing ───────────────────────────────────────────────────

    def resolve(self, specialization: str, *, include_admins: bool = False) -> RoutingResult:
        """Resolve against a snapshot of the directory.  Does not touch loads."""
        result = resolver.resolve(specialization, self.all(), include_admins=include_admins)
        self._record(result)
        return result

    def resolve_default(self) -> RoutingResult:
        result = resolver.resolve_default(self.all())
        self._record(result)
        return result

    def validate(self, staff_id: str) -> bool:
        return resolver.validate(staff_id, self)

    def assign(self, specialization: str | None = None, *, include_admins: bool = False) -> RoutingResult:
        """Resolve and increment the chosen member's load as one step.

        Falls back to the default chain when *specialization* is None or blank.
        """
        with self._lock:
            if specialization and specialization.strip():
                result = self.resolve(specialization, include_admins=include_admins)
            else:
                result = self.resolve_default()
            if result.staff is None:
                return result
            self.increment_load(result.staff.id)
            return RoutingResult(self.require(result.staff.id), result.reason, result.specialization)

    def _record(self, result: RoutingResult) -> None:
        staff_id = result.staff.id if result.staff is not None else None
        logger.info(
            "Routing %s -> %s (%s)",
            result.specialization or "<default>",
            staff_id,
            result.reason.value,
        )
        routing_resolved(
            self.telemetry,
            specialization=result.specialization,
            staff_id=staff_id,
            reason=result.reason.value,
        )
