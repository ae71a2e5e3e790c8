"""Test fixtures for intake funnel tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from intake_funnel.routing.models import StaffMember, StaffRole
from intake_funnel.session.models import PageVisit, Session

FIXED_NOW = 1_700_000_000_000
EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Callable epoch-ms clock that only moves when told to."""

    def __init__(self, now: int = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 0, *, seconds: float = 0, minutes: float = 0) -> None:
        self.now += int(ms + seconds * 1000 + minutes * 60_000)


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


def make_visit(
    page_id: str = "home",
    *,
    page_type: str = "general",
    entry_time: int = FIXED_NOW,
    spent_ms: int | None = None,
    scroll_depth: int = 0,
    interactions: int = 0,
) -> PageVisit:
    """Create a page visit, closed after *spent_ms* when given."""
    visit = PageVisit(
        page_id=page_id,
        display_name=page_id,
        type=page_type,
        entry_time=entry_time,
        scroll_depth=scroll_depth,
        interactions=interactions,
    )
    if spent_ms is not None:
        visit.close(entry_time + spent_ms)
    return visit


def make_session(
    session_id: str = "1700000000000-abcdefghijklmnop",
    *,
    start_time: int = FIXED_NOW,
    topics: dict[str, int] | None = None,
    pages: list[PageVisit] | None = None,
    total_time_spent: int | None = None,
) -> Session:
    """Create a session.  ``total_time_spent`` defaults to the closed visits' sum."""
    pages = pages or []
    if total_time_spent is None:
        total_time_spent = sum(p.time_spent for p in pages)
    return Session(
        session_id=session_id,
        start_time=start_time,
        last_activity=start_time,
        pages=pages,
        total_time_spent=total_time_spent,
        department_interest=dict(topics or {}),
    )


def make_staff(
    staff_id: str = "s1",
    *,
    name: str | None = None,
    specialization: str = "General",
    role: StaffRole = StaffRole.SPECIALIST,
    current_load: int = 0,
    max_load: int = 0,
    active: bool = True,
    created_minutes: int = 0,
) -> StaffMember:
    """Create a staff member; *created_minutes* orders creation times."""
    return StaffMember(
        id=staff_id,
        name=name or f"Staff {staff_id}",
        email=f"{staff_id}@clinic.test",
        role=role,
        active=active,
        specialization=specialization,
        current_load=current_load,
        max_load=max_load,
        created_at=EPOCH + timedelta(minutes=created_minutes),
        password_hash="$2b$10$secret",
    )
