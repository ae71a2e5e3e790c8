"""Pydantic models for one engagement session and its page visits.

Field names are snake_case in Python and camelCase on the wire, so a
persisted snapshot keeps the shape browser clients already write.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    """Shared settings: camelCase aliases, either name accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Click(_WireModel):
    element: str
    label: str
    timestamp: int


class PageVisit(_WireModel):
    """One visit to one page.  ``exit_time`` stays None until the visit closes."""

    page_id: str
    display_name: str = Field(alias="page")
    type: str = "general"
    entry_time: int
    exit_time: int | None = None
    time_spent: int = 0
    scroll_depth: int = 0
    interactions: int = 0

    @field_validator("scroll_depth")
    @classmethod
    def clamp_scroll(cls, value: int) -> int:
        return max(0, min(100, value))

    @property
    def is_open(self) -> bool:
        return self.exit_time is None

    def close(self, now_ms: int) -> int:
        """Close the visit at *now_ms*; returns the time spent in ms."""
        self.exit_time = max(now_ms, self.entry_time)
        self.time_spent = self.exit_time - self.entry_time
        return self.time_spent


class Session(_WireModel):
    session_id: str
    start_time: int
    last_activity: int
    pages: list[PageVisit] = Field(default_factory=list)
    total_time_spent: int = 0
    scroll_depth: dict[str, int] = Field(default_factory=dict)
    clicks: list[Click] = Field(default_factory=list)
    department_interest: dict[str, int] = Field(default_factory=dict)

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.start_time

    def is_expired(self, now_ms: int, ttl_ms: int) -> bool:
        return self.age_ms(now_ms) >= ttl_ms

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def total_interactions(self) -> int:
        return sum(p.interactions for p in self.pages)


def new_session(session_id: str, now_ms: int) -> Session:
    return Session(session_id=session_id, start_time=now_ms, last_activity=now_ms)
