"""Staff and routing result models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from intake_funnel.config import GENERAL_SPECIALIZATION


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StaffRole(str, Enum):
    ADMIN = "admin"
    SPECIALIST = "specialist"


class StaffMember(_StrictModel):
    """A routable staff member.

    ``current_load <= max_load`` is only advisory; the model never enforces
    it, since concurrent assignments can push a member over for a while.
    """

    id: str
    name: str
    email: str = ""
    role: StaffRole = StaffRole.SPECIALIST
    active: bool = True
    specialization: str = GENERAL_SPECIALIZATION
    max_load: int = Field(default=0, ge=0)  # 0 = unlimited
    current_load: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    password_hash: str = Field(default="", exclude=True, repr=False)

    @field_validator("id", "name", "email")
    @classmethod
    def normalize_text(cls, value: str) -> str:
        return value.strip()

    @field_validator("specialization")
    @classmethod
    def default_specialization(cls, value: str) -> str:
        return value.strip() or GENERAL_SPECIALIZATION

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    @property
    def is_admin(self) -> bool:
        return self.role is StaffRole.ADMIN

    @property
    def is_general(self) -> bool:
        return self.specialization == GENERAL_SPECIALIZATION

    def has_capacity(self) -> bool:
        return self.max_load == 0 or self.current_load < self.max_load

    def sanitized(self) -> dict[str, Any]:
        """JSON-safe view without credentials."""
        return self.model_dump(mode="json", exclude={"password_hash"})


class RoutingReason(str, Enum):
    MATCHED = "matched"
    OVER_CAPACITY = "over_capacity"
    NO_CANDIDATE = "no_candidate"


_NO_CANDIDATE_MESSAGE = "No executive available for this specialization"
_NO_DEFAULT_MESSAGE = "No default executive available"


@dataclass(frozen=True)
class RoutingResult:
    staff: StaffMember | None
    reason: RoutingReason
    specialization: str | None = None

    @property
    def found(self) -> bool:
        return self.staff is not None

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "executive": self.staff.sanitized() if self.staff is not None else None,
            "reason": self.reason.value,
        }
        if self.staff is None:
            data["message"] = _NO_CANDIDATE_MESSAGE if self.specialization else _NO_DEFAULT_MESSAGE
        return data
