"""Deployment configuration — the contract between the funnel and a clinic.

An :class:`IntakeConfig` is the single object a deployment provides.  The
tracker, channel, monitor, and routing layers read from it instead of
hardcoding clinic-specific values:

- Session: storage key, TTL, which page type counts as a topic page
- Topics: department id to display name mapping
- Channel: server URL, transport name, reconnect policy, heartbeat interval
- Routing: specialization catalog, high-value alert threshold

Example usage::

    config = IntakeConfig(
        topic_names={"cardiology": "Cardiology", "ent": "ENT"},
        server_url="https://clinic.example.com",
        reconnect=ReconnectPolicy(max_attempts=3),
    )

Environment overrides (``IntakeConfig.from_env``):

    INTAKE_SERVER_URL, INTAKE_TRANSPORT, INTAKE_STORAGE_KEY,
    INTAKE_SESSION_TTL_SECONDS, INTAKE_HEARTBEAT_SECONDS,
    INTAKE_RECONNECT_ATTEMPTS, INTAKE_HIGH_VALUE_THRESHOLD
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from intake_funnel.channel.backoff import ReconnectPolicy

logger = logging.getLogger(__name__)

GENERAL_SPECIALIZATION = "General"

DEFAULT_TOPIC_NAMES: dict[str, str] = {
    "general-medicine": "General Medicine",
    "cardiology": "Cardiology",
    "orthopedics": "Orthopedics",
    "pediatrics": "Pediatrics",
    "dermatology": "Dermatology",
    "emergency": "Emergency Care",
    "gynecology": "Gynecology",
}

SESSION_TTL_SECONDS = 30 * 60


@dataclass
class IntakeConfig:
    """Configuration a deployment provides to the intake funnel.

    Attributes:
        storage_key: Key under which the session snapshot is persisted.
        session_ttl_seconds: Age (from session start) after which a
            persisted session is discarded instead of resumed.
        topic_page_type: Page type whose views count as topic interest.
        topic_names: Topic id to human label; ids without an entry are
            shown as-is.
        heartbeat_seconds: Interval of the tracker's heartbeat event.
        server_url: Remote counterpart for the event channel.
        transport: Transport name for :func:`create_transport`.
        reconnect: Retry policy for the event channel.
        high_value_threshold: Score at which a page view raises a
            high-value lead alert on the monitor side.
        specialization_catalog: Allowed staff specializations.  The
            wildcard ``"General"`` is always accepted.  Empty means any.
    """

    storage_key: str = "mediflow_session"
    session_ttl_seconds: int = SESSION_TTL_SECONDS
    topic_page_type: str = "department"
    topic_names: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TOPIC_NAMES))
    heartbeat_seconds: float = 30.0
    server_url: str = "http://localhost:5050"
    transport: str = "socketio"
    reconnect: ReconnectPolicy = field(default_factory=ReconnectPolicy)
    high_value_threshold: int = 70
    specialization_catalog: frozenset[str] = frozenset()

    @property
    def session_ttl_ms(self) -> int:
        return self.session_ttl_seconds * 1000

    def topic_name(self, topic_id: str) -> str:
        return self.topic_names.get(topic_id, topic_id)

    def accepts_specialization(self, specialization: str) -> bool:
        if specialization == GENERAL_SPECIALIZATION or not self.specialization_catalog:
            return True
        return specialization in self.specialization_catalog

    @classmethod
    def from_env(cls, base: IntakeConfig | None = None) -> IntakeConfig:
        """Overlay ``INTAKE_*`` environment variables on *base* (or defaults)."""
        config = base or cls()
        overrides: dict[str, Any] = {}
        env = os.environ
        if env.get("INTAKE_SERVER_URL", "").strip():
            overrides["server_url"] = env["INTAKE_SERVER_URL"].strip()
        if env.get("INTAKE_TRANSPORT", "").strip():
            overrides["transport"] = env["INTAKE_TRANSPORT"].strip().lower()
        if env.get("INTAKE_STORAGE_KEY", "").strip():
            overrides["storage_key"] = env["INTAKE_STORAGE_KEY"].strip()
        for var, attr, cast in (
            ("INTAKE_SESSION_TTL_SECONDS", "session_ttl_seconds", int),
            ("INTAKE_HEARTBEAT_SECONDS", "heartbeat_seconds", float),
            ("INTAKE_HIGH_VALUE_THRESHOLD", "high_value_threshold", int),
        ):
            raw = env.get(var, "").strip()
            if not raw:
                continue
            try:
                overrides[attr] = cast(raw)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", var, raw)
        raw_attempts = env.get("INTAKE_RECONNECT_ATTEMPTS", "").strip()
        if raw_attempts:
            try:
                overrides["reconnect"] = replace(config.reconnect, max_attempts=int(raw_attempts))
            except ValueError:
                logger.warning("Ignoring invalid INTAKE_RECONNECT_ATTEMPTS=%r", raw_attempts)
        return replace(config, **overrides) if overrides else config


def load_config_file(path: str | Path) -> IntakeConfig:
    """Build an :class:`IntakeConfig` from a YAML file.

    Unknown top-level keys are rejected so typos surface immediately.
    """
    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    data = dict(data)
    reconnect = data.pop("reconnect", None) or {}
    catalog = data.pop("specialization_catalog", None) or []
    topic_names = data.pop("topic_names", None)

    known = {f for f in IntakeConfig.__dataclass_fields__}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")

    config = IntakeConfig(
        reconnect=ReconnectPolicy(**reconnect),
        specialization_catalog=frozenset(str(s).strip() for s in catalog if str(s).strip()),
        **data,
    )
    if topic_names is not None:
        config.topic_names = {str(k): str(v) for k, v in topic_names.items()}
    return config
