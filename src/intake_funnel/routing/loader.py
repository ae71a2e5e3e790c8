"""YAML staff roster loading. Files starting with underscore are skipped.

A roster file is either a list of members or a mapping with a ``staff``
list::

    staff:
      - id: s1
        name: Dr. Asha Rao
        specialization: Cardiology
        max_load: 5
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from intake_funnel.errors import RosterError
from intake_funnel.routing.directory import StaffDirectory
from intake_funnel.routing.models import StaffMember

logger = logging.getLogger(__name__)


def load_staff_file(path: str | Path) -> list[StaffMember]:
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise RosterError(f"Invalid YAML in staff roster {path}: {exc}") from exc
    if raw_data is None:
        raise RosterError(f"Empty staff roster: {path}")

    entries: Any = raw_data.get("staff") if isinstance(raw_data, dict) else raw_data
    if not isinstance(entries, list):
        raise RosterError(f"Staff roster must be a list or have a 'staff' list: {path}")

    members: list[StaffMember] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise RosterError(f"Staff entry #{index} in {path} is not a mapping")
        try:
            members.append(StaffMember.model_validate(entry))
        except ValidationError as exc:
            raise RosterError(f"Invalid staff entry #{index} in {path}: {exc}") from exc
    return members


def load_staff_directory(
    path: str | Path,
    *,
    catalog: frozenset[str] | None = None,
    directory: StaffDirectory | None = None,
) -> StaffDirectory:
    """Load one roster file, or every ``*.yaml`` roster under a directory.

    Bad files in a directory are logged and skipped; a single bad file
    raises :class:`RosterError`.
    """
    path = Path(path)
    directory = directory if directory is not None else StaffDirectory(catalog=catalog)

    if path.is_file():
        for member in load_staff_file(path):
            directory.add(member)
        return directory

    if not path.is_dir():
        raise RosterError(f"Staff roster path does not exist: {path}")

    for roster in sorted(path.rglob("*.yaml")):
        if roster.name.startswith("_"):
            continue
        try:
            members = load_staff_file(roster)
            for member in members:
                directory.add(member)
        except ValueError as exc:
            logger.exception("Failed to load staff roster from %s: %s", roster, exc)
    return directory
