"""CLI handler for ``intake-funnel route``."""

from __future__ import annotations

import json
import sys
from argparse import Namespace

from intake_funnel.errors import RosterError
from intake_funnel.routing.loader import load_staff_directory


def run_route(args: Namespace) -> None:
    try:
        directory = load_staff_directory(args.roster)
    except RosterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    specialization = args.specialization.strip()
    if specialization:
        result = directory.resolve(specialization, include_admins=args.include_admins)
    else:
        result = directory.resolve_default()

    print(json.dumps({"specialization": specialization or None, **result.as_dict()}, indent=2))
    if not result.found:
        sys.exit(2)
