"""CLI handler for ``intake-funnel serve``."""

from __future__ import annotations

import sys
from argparse import Namespace

from intake_funnel.config import IntakeConfig, load_config_file
from intake_funnel.errors import RosterError
from intake_funnel.routing.loader import load_staff_directory
from intake_funnel.telemetry import LoggerTelemetrySink


def run_serve(args: Namespace) -> None:
    config = load_config_file(args.config) if args.config else IntakeConfig.from_env()
    try:
        directory = load_staff_directory(args.roster, catalog=config.specialization_catalog)
    except RosterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    directory.telemetry = LoggerTelemetrySink()

    import uvicorn

    from intake_funnel.routing.api import create_app

    app = create_app(directory, prefix=args.prefix)
    print(f"Serving {len(directory)} staff members on http://{args.host}:{args.port}{args.prefix}")
    uvicorn.run(app, host=args.host, port=args.port)
