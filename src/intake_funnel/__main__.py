"""CLI entry point: python -m intake_funnel <command>."""

from __future__ import annotations

import argparse
import logging
import sys


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="intake-funnel",
        description="Intake funnel CLI",
    )
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")
    sub = parser.add_subparsers(dest="command")

    sv = sub.add_parser("serve", help="Run the routing REST API")
    sv.add_argument("--roster", required=True, help="Staff roster YAML file or directory")
    sv.add_argument("--config", default="", help="Intake config YAML file")
    sv.add_argument("--host", default="127.0.0.1")
    sv.add_argument("--port", type=int, default=8000)
    sv.add_argument("--prefix", default="/api/integrations", help="URL prefix for the routes")

    rt = sub.add_parser("route", help="Resolve a staff member from a roster")
    rt.add_argument("--roster", required=True, help="Staff roster YAML file or directory")
    rt.add_argument("--specialization", default="", help="Omit for the default chain")
    rt.add_argument("--include-admins", action="store_true", default=False)

    sc = sub.add_parser("score", help="Score a persisted session snapshot")
    sc.add_argument("snapshot", help="Path to a session snapshot JSON file")
    sc.add_argument("--config", default="", help="Intake config YAML file")
    sc.add_argument("--now", type=int, default=0, help="Epoch ms to score at (default: now)")
    sc.add_argument("--json", action="store_true", default=False, help="Output as JSON")

    pg = sub.add_parser("playground", help="Interactive visitor simulation")
    pg.add_argument("--config", default="", help="Intake config YAML file")
    pg.add_argument("--threshold", type=int, default=0, help="High-value alert threshold override")

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "serve":
        from intake_funnel.cli.serve import run_serve
        run_serve(args)
    elif args.command == "route":
        from intake_funnel.cli.route import run_route
        run_route(args)
    elif args.command == "score":
        from intake_funnel.cli.score import run_score
        run_score(args)
    elif args.command == "playground":
        from intake_funnel.cli.playground import run_playground
        run_playground(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
