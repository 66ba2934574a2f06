"""
alertrouter CLI

Usage:
    alertrouter <command> [args]

Commands validate routing configuration, explain how alerts are routed,
and run the router's HTTP API.
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from alertrouter.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="alertrouter", description="Alert routing, grouping and inhibition")
    parser.add_argument("--log-level", default="WARNING", help="Log level for CLI commands")
    subparsers = parser.add_subparsers(dest="command")

    check_parser = subparsers.add_parser("check-config", help="Validate a routing configuration file")
    check_parser.add_argument("config_file", help="Path to the YAML configuration")

    routes_parser = subparsers.add_parser("routes", help="Inspect the route tree")
    routes_subparsers = routes_parser.add_subparsers(dest="routes_command")

    show_parser = routes_subparsers.add_parser("show", help="Print the route tree")
    show_parser.add_argument("config_file", help="Path to the YAML configuration")

    test_parser = routes_subparsers.add_parser("test", help="Show receivers for a label set")
    test_parser.add_argument("config_file", help="Path to the YAML configuration")
    test_parser.add_argument("labels", nargs="+", help="Alert labels as name=value")
    test_parser.add_argument(
        "--verify-receivers",
        help="Comma separated receivers the alert must reach, in order",
    )
    test_parser.add_argument("--output", choices=["text", "json"], default="text")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API and dispatch loop")
    serve_parser.add_argument("--config", dest="config_file", help="Path to the YAML configuration")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=9093)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    configure_logging(args.log_level, json=False)

    if args.command == "check-config":
        from alertrouter.cli.check_config import check_config_command

        sys.exit(check_config_command(args.config_file))

    if args.command == "routes":
        from alertrouter.cli.routes import routes_show_command, routes_test_command

        if args.routes_command == "show":
            sys.exit(routes_show_command(args.config_file))
        if args.routes_command == "test":
            sys.exit(
                routes_test_command(
                    args.config_file,
                    args.labels,
                    verify_receivers=args.verify_receivers,
                    output_format=args.output,
                )
            )
        parser.parse_args(["routes", "--help"])

    if args.command == "serve":
        from alertrouter.cli.serve import serve_command

        sys.exit(serve_command(config_file=args.config_file, host=args.host, port=args.port))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
