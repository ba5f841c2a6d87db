#!/usr/bin/env python3
"""RTMX command-line entry point.

Usage:
    rtmx status -vv
    rtmx backlog --view quick-wins
    rtmx deps REQ-CORE-003 --all
    rtmx verify --update
    rtmx diff baseline.csv --format markdown -o report.md
    rtmx health --json
    rtmx config --validate
"""

import argparse
import logging
import sys

from rtmx import __version__
from rtmx.cli import checks, config_command, graph_commands, init_project, report
from rtmx.cli.output_formatter import set_color_enabled
from rtmx.errors import ExitCodeError, RTMXError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rtmx",
        description="RTMX: Requirements Traceability Matrix toolkit",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Config file (default: discovered from cwd)")
    parser.add_argument("--database", help="Database CSV (overrides config)")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="WARNING",
                        help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command", help="RTM command")

    report.register(sub)
    graph_commands.register(sub)
    checks.register(sub)
    init_project.register(sub)
    config_command.register(sub)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    if args.no_color:
        set_color_enabled(False)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args) or 0
    except ExitCodeError as exc:
        if exc.message:
            print(exc.message, file=sys.stderr)
        return exc.exit_code
    except RTMXError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
