"""``rtmx config``: show or validate the effective configuration.

Usage:
    rtmx config                  # merged defaults + rtmx.yaml
    rtmx config --format yaml
    rtmx config --validate       # exit 1 if the database is missing
"""

import json
import logging
from typing import List, Tuple

import yaml

from rtmx.cli.common import database_path, get_config
from rtmx.cli.output_formatter import C, format_header, format_kv
from rtmx.config import RTMXConfig
from rtmx.errors import ExitCodeError

logger = logging.getLogger("rtmx.cli.config")

WIDTH = 80
CONFIG_FORMATS = ("terminal", "yaml", "json")


def render_config(config: RTMXConfig, db_path=None) -> str:
    lines = [format_header("RTMX Configuration", WIDTH), ""]
    lines.append(format_kv([
        ("Config file", config.path or "(defaults)"),
        ("Database", db_path or config.database_path()),
        ("Requirements dir", config.requirements_path()),
    ], title="Paths"))
    lines += ["", format_kv([("Type", config.schema)], title="Schema")]
    if config.phases:
        lines += ["", format_kv([(str(n), name) for n, name in sorted(config.phases.items())],
                                title="Phases")]
    pytest_cfg = config.data.get("pytest") or {}
    lines += ["", format_kv([
        ("Marker prefix", config.marker_prefix),
        ("Register markers", bool(pytest_cfg.get("register_markers", True))),
    ], title="Pytest")]
    return "\n".join(lines)


def check_config(config: RTMXConfig, db_path=None) -> Tuple[List[str], List[str], List[str]]:
    """Return (passed, warnings, errors) for the configured paths."""
    passed, warnings, errors = [], [], []
    if config.path:
        passed.append(f"Config file: {config.path}")
    else:
        warnings.append("Config file not found (using defaults)")

    db_path = db_path or config.database_path()
    if db_path.is_file():
        passed.append(f"Database: {db_path}")
    else:
        errors.append(f"Database not found: {db_path}")

    req_dir = config.requirements_path()
    if req_dir.is_dir():
        passed.append(f"Requirements dir: {req_dir}")
    else:
        warnings.append(f"Requirements directory not found: {req_dir}")
    return passed, warnings, errors


def render_check(passed: List[str], warnings: List[str], errors: List[str]) -> str:
    lines = [format_header("Configuration Validation", WIDTH), ""]
    lines += [f"  {C.wrap('[PASS]', 'green')} {item}" for item in passed]
    lines += [f"  {C.wrap('[FAIL]', 'red')} {item}" for item in errors]
    lines += [f"  {C.wrap('[WARN]', 'yellow')} {item}" for item in warnings]
    lines.append("")
    if errors:
        lines.append(f"Status: {C.wrap('INVALID', 'red')}")
    elif warnings:
        lines.append(f"Status: {C.wrap('VALID (with warnings)', 'yellow')}")
    else:
        lines.append(f"Status: {C.wrap('VALID', 'green')}")
    return "\n".join(lines)


def cmd_config(args) -> int:
    config = get_config(args)
    db_path = database_path(args)

    if args.validate:
        passed, warnings, errors = check_config(config, db_path)
        print(render_check(passed, warnings, errors))
        if errors:
            raise ExitCodeError(1, "configuration validation failed")
        return 0

    if args.format == "json":
        print(json.dumps(config.to_dict(), indent=2, default=str))
    elif args.format == "yaml":
        print(yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False), end="")
    else:
        print(render_config(config, db_path))
    return 0


def register(sub) -> None:
    p_config = sub.add_parser("config", help="Show or validate RTMX configuration")
    p_config.add_argument("--validate", action="store_true",
                          help="Check that configured paths exist")
    p_config.add_argument("--format", choices=CONFIG_FORMATS, default="terminal",
                          help="Output format")
    p_config.set_defaults(func=cmd_config)
