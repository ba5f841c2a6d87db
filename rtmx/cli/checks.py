"""``rtmx verify``, ``rtmx diff``, ``rtmx validate-staged`` and ``rtmx health``.

These are the commands meant for CI and hooks, so each one ends in a
meaningful exit code:

    verify           1 if any linked test failed
    diff             0 stable/improved, 1 regressed, 2 breaking
    validate-staged  1 if any file has errors
    health           0 healthy, 1 warnings, 2 failures
"""

import logging
from typing import List

from rtmx.analysis.diff import RENDERERS, compare_databases
from rtmx.analysis.health import run_health
from rtmx.cli.common import database_path, load_project_database, write_output
from rtmx.cli.output_formatter import (
    C,
    colorize_status,
    format_banner,
    format_header,
    format_list,
    format_table,
    status_icon,
)
from rtmx.database.csv_store import load_database
from rtmx.errors import ExitCodeError
from rtmx.validation.validator import validate_files
from rtmx.verification.data_types import HealthResult, VerificationResult
from rtmx.verification.events import DEFAULT_TEST_COMMAND, load_events, run_test_command
from rtmx.verification.verifier import any_failed, apply_results, summarize, verify

logger = logging.getLogger("rtmx.cli.checks")

WIDTH = 80


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------

def resolve_test_command(args) -> str:
    if args.test_command:
        return args.test_command
    if args.test_path:
        return f"go test -json {args.test_path}"
    return DEFAULT_TEST_COMMAND


def render_verification(results: List[VerificationResult], verbose: bool = False) -> str:
    summary = summarize(results)
    lines = [format_header("RTM Verification", WIDTH), ""]

    changed = [r for r in results if r.updated]
    if changed:
        lines.append("Status changes:")
        for r in changed:
            lines.append(f"  {r.req_id}: {colorize_status(r.previous_status.value)} -> "
                         f"{colorize_status(r.new_status.value)}")
        lines.append("")

    if verbose:
        rows = [[r.req_id, r.test_function, r.tests_passed, r.tests_failed,
                 r.tests_skipped, r.new_status.value] for r in results]
        if rows:
            lines += [format_table(["Requirement", "Test", "Pass", "Fail", "Skip", "Status"],
                                   rows), ""]

    failing = [r for r in results if r.failing]
    if failing:
        lines.append(f"{C.wrap('Failing requirements:', 'red', 'bold')}")
        for r in failing:
            lines.append(f"  {status_icon('MISSING')} {r.req_id} ({r.tests_failed} failed: "
                         f"{', '.join(r.matched_tests)})")
        lines.append("")

    lines.append(f"{len(results)} requirement(s) with tests: "
                 f"{summary['passing']} passing, {summary['failing']} failing, "
                 f"{summary['untested']} without results, {summary['updated']} to update")
    return "\n".join(lines)


def cmd_verify(args) -> int:
    _, db = load_project_database(args)

    if args.results:
        events = load_events(args.results)
    else:
        events = run_test_command(resolve_test_command(args))
    logger.info("Collected %d test event(s)", len(events))

    results = verify(db, events)
    print(render_verification(results, verbose=args.verbose))

    if args.update and not args.dry_run:
        changed = apply_results(db, results)
        if changed:
            db.save()
            print(f"\nUpdated {len(changed)} requirement(s) in {db.path}")
        else:
            print("\nNo status changes to write")
    elif args.update:
        print("\nDry run: database not modified")

    if any_failed(results):
        raise ExitCodeError(1)
    return 0


# ---------------------------------------------------------------------------
# diff
# ---------------------------------------------------------------------------

def cmd_diff(args) -> int:
    baseline = load_database(args.baseline)
    current = load_database(args.current) if args.current else load_database(database_path(args))
    result = compare_databases(baseline, current)
    write_output(RENDERERS[args.format](result), args.output)
    if result.exit_code:
        raise ExitCodeError(result.exit_code)
    return 0


# ---------------------------------------------------------------------------
# validate-staged
# ---------------------------------------------------------------------------

def cmd_validate_staged(args) -> int:
    results = validate_files(args.files)
    if not results:
        if args.verbose:
            print("No RTM database files to validate")
        return 0

    failed = {path: errors for path, errors in results.items() if errors}
    if args.verbose:
        for path, errors in results.items():
            if not errors:
                print(f"{status_icon('COMPLETE')} {path}")
    if failed:
        print(f"{C.wrap('RTM validation failed:', 'red', 'bold')}")
        for errors in failed.values():
            print(format_list(errors, bullet="✗"))
        raise ExitCodeError(1)
    if args.verbose:
        print(f"{status_icon('COMPLETE')} {len(results)} file(s) valid")
    return 0


# ---------------------------------------------------------------------------
# health
# ---------------------------------------------------------------------------

_HEALTH_BANNERS = {"HEALTHY": "healthy", "WARNING": "warning", "UNHEALTHY": "critical"}


def render_health(result: HealthResult) -> str:
    rows = [[check.name, check.status, check.message] for check in result.checks]
    s = result.summary
    lines = [
        format_banner(_HEALTH_BANNERS[result.status], f"RTM Health: {result.status}"),
        "",
        format_table(["Check", "Result", "Details"], rows),
        "",
        f"{s.get('passed', 0)} passed, {s.get('warnings', 0)} warning(s), "
        f"{s.get('failed', 0)} failed, {s.get('skipped', 0)} skipped",
    ]
    if result.stats:
        lines.append(f"{result.stats['total']} requirements, "
                     f"{result.stats['completion_percent']:.1f}% complete")
    return "\n".join(lines)


def cmd_health(args) -> int:
    result = run_health(database_path(args))
    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        print(render_health(result))
    if result.exit_code:
        raise ExitCodeError(result.exit_code)
    return 0


def register(sub) -> None:
    p_verify = sub.add_parser("verify", help="Derive requirement status from test results")
    p_verify.add_argument("test_path", nargs="?", help="Package pattern passed to go test")
    p_verify.add_argument("--update", action="store_true", help="Write status changes")
    p_verify.add_argument("--dry-run", action="store_true",
                          help="With --update, report changes without writing")
    p_verify.add_argument("--command", dest="test_command",
                          help=f"Test command (default: {DEFAULT_TEST_COMMAND})")
    p_verify.add_argument("--results",
                          help="Read existing results (go JSON lines, pytest JSON or JUnit XML)")
    p_verify.add_argument("-v", "--verbose", action="store_true", help="Per-requirement table")
    p_verify.set_defaults(func=cmd_verify)

    p_diff = sub.add_parser("diff", help="Compare two RTM database snapshots")
    p_diff.add_argument("baseline", help="Baseline database CSV")
    p_diff.add_argument("current", nargs="?", help="Current database CSV (default: configured)")
    p_diff.add_argument("--format", choices=sorted(RENDERERS), default="terminal",
                        help="Output format")
    p_diff.add_argument("-o", "--output", help="Write the report to a file")
    p_diff.set_defaults(func=cmd_diff)

    p_staged = sub.add_parser("validate-staged", help="Validate RTM CSV files (pre-commit)")
    p_staged.add_argument("files", nargs="*", help="Files to validate; non-CSV files are ignored")
    p_staged.add_argument("-v", "--verbose", action="store_true", help="Report passing files")
    p_staged.set_defaults(func=cmd_validate_staged)

    p_health = sub.add_parser("health", help="Run RTM health checks")
    p_health.add_argument("--json", action="store_true", help="JSON output")
    p_health.set_defaults(func=cmd_health)
