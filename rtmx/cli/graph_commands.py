"""``rtmx deps``, ``rtmx cycles`` and ``rtmx reconcile``."""

import json
import logging
from typing import List

from rtmx.cli.common import load_project_database
from rtmx.cli.output_formatter import (
    C,
    colorize_status,
    format_header,
    format_kv,
    format_section,
    format_table,
    status_icon,
    truncate,
)
from rtmx.database.database import Database
from rtmx.errors import ExitCodeError, RequirementNotFoundError
from rtmx.graph.cycles import find_cycle_path, find_cycles
from rtmx.graph.dependency_graph import DependencyGraph
from rtmx.graph.reciprocity import reconcile_reciprocity

logger = logging.getLogger("rtmx.cli.graph")

WIDTH = 80


# ---------------------------------------------------------------------------
# deps
# ---------------------------------------------------------------------------

def _req_line(db: Database, req_id: str, indent: str = "  ") -> str:
    req = db.require(req_id)
    return (f"{indent}{status_icon(req.status)} {req_id} "
            f"{colorize_status(req.status)}  {truncate(req.requirement_text, 45)}")


def render_requirement_deps(db: Database, graph: DependencyGraph, req_id: str,
                            reverse: bool = False, transitive: bool = False) -> str:
    """Dependencies (or dependents, with *reverse*) of one requirement."""
    if req_id not in db:
        raise RequirementNotFoundError(req_id, path=db.path)
    req = db.require(req_id)

    if reverse:
        ids = graph.transitive_dependents(req_id) if transitive else graph.dependents(req_id)
        label = "Transitive dependents" if transitive else "Dependents"
    else:
        ids = (graph.transitive_dependencies(req_id) if transitive
               else graph.dependencies(req_id))
        label = "Transitive dependencies" if transitive else "Dependencies"

    lines = [
        format_header(f"{req_id}: {truncate(req.requirement_text, 60)}", WIDTH),
        "",
        format_kv({"Status": req.status.value, "Priority": req.priority.value,
                   "Phase": req.phase or "-"}),
        "",
        f"{label} ({len(ids)}):",
    ]
    if ids:
        lines += [_req_line(db, dep) for dep in ids]
    else:
        lines.append("  (none)")

    if not reverse:
        outside = [dep for dep in req.dependencies if dep not in graph]
        if outside:
            lines += ["", "Outside this database:"]
            lines += [f"  {C.wrap(dep, 'dim')}" for dep in outside]
        blocking = graph.blocking_dependencies(req_id)
        if blocking:
            lines += ["", f"{C.wrap('BLOCKED', 'red', 'bold')} by: {', '.join(blocking)}"]
    return "\n".join(lines)


def render_workable(db: Database, graph: DependencyGraph) -> str:
    workable = graph.next_workable()
    lines = [format_header("Workable Requirements", WIDTH), ""]
    if not workable:
        lines.append("  (none)")
    else:
        lines += [_req_line(db, req_id) for req_id in workable]
    lines += ["", f"{len(workable)} requirement(s) ready to start"]
    return "\n".join(lines)


def render_overview(db: Database, graph: DependencyGraph) -> str:
    """Every requirement with its dependency counts, plus graph statistics."""
    rows: List[list] = []
    for req in db:
        deps = graph.dependencies(req.req_id)
        rows.append([
            req.req_id,
            req.status.value,
            len(deps),
            len(graph.dependents(req.req_id)),
            "BLOCKED" if req.is_incomplete and graph.is_blocked(req.req_id) else "",
            truncate(req.requirement_text, 35),
        ])
    stats = graph.statistics()
    lines = [
        format_table(["Requirement", "Status", "Deps", "Blocks", "", "Description"], rows,
                     title="Dependency Overview"),
        "",
        format_section("Graph Statistics", WIDTH),
        format_kv({
            "Requirements": stats["nodes"],
            "Dependency edges": stats["edges"],
            "Roots": stats["roots"],
            "Leaves": stats["leaves"],
            "Avg dependencies": stats["avg_dependencies"],
        }),
    ]
    critical = graph.critical_path(limit=5)
    if critical:
        lines += ["", "Top blockers:"]
        scores = graph.blocker_scores()
        lines += [f"  {req_id}  blocks {scores[req_id]}" for req_id in critical]
    return "\n".join(lines)


def cmd_deps(args) -> int:
    _, db = load_project_database(args)
    graph = DependencyGraph(db)
    if args.workable:
        print(render_workable(db, graph))
    elif args.req_id:
        print(render_requirement_deps(db, graph, args.req_id,
                                      reverse=args.reverse, transitive=args.all))
    else:
        print(render_overview(db, graph))
    return 0


# ---------------------------------------------------------------------------
# cycles
# ---------------------------------------------------------------------------

def cycle_report(graph: DependencyGraph) -> dict:
    """Cycles as ``{"count": N, "cycles": [{"members": [...], "path": [...]}]}``."""
    cycles = []
    for members in find_cycles(graph):
        cycles.append({
            "members": sorted(members),
            "path": find_cycle_path(graph, sorted(members)),
        })
    return {"count": len(cycles), "cycles": cycles}


def render_cycles(report: dict) -> str:
    lines = [format_header("Circular Dependency Check", WIDTH), ""]
    if not report["count"]:
        lines.append(f"{status_icon('COMPLETE')} No circular dependencies found")
        return "\n".join(lines)
    lines.append(f"{C.wrap('✗', 'red')} Found {report['count']} circular dependency group(s)")
    for i, cycle in enumerate(report["cycles"], 1):
        lines += [
            "",
            f"Cycle {i} ({len(cycle['members'])} requirement(s)):",
            f"  Members: {', '.join(cycle['members'])}",
        ]
        if cycle["path"]:
            lines.append(f"  Path:    {' -> '.join(cycle['path'])}")
    lines += ["", "Break each cycle by removing one dependency, then run 'rtmx reconcile'."]
    return "\n".join(lines)


def cmd_cycles(args) -> int:
    _, db = load_project_database(args)
    report = cycle_report(DependencyGraph(db))
    if args.json:
        print(json.dumps(report, indent=2))
    else:
        print(render_cycles(report))
    if report["count"]:
        raise ExitCodeError(1)
    return 0


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------

def cmd_reconcile(args) -> int:
    _, db = load_project_database(args)
    fixes = reconcile_reciprocity(db, execute=args.execute)

    print(format_header("Dependency Reciprocity", WIDTH))
    print()
    if not fixes:
        print(f"{status_icon('COMPLETE')} All dependencies have reciprocal blocks")
        return 0

    verb = "Applied" if args.execute else "Would apply"
    print(f"{verb} {len(fixes)} fix(es):")
    for fix in fixes:
        print(f"  {fix.describe()}")

    if args.execute:
        db.save()
        print()
        print(f"Saved {db.path}")
    else:
        print()
        print("Dry run. Re-run with --execute to write the changes.")
    return 0


def register(sub) -> None:
    p_deps = sub.add_parser("deps", help="Show requirement dependencies")
    p_deps.add_argument("req_id", nargs="?", help="Requirement to inspect")
    p_deps.add_argument("-r", "--reverse", action="store_true",
                        help="Show what depends on the requirement instead")
    p_deps.add_argument("-a", "--all", action="store_true", help="Follow edges transitively")
    p_deps.add_argument("-w", "--workable", action="store_true",
                        help="List incomplete requirements with no blocking dependencies")
    p_deps.set_defaults(func=cmd_deps)

    p_cycles = sub.add_parser("cycles", help="Detect circular dependencies")
    p_cycles.add_argument("--json", action="store_true", help="JSON output")
    p_cycles.set_defaults(func=cmd_cycles)

    p_reconcile = sub.add_parser("reconcile", help="Add missing dependency/blocks mirrors")
    p_reconcile.add_argument("--execute", action="store_true",
                             help="Write the fixes (default is a dry run)")
    p_reconcile.set_defaults(func=cmd_reconcile)
