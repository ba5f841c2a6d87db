"""``rtmx status`` and ``rtmx backlog``: completion reports over the RTM."""

from typing import Dict, List, Optional

from rtmx.cli.common import load_project_database
from rtmx.cli.output_formatter import (
    C,
    colorize_priority,
    format_header,
    format_progress_bar,
    format_section,
    format_status_bar,
    format_table,
    percent_style,
    status_icon,
    truncate,
)
from rtmx.config import RTMXConfig
from rtmx.database.database import Database, completion_of
from rtmx.database.enums import Status
from rtmx.database.requirement import Requirement
from rtmx.errors import SchemaError
from rtmx.graph.dependency_graph import DependencyGraph

WIDTH = 80

BACKLOG_VIEWS = ("all", "critical", "quick-wins", "blockers", "list")


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------

def _counts(reqs: List[Requirement]) -> Dict[str, int]:
    complete = sum(1 for r in reqs if r.status is Status.COMPLETE)
    partial = sum(1 for r in reqs if r.status is Status.PARTIAL)
    return {"complete": complete, "partial": partial,
            "missing": len(reqs) - complete - partial}


def _count_line(counts: Dict[str, int]) -> str:
    return (f"{status_icon(Status.COMPLETE)} {counts['complete']} complete  "
            f"{status_icon(Status.PARTIAL)} {counts['partial']} partial  "
            f"{status_icon(Status.MISSING)} {counts['missing']} missing")


def _completion_icon(percent: float) -> str:
    if percent >= 100:
        return status_icon(Status.COMPLETE)
    if percent > 0:
        return status_icon(Status.PARTIAL)
    return status_icon(Status.MISSING)


def _overview(db: Database, title: str) -> List[str]:
    counts = _counts(db.all())
    return [
        format_header(title, WIDTH),
        "",
        f"Requirements: {format_progress_bar(db.completion_percentage(), 50)}",
        "",
        f"{_count_line(counts)}",
        f"({len(db)} total)",
        "",
    ]


def _footer(db: Database) -> str:
    counts = _counts(db.all())
    return format_header(
        f"{counts['complete']} complete, {counts['partial']} partial, "
        f"{counts['missing']} missing ({db.completion_percentage():.1f}%)", WIDTH)


def render_summary(db: Database, config: RTMXConfig) -> str:
    """Overall progress plus one line per assigned phase."""
    lines = _overview(db, "RTM Status Check")
    phases = {p: reqs for p, reqs in db.by_phase().items() if p > 0}
    if phases:
        lines += [format_section("Phase Status", WIDTH), ""]
        for phase, reqs in phases.items():
            pct = completion_of(reqs)
            c = _counts(reqs)
            lines.append(
                f"Phase {phase} ({config.phase_description(phase)}): {pct:6.1f}%  "
                f"{format_status_bar(c['complete'], c['partial'], c['missing'], 20)}  "
                f"({c['complete']} complete, {c['partial']} partial, {c['missing']} missing)")
        lines.append("")
    lines.append(_footer(db))
    return "\n".join(lines)


def render_by_category(db: Database, config: RTMXConfig) -> str:
    lines = _overview(db, "RTM Status Check")
    lines += ["Requirements by Category:", ""]
    grouped = db.by_category()
    name_width = max((len(cat) for cat in grouped), default=10)
    for category, reqs in grouped.items():
        pct = completion_of(reqs)
        c = _counts(reqs)
        lines.append(
            f"  {_completion_icon(pct)} {category.ljust(name_width)} "
            f"{C.wrap(f'{pct:6.1f}%', percent_style(pct))}   "
            f"{c['complete']} complete   {c['partial']} partial   {c['missing']} missing")
    lines += ["", _footer(db)]
    return "\n".join(lines)


def render_by_phase(db: Database, config: RTMXConfig) -> str:
    lines = [format_header("RTM Status by Phase and Category", WIDTH)]
    for phase, reqs in db.by_phase().items():
        pct = completion_of(reqs)
        label = config.phase_description(phase) if phase else "Unassigned"
        lines.append("")
        lines.append(f"{_completion_icon(pct)} Phase {phase}: {label} "
                     f"{C.wrap(f'({pct:.1f}%)', percent_style(pct))}")
        by_cat: Dict[str, List[Requirement]] = {}
        for req in reqs:
            by_cat.setdefault(req.category, []).append(req)
        for category in sorted(by_cat):
            cat_reqs = by_cat[category]
            cat_pct = completion_of(cat_reqs)
            lines.append(f"  {category}: {format_progress_bar(cat_pct, 20)} "
                         f"({len(cat_reqs)} reqs)")
    lines += ["", _footer(db)]
    return "\n".join(lines)


def render_detailed(db: Database, config: RTMXConfig) -> str:
    lines = [
        format_header("RTM Detailed Status", WIDTH),
        "",
        f"Overall: {format_progress_bar(db.completion_percentage(), 30)} "
        f"({len(db)} requirements)",
        "",
    ]
    for phase, reqs in db.by_phase().items():
        label = config.phase_description(phase) if phase else "Unassigned"
        lines.append(format_section(
            f"Phase {phase}: {label} ({completion_of(reqs):.1f}%)", WIDTH))
        for req in reqs:
            lines.append(f"  {status_icon(req.status)} {req.req_id} "
                         f"[{colorize_priority(req.priority)}] "
                         f"{truncate(req.requirement_text, 50)}")
        lines.append("")
    lines.append(_footer(db))
    return "\n".join(lines)


STATUS_RENDERERS = (render_summary, render_by_category, render_by_phase, render_detailed)


def cmd_status(args) -> int:
    config, db = load_project_database(args)
    level = min(max(args.verbose, 0), len(STATUS_RENDERERS) - 1)
    print(STATUS_RENDERERS[level](db, config))
    return 0


# ---------------------------------------------------------------------------
# backlog
# ---------------------------------------------------------------------------

def _incomplete_dependents(graph: DependencyGraph, req_id: str) -> int:
    return sum(1 for dep in graph.dependents(req_id) if graph.db.require(dep).is_incomplete)


def backlog_items(db: Database, view: str = "all", phase: Optional[int] = None,
                  category: Optional[str] = None, limit: int = 0) -> List[Requirement]:
    """Incomplete requirements for a backlog view.

    Views:
        all / list   priority, then phase, then ReqID
        critical     P0/HIGH, or directly holding up two or more incomplete requirements
        quick-wins   P0/HIGH with a known effort of at most one week, cheapest first
        blockers     anything holding up incomplete work, most blocked first
    """
    if view not in BACKLOG_VIEWS:
        raise SchemaError(f"unknown backlog view {view!r} (valid: {', '.join(BACKLOG_VIEWS)})")

    reqs = [r for r in db.backlog()
            if (not phase or r.phase == phase) and (not category or r.category == category)]
    graph = DependencyGraph(db)

    if view == "critical":
        reqs = [r for r in reqs
                if r.is_high_priority or _incomplete_dependents(graph, r.req_id) >= 2]
    elif view == "quick-wins":
        reqs = [r for r in reqs if 0 < r.effort_weeks <= 1.0 and r.is_high_priority]
        reqs.sort(key=lambda r: (r.effort_weeks, r.priority.weight))
    elif view == "blockers":
        counted = [(r, _incomplete_dependents(graph, r.req_id)) for r in reqs]
        counted = [item for item in counted if item[1] > 0]
        counted.sort(key=lambda item: -item[1])
        reqs = [r for r, _ in counted]

    if limit and limit > 0:
        reqs = reqs[:limit]
    return reqs


def render_backlog(db: Database, reqs: List[Requirement], view: str,
                   config: RTMXConfig) -> str:
    if view == "list":
        return "\n".join(f"{r.req_id}  {r.requirement_text}" for r in reqs)

    graph = DependencyGraph(db)
    titles = {
        "all": "Prioritized Backlog",
        "critical": "Critical Path",
        "quick-wins": "Quick Wins",
        "blockers": "Blockers",
    }
    lines = [format_header(titles[view], WIDTH), ""]
    if not reqs:
        lines.append(f"{status_icon(Status.COMPLETE)} Nothing to show")
        return "\n".join(lines)

    rows = []
    for i, req in enumerate(reqs, 1):
        blocked = graph.is_blocked(req.req_id)
        rows.append([
            i,
            req.req_id,
            req.status.value,
            req.priority.value,
            req.phase or "-",
            f"{req.effort_weeks:g}w" if req.effort_weeks else "-",
            _incomplete_dependents(graph, req.req_id),
            "BLOCKED" if blocked else "",
            truncate(req.requirement_text, 40),
        ])
    lines.append(format_table(
        ["#", "Requirement", "Status", "Priority", "Phase", "Effort", "Blocks", "", "Description"],
        rows))
    total_effort = sum(r.effort_weeks for r in reqs)
    lines += ["", f"{len(reqs)} requirement(s), {total_effort:g} week(s) estimated effort"]
    return "\n".join(lines)


def cmd_backlog(args) -> int:
    config, db = load_project_database(args)
    reqs = backlog_items(db, args.view, phase=args.phase, category=args.category,
                         limit=args.limit)
    print(render_backlog(db, reqs, args.view, config))
    return 0


def register(sub) -> None:
    p_status = sub.add_parser("status", help="Show RTM completion status")
    p_status.add_argument("-v", "--verbose", action="count", default=0,
                          help="-v by category, -vv by phase and category, -vvv per requirement")
    p_status.set_defaults(func=cmd_status)

    p_backlog = sub.add_parser("backlog", help="Show the prioritized backlog")
    p_backlog.add_argument("--view", choices=BACKLOG_VIEWS, default="all", help="View mode")
    p_backlog.add_argument("--phase", type=int, help="Filter by phase number")
    p_backlog.add_argument("--category", help="Filter by category")
    p_backlog.add_argument("-n", "--limit", type=int, default=0, help="Limit number of results")
    p_backlog.set_defaults(func=cmd_backlog)
