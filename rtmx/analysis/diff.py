#!/usr/bin/env python3
"""Compare two RTM database snapshots.

The overall summary is decided top-down, so a removal always wins:

  any requirement removed   -> BREAKING  (exit 2)
  any status regressed      -> REGRESSED (exit 1)
  any improved or added     -> IMPROVED  (exit 0)
  otherwise                 -> STABLE    (exit 0)

Usage:
    from rtmx.analysis.diff import compare_databases, render_markdown

    result = compare_databases(Database.load("baseline.csv"), Database.load("rtm.csv"))
    print(render_markdown(result))
    sys.exit(result.exit_code)
"""

from typing import List, Tuple

from rtmx.database.database import Database
from rtmx.database.enums import Status
from rtmx.verification.data_types import ChangedField, DiffResult, SnapshotStats

# Fields compared for requirements present in both snapshots
DIFF_FIELDS = ("status", "priority", "phase", "dependencies", "blocks", "test_function")

SUMMARY_EXIT_CODES = {
    "BREAKING": 2,
    "REGRESSED": 1,
    "IMPROVED": 0,
    "STABLE": 0,
}


def snapshot_stats(db: Database) -> SnapshotStats:
    counts = db.status_counts()
    return SnapshotStats(
        path=db.path,
        total=len(db),
        completion=db.completion_percentage(),
        complete=counts[Status.COMPLETE],
        partial=counts[Status.PARTIAL],
        missing=counts[Status.MISSING] + counts[Status.NOT_STARTED],
    )


def _field_text(req, name: str) -> str:
    value = getattr(req, name)
    if name in ("dependencies", "blocks"):
        return value.serialize()
    if name == "phase":
        return str(value) if value else ""
    return str(value)


def classify(removed: int, regressed: int, improved: int, added: int) -> Tuple[str, int]:
    """Summary label and exit code for a set of diff counters."""
    if removed:
        summary = "BREAKING"
    elif regressed:
        summary = "REGRESSED"
    elif improved or added:
        summary = "IMPROVED"
    else:
        summary = "STABLE"
    return summary, SUMMARY_EXIT_CODES[summary]


def compare_databases(baseline: Database, current: Database) -> DiffResult:
    """Structural diff of *current* against *baseline*."""
    added = [req.req_id for req in current if req.req_id not in baseline]
    removed = [req.req_id for req in baseline if req.req_id not in current]

    changed: List[ChangedField] = []
    improved = regressed = 0
    for req in current:
        old = baseline.get(req.req_id)
        if old is None:
            continue
        for name in DIFF_FIELDS:
            old_text = _field_text(old, name)
            new_text = _field_text(req, name)
            if old_text != new_text:
                changed.append(ChangedField(req_id=req.req_id, field=name,
                                            old_value=old_text, new_value=new_text))
        if req.status.completion_percent > old.status.completion_percent:
            improved += 1
        elif req.status.is_regression_from(old.status):
            regressed += 1

    summary, exit_code = classify(len(removed), regressed, improved, len(added))
    return DiffResult(
        baseline=snapshot_stats(baseline),
        current=snapshot_stats(current),
        added=added,
        removed=removed,
        changed=changed,
        improved=improved,
        regressed=regressed,
        summary=summary,
        exit_code=exit_code,
    )


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------

def render_json(result: DiffResult) -> str:
    return result.model_dump_json(indent=2) + "\n"


def render_markdown(result: DiffResult) -> str:
    lines = [
        "# RTM Database Comparison",
        "",
        "## Statistics",
        "",
        "| Metric | Baseline | Current |",
        "|--------|----------|---------|",
        f"| Total | {result.baseline.total} | {result.current.total} |",
        f"| Complete | {result.baseline.complete} | {result.current.complete} |",
        f"| Completion | {result.baseline.completion:.1f}% | {result.current.completion:.1f}% |",
        "",
    ]
    if result.added:
        lines += ["## Added", ""] + [f"- {req_id}" for req_id in result.added] + [""]
    if result.removed:
        lines += ["## Removed", ""] + [f"- {req_id}" for req_id in result.removed] + [""]
    if result.changed:
        lines += [
            "## Changed",
            "",
            "| Requirement | Field | Old | New |",
            "|-------------|-------|-----|-----|",
        ]
        lines += [f"| {c.req_id} | {c.field} | {c.old_value} | {c.new_value} |"
                  for c in result.changed]
        lines.append("")
    lines += [
        f"## Summary: {result.summary}",
        "",
        f"- {result.improved} improved",
        f"- {result.regressed} regressed",
        f"- {len(result.added)} added",
        f"- {len(result.removed)} removed",
    ]
    return "\n".join(lines) + "\n"


def render_terminal(result: DiffResult, width: int = 80) -> str:
    """Colored report for an interactive terminal."""
    from rtmx.cli.output_formatter import C, format_header

    summary_styles = {
        "IMPROVED": "green",
        "STABLE": "cyan",
        "REGRESSED": "yellow",
        "BREAKING": "red",
    }
    b, c = result.baseline, result.current
    lines = [
        format_header("RTM Database Comparison", width),
        "",
        "Statistics:",
        f"  {'':<20} {'Baseline':>10}  ->  {'Current':<10}",
        f"  {'Total requirements:':<20} {b.total:>10}  ->  {c.total:<10}",
        f"  {'Complete:':<20} {b.complete:>10}  ->  {c.complete:<10}",
        f"  {'Completion:':<20} {b.completion:>9.1f}%  ->  {c.completion:.1f}%",
        "",
    ]
    if result.added:
        lines.append(f"{C.wrap('+', 'green')} Added ({len(result.added)}):")
        lines += [f"    {C.wrap('+', 'green')} {req_id}" for req_id in result.added]
        lines.append("")
    if result.removed:
        lines.append(f"{C.wrap('-', 'red')} Removed ({len(result.removed)}):")
        lines += [f"    {C.wrap('-', 'red')} {req_id}" for req_id in result.removed]
        lines.append("")
    if result.changed:
        lines.append(f"{C.wrap('~', 'yellow')} Changed ({len(result.changed)}):")
        for change in result.changed:
            arrow = C.wrap("->", "yellow") if change.field == "status" else "->"
            lines.append(f"    {C.wrap('~', 'yellow')} {change.req_id}.{change.field}: "
                         f"{change.old_value} {arrow} {change.new_value}")
        lines.append("")
    lines += [
        "-" * width,
        f"Result: {C.wrap(result.summary, summary_styles[result.summary])}",
        f"  {result.improved} improved, {result.regressed} regressed, "
        f"{len(result.added)} added, {len(result.removed)} removed",
    ]
    return "\n".join(lines) + "\n"


RENDERERS = {
    "terminal": render_terminal,
    "markdown": render_markdown,
    "json": render_json,
}
