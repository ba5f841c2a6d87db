#!/usr/bin/env python3
"""RTMX health check: validates that an RTM database is in a usable state.

Checks performed:
1. rtm_loads      database file loads                      FAIL (blocking)
2. req_id_format  IDs look like REQ-<CATEGORY>-<NNN>       WARN
3. orphaned_deps  dependencies resolve (``@`` excluded)    FAIL (blocking)
4. reciprocity    every dependency has a mirror ``blocks`` WARN
5. test_coverage  >= 80% of requirements name a test       WARN
6. cycles         no circular dependencies                 FAIL (blocking)
7. blocked        count of blocked incomplete requirements PASS (informational)

Exit codes: 0 = healthy, 1 = warnings, 2 = failures
"""

import logging
from typing import Dict, List

from rtmx.database.csv_store import load_database
from rtmx.database.database import Database
from rtmx.database.enums import Status
from rtmx.database.requirement import is_cross_db_ref, is_valid_req_id
from rtmx.errors import RTMXError
from rtmx.graph.cycles import find_cycles
from rtmx.graph.dependency_graph import DependencyGraph
from rtmx.graph.reciprocity import find_reciprocity_violations
from rtmx.verification.data_types import HealthCheck, HealthResult

logger = logging.getLogger("rtmx.analysis.health")

TEST_COVERAGE_THRESHOLD = 80.0

CHECK_NAMES = (
    "rtm_loads",
    "req_id_format",
    "orphaned_deps",
    "reciprocity",
    "test_coverage",
    "cycles",
    "blocked",
)


def check_req_id_format(db: Database) -> HealthCheck:
    """Warn about IDs that do not follow the REQ-<CATEGORY>-<NNN> pattern."""
    bad = [req.req_id for req in db if not is_valid_req_id(req.req_id)]
    if bad:
        return HealthCheck(
            name="req_id_format", status="WARN",
            message=f"Non-standard requirement IDs: {len(bad)}",
            details={"ids": bad},
        )
    return HealthCheck(name="req_id_format", status="PASS",
                       message="All requirement IDs follow REQ-<CATEGORY>-<NNN>")


def check_orphaned_deps(db: Database) -> HealthCheck:
    """Fail when a dependency names a requirement that does not exist."""
    orphaned = []
    for req in db:
        for dep in req.dependencies:
            if not is_cross_db_ref(dep) and dep not in db:
                orphaned.append(f"{req.req_id} depends on non-existent {dep}")
    if orphaned:
        return HealthCheck(
            name="orphaned_deps", status="FAIL", blocking=True,
            message=f"Orphaned dependencies: {len(orphaned)} errors",
            details={"errors": orphaned},
        )
    return HealthCheck(name="orphaned_deps", status="PASS", message="No orphaned dependencies")


def check_reciprocity(db: Database) -> HealthCheck:
    fixes = find_reciprocity_violations(db)
    if fixes:
        return HealthCheck(
            name="reciprocity", status="WARN",
            message=f"Reciprocity violations: {len(fixes)}",
            details={"fixes": [fix.describe() for fix in fixes]},
        )
    return HealthCheck(name="reciprocity", status="PASS",
                       message="All dependencies have reciprocal blocks")


def check_test_coverage(db: Database) -> HealthCheck:
    total = len(db)
    with_tests = sum(1 for req in db if req.has_test)
    coverage = with_tests / total * 100 if total else 0.0
    details = {"coverage": round(coverage, 1), "with_tests": with_tests,
               "without_tests": total - with_tests}
    if coverage >= TEST_COVERAGE_THRESHOLD:
        return HealthCheck(
            name="test_coverage", status="PASS", details=details,
            message=f"Test coverage: {coverage:.1f}% ({with_tests} requirements)",
        )
    return HealthCheck(
        name="test_coverage", status="WARN", details=details,
        message=f"Test coverage: {coverage:.1f}% ({total - with_tests} requirements without tests)",
    )


def check_cycles(graph: DependencyGraph) -> HealthCheck:
    cycles = find_cycles(graph)
    if cycles:
        return HealthCheck(
            name="cycles", status="FAIL", blocking=True,
            message=f"Circular dependencies: {len(cycles)} cycle(s)",
            details={"cycles": [sorted(members) for members in cycles]},
        )
    return HealthCheck(name="cycles", status="PASS", message="No circular dependencies detected")


def check_blocked(graph: DependencyGraph) -> HealthCheck:
    blocked = [req.req_id for req in graph.db if req.is_incomplete and graph.is_blocked(req.req_id)]
    return HealthCheck(
        name="blocked", status="PASS",
        message=f"Blocked requirements: {len(blocked)}",
        details={"ids": blocked},
    )


def _stats(db: Database) -> Dict[str, float]:
    counts = db.status_counts()
    return {
        "total": len(db),
        "complete": counts[Status.COMPLETE],
        "partial": counts[Status.PARTIAL],
        "missing": counts[Status.MISSING] + counts[Status.NOT_STARTED],
        "completion_percent": round(db.completion_percentage(), 1),
        "with_tests": sum(1 for req in db if req.has_test),
    }


def summarize(checks: List[HealthCheck]) -> HealthResult:
    """Fold individual checks into an overall status."""
    summary = {"passed": 0, "warnings": 0, "failed": 0, "skipped": 0}
    key = {"PASS": "passed", "WARN": "warnings", "FAIL": "failed", "SKIP": "skipped"}
    for check in checks:
        summary[key[check.status]] += 1

    if summary["failed"]:
        status = "UNHEALTHY"
    elif summary["warnings"]:
        status = "WARNING"
    else:
        status = "HEALTHY"
    return HealthResult(status=status, checks=checks, summary=summary)


def run_health_checks(db: Database) -> HealthResult:
    """Run every check against a loaded database."""
    graph = DependencyGraph(db)
    checks = [
        HealthCheck(name="rtm_loads", status="PASS",
                    message=f"RTM database loaded: {len(db)} requirements"),
        check_req_id_format(db),
        check_orphaned_deps(db),
        check_reciprocity(db),
        check_test_coverage(db),
        check_cycles(graph),
        check_blocked(graph),
    ]
    result = summarize(checks)
    result.stats = _stats(db)
    logger.debug("Health: %s %s", result.status, result.summary)
    return result


def run_health(path) -> HealthResult:
    """Load the database at *path* and check it.

    A load failure is reported as a failing ``rtm_loads`` check with every
    other check skipped, rather than raised.
    """
    try:
        db = load_database(path)
    except RTMXError as exc:
        logger.warning("Health check could not load %s: %s", path, exc)
        checks = [HealthCheck(name="rtm_loads", status="FAIL", blocking=True,
                              message=f"Failed to load RTM database: {exc}")]
        checks += [HealthCheck(name=name, status="SKIP", message="Skipped: database not loaded")
                   for name in CHECK_NAMES[1:]]
        return summarize(checks)
    return run_health_checks(db)
