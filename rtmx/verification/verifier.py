#!/usr/bin/env python3
"""Closed-loop verification: derive requirement status from test outcomes.

Status rules, per requirement, over every test event linked to it:

  any linked test failed     -> COMPLETE drops to PARTIAL, otherwise unchanged
  passed, none failed        -> COMPLETE
  only skips / nothing found -> unchanged

Tests link to a requirement through ``test_function``. A bare name matches
that test in any package; ``pkg/TestName`` matches only that package. When
the same bare name runs in several packages the outcomes are aggregated.

The verifier never writes. apply_results updates the Database in memory and
the caller decides whether to save.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Tuple

from rtmx.database.database import Database
from rtmx.database.enums import Status
from rtmx.verification.data_types import TestEvent, VerificationResult

logger = logging.getLogger("rtmx.verification.verifier")


def collapse_events(events: Iterable[TestEvent]) -> Dict[str, TestEvent]:
    """Last outcome per ``package/test`` key wins (re-runs replace earlier ones)."""
    latest: Dict[str, TestEvent] = {}
    for event in events:
        latest[event.key] = event
    return latest


def _index_by_name(events: Iterable[TestEvent]) -> Dict[str, List[TestEvent]]:
    by_name: Dict[str, List[TestEvent]] = {}
    for event in events:
        by_name.setdefault(event.test, []).append(event)
    return by_name


def _package_matches(package: str, wanted: str) -> bool:
    return package == wanted or package.endswith("/" + wanted)


def match_tests(test_function: str, by_name: Dict[str, List[TestEvent]]) -> List[TestEvent]:
    """Events linked to *test_function*."""
    if test_function in by_name:
        return list(by_name[test_function])
    if "/" in test_function:
        package, name = test_function.rsplit("/", 1)
        return [e for e in by_name.get(name, ()) if _package_matches(e.package, package)]
    return []


def derive_status(current: Status, passed: int, failed: int) -> Status:
    """Next status from aggregated counts. Skips never change anything."""
    if failed:
        return Status.PARTIAL if current is Status.COMPLETE else current
    if passed:
        return Status.COMPLETE
    return current


def verify(db: Database, events: Iterable[TestEvent]) -> List[VerificationResult]:
    """One result per requirement that names a test function, in database order."""
    by_name = _index_by_name(collapse_events(events).values())

    results = []
    for req in db:
        test_function = req.test_function.strip()
        if not test_function:
            continue
        matched = match_tests(test_function, by_name)
        passed = sum(1 for e in matched if e.outcome == "pass")
        failed = sum(1 for e in matched if e.outcome == "fail")
        skipped = sum(1 for e in matched if e.outcome == "skip")
        results.append(VerificationResult(
            req_id=req.req_id,
            test_function=test_function,
            previous_status=req.status,
            new_status=derive_status(req.status, passed, failed),
            tests_total=len(matched),
            tests_passed=passed,
            tests_failed=failed,
            tests_skipped=skipped,
            matched_tests=[e.key for e in matched],
        ))
    logger.debug("Verified %d requirement(s) with linked tests", len(results))
    return results


def apply_results(db: Database, results: Iterable[VerificationResult],
                  today: date = None) -> List[str]:
    """Write changed statuses into *db* and stamp lifecycle dates.

    Returns:
        ReqIDs whose status changed.
    """
    changed = []
    for result in results:
        if not result.updated:
            continue
        req = db.update(result.req_id, {"status": result.new_status})
        if result.new_status is Status.COMPLETE:
            req.set_started_date(today)
            req.set_completed_date(today)
        else:
            req.completed_date = ""
        changed.append(result.req_id)
    if changed:
        logger.info("Updated status of %d requirement(s)", len(changed))
    return changed


def summarize(results: Iterable[VerificationResult]) -> Dict[str, int]:
    """Counts of passing, failing, unchanged-with-no-tests and updated requirements."""
    summary = {"passing": 0, "failing": 0, "untested": 0, "updated": 0}
    for result in results:
        if result.failing:
            summary["failing"] += 1
        elif result.passing:
            summary["passing"] += 1
        elif result.tests_total == 0:
            summary["untested"] += 1
        if result.updated:
            summary["updated"] += 1
    return summary


def any_failed(results: Iterable[VerificationResult]) -> bool:
    return any(result.failing for result in results)


def status_changes(results: Iterable[VerificationResult]) -> List[Tuple[str, Status, Status]]:
    return [(r.req_id, r.previous_status, r.new_status) for r in results if r.updated]
