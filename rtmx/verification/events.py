#!/usr/bin/env python3
"""Test-event sources for closed-loop verification.

Every parser yields TestEvent objects with a bare test name, an optional
package, and an outcome of pass/fail/skip. Lines or records that cannot be
understood are logged and skipped so one bad record never loses a run.

Supported sources:
  - ``go test -json`` line stream (one JSON object per line)
  - pytest-json-report files (``pytest --json-report``)
  - JUnit XML (``pytest --junitxml``, most CI runners)

Usage:
    from rtmx.verification.events import load_events, run_test_command

    events = load_events(".tmp/report.xml")
    events = run_test_command("go test -json ./...")
"""

import json
import logging
import re
import shlex
import subprocess
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, List, Optional

from rtmx.errors import DatabaseIOError, ParseError, RTMXError
from rtmx.verification.data_types import TestEvent

logger = logging.getLogger("rtmx.verification.events")

DEFAULT_TEST_COMMAND = "go test -json ./..."

_GO_ACTIONS = ("pass", "fail", "skip")

_PYTEST_OUTCOMES = {
    "passed": "pass",
    "xpassed": "pass",
    "failed": "fail",
    "error": "fail",
    "skipped": "skip",
    "xfailed": "skip",
}

_PARAM_SUFFIX = re.compile(r"\[.*\]$")


# ---------------------------------------------------------------------------
# go test -json
# ---------------------------------------------------------------------------

def parse_go_test_json(lines: Iterable[str]) -> List[TestEvent]:
    """Parse a ``go test -json`` stream.

    Non-JSON lines (plain runner output) are ignored. Package-level events
    (no ``Test``) and non-terminal actions (run, output, pause) are dropped.
    """
    events = []
    for line_no, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except ValueError:
            logger.debug("Line %d is not JSON, skipping", line_no)
            continue
        if not isinstance(record, dict):
            logger.warning("Line %d: expected a JSON object, skipping", line_no)
            continue

        test = record.get("Test")
        action = record.get("Action")
        if not test or action not in _GO_ACTIONS:
            continue
        if not isinstance(test, str):
            logger.warning("Line %d: malformed Test field %r, skipping", line_no, test)
            continue
        elapsed = record.get("Elapsed")
        events.append(TestEvent(
            test=test,
            outcome=action,
            package=str(record.get("Package") or ""),
            elapsed=elapsed if isinstance(elapsed, (int, float)) else None,
        ))
    return events


# ---------------------------------------------------------------------------
# pytest
# ---------------------------------------------------------------------------

def split_nodeid(nodeid: str):
    """``tests/test_a.py::TestX::test_y[1]`` -> (``tests/test_a.py``, ``test_y``)."""
    parts = nodeid.split("::")
    test = _PARAM_SUFFIX.sub("", parts[-1])
    package = parts[0] if len(parts) > 1 else ""
    return package, test


def parse_pytest_json(data) -> List[TestEvent]:
    """Parse a pytest-json-report document (already decoded)."""
    if not isinstance(data, dict) or not isinstance(data.get("tests"), list):
        raise ParseError("not a pytest-json-report document (missing 'tests' list)")

    events = []
    for entry in data["tests"]:
        if not isinstance(entry, dict) or "nodeid" not in entry:
            logger.warning("Skipping malformed pytest report entry: %r", entry)
            continue
        outcome = _PYTEST_OUTCOMES.get(str(entry.get("outcome", "")).lower())
        if outcome is None:
            logger.warning("Unknown pytest outcome %r for %s, skipping",
                           entry.get("outcome"), entry["nodeid"])
            continue
        package, test = split_nodeid(entry["nodeid"])
        call = entry.get("call")
        duration = call.get("duration") if isinstance(call, dict) else None
        events.append(TestEvent(test=test, outcome=outcome, package=package,
                                elapsed=duration))
    return events


# ---------------------------------------------------------------------------
# JUnit XML
# ---------------------------------------------------------------------------

def parse_junit_xml(source) -> List[TestEvent]:
    """Parse JUnit XML from a path or an XML string.

    A ``<testcase>`` with a ``<failure>`` or ``<error>`` child fails, one with
    ``<skipped>`` is skipped, anything else passed.
    """
    inline = _looks_like_xml(source)
    try:
        root = ET.fromstring(source) if inline else ET.parse(str(source)).getroot()
    except ET.ParseError as exc:
        raise ParseError(f"invalid JUnit XML: {exc}", path="" if inline else str(source)) from None
    except OSError as exc:
        raise DatabaseIOError(f"failed to read results: {exc.strerror or exc}",
                              path=str(source)) from None

    events = []
    for case in root.iter("testcase"):
        name = case.get("name")
        if not name:
            logger.warning("Skipping <testcase> without a name")
            continue
        if case.find("failure") is not None or case.find("error") is not None:
            outcome = "fail"
        elif case.find("skipped") is not None:
            outcome = "skip"
        else:
            outcome = "pass"
        try:
            elapsed = float(case.get("time")) if case.get("time") else None
        except ValueError:
            elapsed = None
        events.append(TestEvent(
            test=_PARAM_SUFFIX.sub("", name),
            outcome=outcome,
            package=case.get("classname", ""),
            elapsed=elapsed,
        ))
    return events


def _looks_like_xml(source) -> bool:
    return isinstance(source, (str, bytes)) and str(source).lstrip().startswith("<")


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def load_events(path) -> List[TestEvent]:
    """Read a saved results file, choosing the parser from its content.

    Raises:
        DatabaseIOError: the file cannot be read.
        ParseError: the content is not a recognised report.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DatabaseIOError(f"failed to read results: {exc.strerror or exc}",
                              path=str(path)) from None

    stripped = text.lstrip()
    if path.suffix.lower() == ".xml" or stripped.startswith("<"):
        return parse_junit_xml(path)
    if stripped.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            data = None
        if isinstance(data, dict) and "tests" in data:
            return parse_pytest_json(data)
    return parse_go_test_json(text.splitlines())


def run_test_command(command: str = DEFAULT_TEST_COMMAND, cwd: Optional[str] = None,
                     timeout: Optional[int] = None) -> List[TestEvent]:
    """Run *command* and parse its stdout as a ``go test -json`` stream.

    A non-zero exit status is expected when tests fail and is not an error.

    Raises:
        RTMXError: the command could not be started or timed out.
    """
    args = shlex.split(command)
    if not args:
        raise RTMXError("empty test command")
    logger.info("Running test command: %s", command)
    try:
        proc = subprocess.run(args, capture_output=True, text=True, cwd=cwd, timeout=timeout)
    except FileNotFoundError:
        raise RTMXError(f"test command not found: {args[0]}") from None
    except subprocess.TimeoutExpired:
        raise RTMXError(f"test command timed out after {timeout}s: {command}") from None

    if proc.stderr:
        logger.debug("Test command stderr:\n%s", proc.stderr)
    logger.info("Test command exited with %d", proc.returncode)
    return parse_go_test_json(proc.stdout.splitlines())
