#!/usr/bin/env python3
"""Tests for rtmx.verification: test-event parsers and status derivation."""

import json
import subprocess
from datetime import date

import pytest

from rtmx.database import Database, Requirement, Status
from rtmx.errors import DatabaseIOError, ParseError, RTMXError
from rtmx.verification.data_types import TestEvent
from rtmx.verification.events import (
    load_events,
    parse_go_test_json,
    parse_junit_xml,
    parse_pytest_json,
    run_test_command,
    split_nodeid,
)
from rtmx.verification.verifier import (
    any_failed,
    apply_results,
    collapse_events,
    derive_status,
    summarize,
    verify,
)


def go_line(action, test=None, package="example.com/app/core", elapsed=None):
    record = {"Action": action, "Package": package}
    if test:
        record["Test"] = test
    if elapsed is not None:
        record["Elapsed"] = elapsed
    return json.dumps(record)


def event(test, outcome, package=""):
    return TestEvent(test=test, outcome=outcome, package=package)


def linked_db(*rows):
    """Database of (req_id, test_function, status) rows."""
    db = Database([Requirement(req_id=r, test_function=t, status=Status.parse(s))
                   for r, t, s in rows])
    db.mark_clean()
    return db


# ---------------------------------------------------------------------------
# go test -json
# ---------------------------------------------------------------------------

class TestGoTestJson:
    def test_keeps_terminal_test_actions(self):
        lines = [
            go_line("run", "TestLoad"),
            go_line("output", "TestLoad"),
            go_line("pass", "TestLoad", elapsed=0.01),
            go_line("fail", "TestSave"),
            go_line("skip", "TestSlow"),
            go_line("pass"),  # package-level result
        ]
        events = parse_go_test_json(lines)
        assert [(e.test, e.outcome) for e in events] == [
            ("TestLoad", "pass"), ("TestSave", "fail"), ("TestSlow", "skip")]
        assert events[0].package == "example.com/app/core"
        assert events[0].elapsed == 0.01

    def test_malformed_lines_skipped(self):
        lines = ["=== RUN   TestLoad", "", "[1, 2]", "{not json", go_line("pass", "TestLoad")]
        assert [e.test for e in parse_go_test_json(lines)] == ["TestLoad"]

    def test_empty_stream(self):
        assert parse_go_test_json([]) == []


# ---------------------------------------------------------------------------
# pytest-json-report and JUnit XML
# ---------------------------------------------------------------------------

class TestPytestJson:
    def test_split_nodeid(self):
        assert split_nodeid("tests/test_a.py::TestX::test_y[1-2]") == ("tests/test_a.py", "test_y")
        assert split_nodeid("test_z") == ("", "test_z")

    def test_outcomes(self):
        data = {"tests": [
            {"nodeid": "tests/test_a.py::test_ok", "outcome": "passed",
             "call": {"duration": 0.5}},
            {"nodeid": "tests/test_a.py::test_bad", "outcome": "failed"},
            {"nodeid": "tests/test_a.py::test_err", "outcome": "error"},
            {"nodeid": "tests/test_a.py::test_skip", "outcome": "skipped"},
            {"nodeid": "tests/test_a.py::test_xfail", "outcome": "xfailed"},
            {"nodeid": "tests/test_a.py::test_odd", "outcome": "weird"},
            {"outcome": "passed"},
        ]}
        events = parse_pytest_json(data)
        assert [(e.test, e.outcome) for e in events] == [
            ("test_ok", "pass"), ("test_bad", "fail"), ("test_err", "fail"),
            ("test_skip", "skip"), ("test_xfail", "skip")]
        assert events[0].elapsed == 0.5

    def test_not_a_report(self):
        with pytest.raises(ParseError):
            parse_pytest_json({"summary": {}})


JUNIT = """<?xml version="1.0" encoding="utf-8"?>
<testsuites>
  <testsuite name="pytest">
    <testcase classname="tests.test_core" name="test_load" time="0.1"/>
    <testcase classname="tests.test_core" name="test_save[csv]" time="0.2">
      <failure message="boom"/>
    </testcase>
    <testcase classname="tests.test_core" name="test_slow">
      <skipped/>
    </testcase>
    <testcase classname="tests.test_core" name="test_crash">
      <error message="oops"/>
    </testcase>
  </testsuite>
</testsuites>
"""


class TestJunitXml:
    def test_inline_xml(self):
        events = parse_junit_xml(JUNIT)
        assert [(e.test, e.outcome) for e in events] == [
            ("test_load", "pass"), ("test_save", "fail"),
            ("test_slow", "skip"), ("test_crash", "fail")]
        assert events[0].package == "tests.test_core"
        assert events[0].elapsed == pytest.approx(0.1)

    def test_invalid_xml(self):
        with pytest.raises(ParseError):
            parse_junit_xml("<testsuite><testcase")


class TestLoadEvents:
    def test_detects_junit(self, tmp_path):
        path = tmp_path / "report.xml"
        path.write_text(JUNIT, encoding="utf-8")
        assert len(load_events(path)) == 4

    def test_detects_pytest_json(self, tmp_path):
        path = tmp_path / "report.json"
        path.write_text(json.dumps({"tests": [
            {"nodeid": "t.py::test_a", "outcome": "passed"}]}), encoding="utf-8")
        assert [e.test for e in load_events(path)] == ["test_a"]

    def test_falls_back_to_go_stream(self, tmp_path):
        path = tmp_path / "go.jsonl"
        path.write_text("\n".join([go_line("pass", "TestA"), go_line("fail", "TestB")]),
                        encoding="utf-8")
        assert [e.outcome for e in load_events(path)] == ["pass", "fail"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatabaseIOError):
            load_events(tmp_path / "nope.json")


class TestRunTestCommand:
    def test_parses_stdout(self, monkeypatch):
        calls = []

        def fake_run(args, **kwargs):
            calls.append(args)
            return subprocess.CompletedProcess(args, 1, stdout=go_line("fail", "TestA"),
                                               stderr="")

        monkeypatch.setattr(subprocess, "run", fake_run)
        events = run_test_command("go test -json ./pkg/...")
        assert calls == [["go", "test", "-json", "./pkg/..."]]
        assert events[0].outcome == "fail"

    def test_command_not_found(self, monkeypatch):
        def fake_run(args, **kwargs):
            raise FileNotFoundError(args[0])

        monkeypatch.setattr(subprocess, "run", fake_run)
        with pytest.raises(RTMXError) as exc_info:
            run_test_command("nosuchtool test")
        assert "not found" in str(exc_info.value)

    def test_empty_command(self):
        with pytest.raises(RTMXError):
            run_test_command("   ")


# ---------------------------------------------------------------------------
# Status derivation
# ---------------------------------------------------------------------------

class TestDeriveStatus:
    @pytest.mark.parametrize("current,passed,failed,expected", [
        (Status.MISSING, 1, 0, Status.COMPLETE),
        (Status.PARTIAL, 2, 0, Status.COMPLETE),
        (Status.COMPLETE, 1, 1, Status.PARTIAL),
        (Status.MISSING, 0, 1, Status.MISSING),
        (Status.PARTIAL, 0, 0, Status.PARTIAL),
    ])
    def test_rules(self, current, passed, failed, expected):
        assert derive_status(current, passed, failed) is expected


class TestVerify:
    def test_pass_promotes_and_fail_demotes(self):
        db = linked_db(
            ("REQ-X-001", "TestA", "MISSING"),
            ("REQ-X-002", "TestB", "COMPLETE"),
            ("REQ-X-003", "", "MISSING"),
        )
        results = verify(db, [event("TestA", "pass"), event("TestB", "fail")])
        assert [(r.req_id, r.new_status) for r in results] == [
            ("REQ-X-001", Status.COMPLETE), ("REQ-X-002", Status.PARTIAL)]
        assert any_failed(results)

    def test_skip_only_is_neutral(self):
        db = linked_db(("REQ-X-001", "TestA", "PARTIAL"))
        result = verify(db, [event("TestA", "skip")])[0]
        assert result.new_status is Status.PARTIAL
        assert result.tests_skipped == 1
        assert not result.updated

    def test_no_matching_events(self):
        db = linked_db(("REQ-X-001", "TestA", "MISSING"))
        result = verify(db, [])[0]
        assert result.tests_total == 0
        assert summarize([result]) == {"passing": 0, "failing": 0, "untested": 1, "updated": 0}

    def test_same_name_in_two_packages_aggregates(self):
        db = linked_db(("REQ-X-001", "TestA", "COMPLETE"))
        result = verify(db, [event("TestA", "pass", "app/core"),
                             event("TestA", "fail", "app/cli")])[0]
        assert result.tests_passed == 1 and result.tests_failed == 1
        assert result.new_status is Status.PARTIAL

    def test_package_qualified_name_matches_only_that_package(self):
        db = linked_db(("REQ-X-001", "cli/TestA", "MISSING"))
        result = verify(db, [event("TestA", "pass", "example.com/app/cli"),
                             event("TestA", "fail", "example.com/app/core")])[0]
        assert result.new_status is Status.COMPLETE
        assert result.matched_tests == ["example.com/app/cli/TestA"]

    def test_last_event_per_test_wins(self):
        events = [event("TestA", "fail", "p"), event("TestA", "pass", "p")]
        assert collapse_events(events)["p/TestA"].outcome == "pass"
        db = linked_db(("REQ-X-001", "TestA", "MISSING"))
        assert verify(db, events)[0].new_status is Status.COMPLETE

    def test_verify_does_not_write(self):
        db = linked_db(("REQ-X-001", "TestA", "MISSING"))
        verify(db, [event("TestA", "pass")])
        assert db.require("REQ-X-001").status is Status.MISSING
        assert not db.dirty


class TestApplyResults:
    def test_completion_stamps_dates(self):
        db = linked_db(("REQ-X-001", "TestA", "MISSING"), ("REQ-X-002", "TestB", "COMPLETE"))
        db.require("REQ-X-002").completed_date = "2026-01-01"
        results = verify(db, [event("TestA", "pass"), event("TestB", "fail")])
        changed = apply_results(db, results, today=date(2026, 5, 6))
        assert changed == ["REQ-X-001", "REQ-X-002"]

        done = db.require("REQ-X-001")
        assert done.status is Status.COMPLETE
        assert done.started_date == "2026-05-06"
        assert done.completed_date == "2026-05-06"

        regressed = db.require("REQ-X-002")
        assert regressed.status is Status.PARTIAL
        assert regressed.completed_date == ""
        assert db.dirty

    def test_unchanged_results_not_applied(self):
        db = linked_db(("REQ-X-001", "TestA", "COMPLETE"))
        results = verify(db, [event("TestA", "pass")])
        assert apply_results(db, results) == []
        assert not db.dirty

    def test_pass_promotes_once(self):
        db = linked_db(("REQ-X-001", "TestX", "MISSING"))
        stream = [event("TestX", "pass")]
        first = verify(db, stream)
        assert [(r.req_id, r.new_status) for r in first if r.updated] == [
            ("REQ-X-001", Status.COMPLETE)]
        apply_results(db, first)

        second = verify(db, stream)
        assert [r for r in second if r.updated] == []
        assert second[0].new_status is Status.COMPLETE

    def test_repeated_failure_demotes_once(self):
        db = linked_db(("REQ-X-001", "TestX", "COMPLETE"))
        stream = [event("TestX", "fail")]
        first = verify(db, stream)
        assert first[0].updated
        assert first[0].new_status is Status.PARTIAL
        assert apply_results(db, first) == ["REQ-X-001"]

        second = verify(db, stream)
        assert not second[0].updated
        assert apply_results(db, second) == []
        assert db.require("REQ-X-001").status is Status.PARTIAL
