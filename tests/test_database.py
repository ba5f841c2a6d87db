#!/usr/bin/env python3
"""Tests for rtmx.database: value types, Requirement and the in-memory Database."""

from datetime import date

import pytest

from rtmx.database import Database, Priority, Requirement, Status, StringSet
from rtmx.database.requirement import coerce_field, is_cross_db_ref, is_valid_req_id
from rtmx.errors import ConflictError, RequirementNotFoundError, SchemaError


def _req(req_id, **kwargs):
    return Requirement(req_id=req_id, **kwargs)


# ---------------------------------------------------------------------------
# Status and Priority
# ---------------------------------------------------------------------------

class TestStatus:
    def test_parse_is_case_insensitive(self):
        assert Status.parse("complete") is Status.COMPLETE
        assert Status.parse(" Partial ") is Status.PARTIAL

    def test_empty_means_missing(self):
        assert Status.parse("") is Status.MISSING
        assert Status.parse(None) is Status.MISSING

    def test_unknown_value_raises_schema_error(self):
        with pytest.raises(SchemaError) as exc_info:
            Status.parse("DONE")
        assert exc_info.value.column == "status"
        assert "DONE" in str(exc_info.value)

    def test_completion_percent(self):
        assert Status.COMPLETE.completion_percent == 100.0
        assert Status.PARTIAL.completion_percent == 50.0
        assert Status.MISSING.completion_percent == 0.0
        assert Status.NOT_STARTED.completion_percent == 0.0

    def test_regression(self):
        assert Status.PARTIAL.is_regression_from(Status.COMPLETE)
        assert not Status.COMPLETE.is_regression_from(Status.PARTIAL)
        assert not Status.NOT_STARTED.is_regression_from(Status.MISSING)


class TestPriority:
    def test_parse_defaults_to_medium(self):
        assert Priority.parse("") is Priority.MEDIUM
        assert Priority.parse("p0") is Priority.P0

    def test_unknown_value_raises(self):
        with pytest.raises(SchemaError):
            Priority.parse("URGENT")

    def test_ordering(self):
        assert Priority.P0 < Priority.HIGH < Priority.MEDIUM < Priority.LOW
        assert sorted([Priority.LOW, Priority.P0, Priority.MEDIUM]) == [
            Priority.P0, Priority.MEDIUM, Priority.LOW]

    def test_is_high(self):
        assert Priority.P0.is_high and Priority.HIGH.is_high
        assert not Priority.MEDIUM.is_high


# ---------------------------------------------------------------------------
# StringSet
# ---------------------------------------------------------------------------

class TestStringSet:
    def test_parse_trims_and_dedupes_keeping_order(self):
        s = StringSet.parse(" B | A |B||C ")
        assert s.to_list() == ["B", "A", "C"]

    def test_empty_serializes_to_empty_string(self):
        assert StringSet.parse("").serialize() == ""
        assert not StringSet()

    def test_add_reports_novelty(self):
        s = StringSet(["A"])
        assert s.add("B") is True
        assert s.add("A") is False
        assert s.serialize() == "A|B"

    def test_remove_and_membership(self):
        s = StringSet(["A", "B"])
        s.remove("A")
        s.remove("missing")
        assert "A" not in s
        assert s == ["B"]

    def test_copy_is_independent(self):
        s = StringSet(["A"])
        c = s.copy()
        c.add("B")
        assert len(s) == 1


# ---------------------------------------------------------------------------
# Requirement
# ---------------------------------------------------------------------------

class TestRequirement:
    def test_req_id_shape(self):
        assert is_valid_req_id("REQ-CORE-001")
        assert not is_valid_req_id("core-1")
        assert is_cross_db_ref("@other:REQ-X-001")

    def test_derived_predicates(self):
        req = _req("REQ-X-001", status=Status.PARTIAL, priority=Priority.P0,
                   test_function="TestX")
        assert req.is_incomplete
        assert req.is_high_priority
        assert req.has_test

    def test_blocking_deps_ignore_cross_db_and_unknown(self):
        db = Database([
            _req("REQ-X-001", status=Status.COMPLETE),
            _req("REQ-X-002", status=Status.MISSING),
            _req("REQ-X-003", dependencies=StringSet(
                ["REQ-X-001", "REQ-X-002", "@ext:REQ-Y-001", "REQ-GONE-001"])),
        ])
        req = db.require("REQ-X-003")
        assert req.blocking_deps(db) == ["REQ-X-002"]
        assert req.is_blocked(db)

    def test_started_date_only_set_once(self):
        req = _req("REQ-X-001")
        req.set_started_date(date(2026, 1, 2))
        req.set_started_date(date(2026, 3, 4))
        assert req.started_date == "2026-01-02"

    def test_clone_is_deep(self):
        req = _req("REQ-X-001", dependencies=StringSet(["REQ-X-002"]))
        copy = req.clone()
        copy.dependencies.add("REQ-X-003")
        assert req.dependencies.to_list() == ["REQ-X-002"]

    def test_to_dict(self):
        data = _req("REQ-X-001", status=Status.COMPLETE, blocks=StringSet(["REQ-X-002"])).to_dict()
        assert data["status"] == "COMPLETE"
        assert data["blocks"] == ["REQ-X-002"]
        assert "extra" not in data

    def test_coerce_field_rejects_bad_values(self):
        with pytest.raises(SchemaError):
            coerce_field("phase", "-1")
        with pytest.raises(SchemaError):
            coerce_field("effort_weeks", "abc")
        with pytest.raises(SchemaError):
            coerce_field("effort_weeks", "inf")
        with pytest.raises(SchemaError):
            coerce_field("no_such_column", "x")

    def test_coerce_field_converts(self):
        assert coerce_field("phase", "3") == 3
        assert coerce_field("effort_weeks", "1.5") == 1.5
        assert coerce_field("dependencies", "A|B").to_list() == ["A", "B"]
        assert coerce_field("notes", "  hi ") == "hi"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

class TestDatabaseCrud:
    def test_add_rejects_duplicates(self):
        db = Database([_req("REQ-X-001")])
        with pytest.raises(ConflictError) as exc_info:
            db.add(_req("REQ-X-001"))
        assert exc_info.value.req_id == "REQ-X-001"
        assert "duplicate id REQ-X-001" in str(exc_info.value)

    def test_add_rejects_empty_id(self):
        with pytest.raises(SchemaError):
            Database().add(_req(""))

    def test_get_and_require(self):
        db = Database([_req("REQ-X-001")])
        assert db.get("REQ-NOPE-001") is None
        with pytest.raises(RequirementNotFoundError):
            db.require("REQ-NOPE-001")
        with pytest.raises(KeyError):
            db.require("REQ-NOPE-001")

    def test_file_order_preserved(self):
        db = Database([_req("REQ-B-001"), _req("REQ-A-001")])
        assert db.ids() == ["REQ-B-001", "REQ-A-001"]
        assert [r.req_id for r in db] == ["REQ-B-001", "REQ-A-001"]
        assert db.index_of("REQ-A-001") == 1

    def test_remove(self):
        db = Database([_req("REQ-X-001"), _req("REQ-X-002")])
        db.mark_clean()
        removed = db.remove("REQ-X-001")
        assert removed.req_id == "REQ-X-001"
        assert "REQ-X-001" not in db
        assert db.dirty


class TestDatabaseUpdate:
    def test_update_coerces_values(self):
        db = Database([_req("REQ-X-001")])
        req = db.update("REQ-X-001", {"status": "complete", "phase": "2", "assignee": "sam"})
        assert req.status is Status.COMPLETE
        assert req.phase == 2
        assert req.assignee == "sam"

    def test_failed_update_changes_nothing(self):
        db = Database([_req("REQ-X-001", notes="before")])
        with pytest.raises(SchemaError):
            db.update("REQ-X-001", {"notes": "after", "status": "DONE"})
        assert db.require("REQ-X-001").notes == "before"

    def test_req_id_is_immutable(self):
        db = Database([_req("REQ-X-001")])
        with pytest.raises(SchemaError):
            db.update("REQ-X-001", {"req_id": "REQ-X-999"})

    def test_extra_columns_update_in_place(self):
        db = Database([_req("REQ-X-001", extra={"owner_team": "core"})])
        req = db.update("REQ-X-001", {"owner_team": "cli"})
        assert req.extra["owner_team"] == "cli"

    def test_unknown_requirement(self):
        with pytest.raises(RequirementNotFoundError):
            Database().update("REQ-X-001", {"notes": "x"})


class TestDatabaseQueries:
    def test_filter(self, chain_db):
        assert [r.req_id for r in chain_db.filter(status="MISSING")] == [
            "REQ-CORE-003", "REQ-CLI-001"]
        assert [r.req_id for r in chain_db.filter(category="CLI")] == ["REQ-CLI-001"]
        assert [r.req_id for r in chain_db.filter(phase=1, has_test=True)] == [
            "REQ-CORE-001", "REQ-CORE-002"]
        assert [r.req_id for r in chain_db.filter(is_blocked=True)] == ["REQ-CORE-003"]

    def test_completion_percentage(self, chain_db):
        # 100 + 50 + 0 + 0 over four requirements
        assert chain_db.completion_percentage() == pytest.approx(37.5)
        assert Database().completion_percentage() == 0.0

    def test_groupings(self, chain_db):
        assert chain_db.categories() == ["CLI", "CORE"]
        assert chain_db.phases() == [1, 2]
        assert list(chain_db.by_category()) == ["CLI", "CORE"]
        assert list(chain_db.by_phase()) == [1, 2]

    def test_counts(self, chain_db):
        assert chain_db.status_counts()[Status.MISSING] == 2
        assert chain_db.priority_counts()[Priority.HIGH] == 2

    def test_backlog_order(self, chain_db):
        assert [r.req_id for r in chain_db.backlog()] == [
            "REQ-CLI-001", "REQ-CORE-002", "REQ-CORE-003"]
