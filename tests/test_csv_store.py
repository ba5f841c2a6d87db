#!/usr/bin/env python3
"""Tests for rtmx.database.csv_store: CSV load, save and column handling."""

import io

import pytest

from rtmx.database import Database, Requirement, Status, StringSet, load_database, save_database
from rtmx.database.csv_store import STANDARD_COLUMNS, dumps, normalize_column_name, read_csv
from rtmx.errors import ConflictError, DatabaseIOError, ParseError, SchemaError

from tests.conftest import CHAIN_ROWS, HEADER, csv_row, write_csv_file


# ---------------------------------------------------------------------------
# Column names
# ---------------------------------------------------------------------------

class TestNormalizeColumnName:
    @pytest.mark.parametrize("raw,expected", [
        ("req_id", "req_id"),
        ("ReqId", "req_id"),
        ("Req ID", "req_id"),
        ("requirementText", "requirement_text"),
        ("effort-weeks", "effort_weeks"),
        ("  status ", "status"),
    ])
    def test_normalizes_to_snake_case(self, raw, expected):
        assert normalize_column_name(raw) == expected


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoad:
    def test_loads_rows_in_file_order(self, chain_db):
        assert chain_db.ids() == ["REQ-CORE-001", "REQ-CORE-002", "REQ-CORE-003", "REQ-CLI-001"]
        req = chain_db.require("REQ-CORE-002")
        assert req.status is Status.PARTIAL
        assert req.phase == 1
        assert req.effort_weeks == 2.0
        assert req.dependencies.to_list() == ["REQ-CORE-001"]
        assert not chain_db.dirty

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatabaseIOError) as exc_info:
            load_database(tmp_path / "nope.csv")
        assert "not found" in str(exc_info.value)
        assert isinstance(exc_info.value, OSError)

    def test_empty_file(self):
        with pytest.raises(ParseError):
            read_csv(io.StringIO(""), path="empty.csv")

    def test_missing_required_column(self):
        with pytest.raises(ParseError) as exc_info:
            read_csv(io.StringIO("req_id,status\nREQ-X-001,MISSING\n"))
        assert exc_info.value.column == "category"

    def test_invalid_status_carries_row_and_column(self, tmp_path):
        path = write_csv_file(tmp_path / "bad.csv", [
            csv_row("REQ-X-001"),
            csv_row("REQ-X-002", status="DONE"),
        ])
        with pytest.raises(SchemaError) as exc_info:
            load_database(path)
        err = exc_info.value
        assert err.row == 3
        assert err.column == "status"
        assert str(err).startswith(f"{path}: row 3: column status:")

    def test_duplicate_id(self, tmp_path):
        path = write_csv_file(tmp_path / "dup.csv", [csv_row("REQ-X-001"), csv_row("REQ-X-001")])
        with pytest.raises(ConflictError) as exc_info:
            load_database(path)
        assert exc_info.value.row == 3

    def test_crlf_and_bom(self, tmp_path):
        path = tmp_path / "win.csv"
        text = "\r\n".join([HEADER, csv_row("REQ-X-001", status="COMPLETE")]) + "\r\n"
        path.write_bytes(b"\xef\xbb\xbf" + text.encode("utf-8"))
        db = load_database(path)
        assert db.require("REQ-X-001").status is Status.COMPLETE

    def test_blank_rows_skipped(self):
        text = f"{HEADER}\n{csv_row('REQ-X-001')}\n,,,\n\n{csv_row('REQ-X-002')}\n"
        assert read_csv(io.StringIO(text)).ids() == ["REQ-X-001", "REQ-X-002"]

    def test_unbalanced_quote_is_parse_error(self):
        text = "req_id,category,requirement_text\nREQ-X-001,CORE,\"unterminated\n"
        with pytest.raises(ParseError):
            read_csv(io.StringIO(text))

    def test_extra_columns_preserved(self):
        text = "req_id,category,requirement_text,Owner Team\nREQ-X-001,CORE,Text,platform\n"
        db = read_csv(io.StringIO(text))
        assert db.require("REQ-X-001").extra == {"owner_team": "platform"}


# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------

class TestSave:
    def test_round_trip_is_stable(self, chain_csv):
        db = load_database(chain_csv)
        first = dumps(db)
        save_database(db, chain_csv)
        assert dumps(load_database(chain_csv)) == first

    def test_header_is_standard_columns(self, chain_db):
        header = dumps(chain_db).splitlines()[0]
        assert header.split(",") == list(STANDARD_COLUMNS)

    def test_quoting_of_special_characters(self, tmp_path):
        text = 'Handles "quotes", commas\nand newlines'
        db = Database([Requirement(req_id="REQ-X-001", category="CORE", requirement_text=text)])
        path = save_database(db, tmp_path / "quoted.csv")
        assert load_database(path).require("REQ-X-001").requirement_text == text

    def test_empty_sets_and_zero_numbers_are_blank(self):
        db = Database([Requirement(req_id="REQ-X-001", category="CORE")])
        row = dumps(db).splitlines()[1].split(",")
        columns = dict(zip(STANDARD_COLUMNS, row))
        assert columns["phase"] == ""
        assert columns["effort_weeks"] == ""
        assert columns["dependencies"] == ""
        assert columns["status"] == "MISSING"

    def test_extra_columns_written_sorted_after_standard(self):
        db = Database([Requirement(req_id="REQ-X-001", extra={"zeta": "z", "alpha": "a"})])
        header = dumps(db).splitlines()[0].split(",")
        assert header[-2:] == ["alpha", "zeta"]

    def test_save_sets_path_and_clears_dirty(self, tmp_path):
        db = Database([Requirement(req_id="REQ-X-001", dependencies=StringSet(["REQ-X-002"]))])
        assert db.dirty
        target = tmp_path / "sub" / "out.csv"
        db.save(target)
        assert db.path == str(target)
        assert not db.dirty
        assert not [p for p in target.parent.iterdir() if p.name.endswith(".tmp")]

    def test_save_without_path(self):
        with pytest.raises(DatabaseIOError):
            Database().save()

    def test_lf_line_endings(self, chain_csv):
        db = load_database(chain_csv)
        db.save()
        assert b"\r\n" not in chain_csv.read_bytes()
        assert len(load_database(chain_csv)) == len(CHAIN_ROWS)
