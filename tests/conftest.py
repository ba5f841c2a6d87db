#!/usr/bin/env python3
"""Shared pytest fixtures for the RTMX test suite.

CSV writers use tmp_path so every test gets its own database file. The CLI
tests run ``main(argv)`` in-process from a temporary project directory.
"""

import pytest

from rtmx.cli.output_formatter import set_color_enabled
from rtmx.database.csv_store import load_database

HEADER = (
    "req_id,category,subcategory,requirement_text,target_value,test_module,"
    "test_function,validation_method,status,priority,phase,notes,effort_weeks,"
    "dependencies,blocks,assignee,sprint,started_date,completed_date,"
    "requirement_file,external_id"
)


def csv_row(req_id, category="CORE", text="", test_function="", status="MISSING",
            priority="MEDIUM", phase="", effort="", dependencies="", blocks="",
            notes="", assignee=""):
    """One CSV line in standard column order. Free text must not contain commas."""
    cells = [
        req_id, category, "", text or f"Requirement {req_id}", "", "",
        test_function, "", status, priority, str(phase), notes, str(effort),
        dependencies, blocks, assignee, "", "", "", "", "",
    ]
    return ",".join(cells)


def write_csv_file(path, rows, header=HEADER):
    path.write_text("\n".join([header] + list(rows)) + "\n", encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Sample databases
# ---------------------------------------------------------------------------

# A <- B <- C chain (B depends on A, C depends on B) plus an independent D.
CHAIN_ROWS = [
    csv_row("REQ-CORE-001", text="Load the database", test_function="TestLoad",
            status="COMPLETE", priority="HIGH", phase=1, effort=1, blocks="REQ-CORE-002"),
    csv_row("REQ-CORE-002", text="Build the graph", test_function="TestGraph",
            status="PARTIAL", priority="HIGH", phase=1, effort=2,
            dependencies="REQ-CORE-001", blocks="REQ-CORE-003"),
    csv_row("REQ-CORE-003", text="Report status", status="MISSING", priority="MEDIUM",
            phase=2, effort=1, dependencies="REQ-CORE-002"),
    csv_row("REQ-CLI-001", category="CLI", text="Command shell", test_function="TestShell",
            status="MISSING", priority="P0", phase=2, effort=0.5),
]

CYCLE_ROWS = [
    csv_row("REQ-A-001", dependencies="REQ-A-002", blocks="REQ-A-002"),
    csv_row("REQ-A-002", dependencies="REQ-A-001", blocks="REQ-A-001"),
]


@pytest.fixture(autouse=True)
def no_color():
    """Plain text output so assertions can match substrings."""
    set_color_enabled(False)
    yield
    set_color_enabled(False)


@pytest.fixture
def chain_csv(tmp_path):
    return write_csv_file(tmp_path / "rtm.csv", CHAIN_ROWS)


@pytest.fixture
def chain_db(chain_csv):
    return load_database(chain_csv)


@pytest.fixture
def cycle_csv(tmp_path):
    return write_csv_file(tmp_path / "cycle.csv", CYCLE_ROWS)


@pytest.fixture
def project_dir(tmp_path, monkeypatch):
    """Temporary project with rtmx.yaml pointing at docs/rtm_database.csv."""
    (tmp_path / "docs").mkdir()
    write_csv_file(tmp_path / "docs" / "rtm_database.csv", CHAIN_ROWS)
    (tmp_path / "rtmx.yaml").write_text(
        "rtmx:\n  database: docs/rtm_database.csv\n  phases:\n    1: Foundation\n"
        "    2: Core Features\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    return tmp_path
