#!/usr/bin/env python3
"""Validation of RTM database files, used by the pre-commit hook.

Two passes. The raw pass reads the file as plain CSV so that every bad row is
reported, not just the first one the loader trips over:

1. the file exists and has a header
2. required columns are present (stop here if not)
3. per row: duplicate IDs, unknown status, unknown priority

Only when the raw pass is clean is the file loaded into a Database for the
model pass: dangling dependency/blocks targets and circular dependencies.

Every problem is returned as a string carrying the file path (and row where
there is one). Nothing here raises for bad content except assert_valid.

Usage:
    from rtmx.validation import validate_file, validate_files

    errors = validate_file("docs/rtm_database.csv")
    results = validate_files(["a.csv", "b.csv", "README.md"])
"""

import csv
import logging
import os
from typing import Dict, Iterable, List

from rtmx.database.csv_store import load_database, normalize_column_name
from rtmx.database.database import Database
from rtmx.database.enums import VALID_PRIORITIES, VALID_STATUSES
from rtmx.database.requirement import is_cross_db_ref
from rtmx.errors import CycleError, RequirementNotFoundError, RTMXError
from rtmx.graph.cycles import find_cycles
from rtmx.graph.dependency_graph import DependencyGraph

logger = logging.getLogger("rtmx.validation.validator")

REQUIRED_COLUMNS = ("req_id", "category", "requirement_text", "status")


def validate_file(path) -> List[str]:
    """Validate one database file. Returns a list of error strings."""
    path = str(path)
    errors = validate_raw(path)
    if errors:
        return errors

    try:
        db = load_database(path)
    except RTMXError as exc:
        return [f"{path}: Failed to parse CSV: {exc.message}"]
    return validate_database(db, path=path)


def validate_raw(path: str) -> List[str]:
    """Raw CSV checks (existence, required columns, duplicate IDs, enum values)."""
    if not os.path.isfile(path):
        return [f"{path}: File not found"]

    errors: List[str] = []
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            reader = csv.reader(f, strict=True)
            try:
                header = next(reader)
            except StopIteration:
                return [f"{path}: Failed to read header: file is empty"]

            col_index: Dict[str, int] = {}
            for i, name in enumerate(header):
                col_index.setdefault(normalize_column_name(name), i)

            for col in REQUIRED_COLUMNS:
                if col not in col_index:
                    errors.append(f"{path}: Missing required column: {col}")
            if errors:
                return errors

            def cell(record, col):
                idx = col_index.get(col)
                if idx is None or idx >= len(record):
                    return ""
                return record[idx].strip()

            seen = set()
            row_num = 1
            for record in reader:
                row_num += 1
                if not any(c.strip() for c in record):
                    continue
                req_id = cell(record, "req_id")
                if req_id:
                    if req_id in seen:
                        errors.append(
                            f"{path}: Row {row_num}: Duplicate requirement ID '{req_id}'")
                    seen.add(req_id)

                status = cell(record, "status").upper()
                if status and status not in VALID_STATUSES:
                    errors.append(
                        f"{path}: Row {row_num} ({req_id}): Invalid status '{status}' "
                        f"(valid: {', '.join(VALID_STATUSES)})")

                priority = cell(record, "priority").upper()
                if priority and priority not in VALID_PRIORITIES:
                    errors.append(
                        f"{path}: Row {row_num} ({req_id}): Invalid priority '{priority}' "
                        f"(valid: {', '.join(VALID_PRIORITIES)})")
    except csv.Error as exc:
        errors.append(f"{path}: Malformed CSV: {exc}")
    except (OSError, UnicodeDecodeError) as exc:
        errors.append(f"{path}: Failed to open: {exc}")
    return errors


def validate_database(db: Database, path: str = "") -> List[str]:
    """Model-level checks on a loaded database: dangling references and cycles."""
    prefix = f"{path or db.path or '<database>'}: "
    errors: List[str] = []

    for req in db:
        for dep in req.dependencies:
            if not is_cross_db_ref(dep) and dep not in db:
                errors.append(f"{prefix}{req.req_id} references unknown dependency: {dep}")
        for blocked in req.blocks:
            if not is_cross_db_ref(blocked) and blocked not in db:
                errors.append(
                    f"{prefix}{req.req_id} references unknown blocked requirement: {blocked}")

    cycles = find_cycles(DependencyGraph(db))
    if cycles:
        errors.append(f"{prefix}Found {len(cycles)} circular dependency(s)")
        for members in cycles:
            errors.append(f"{prefix}circular dependency: {' -> '.join(sorted(members))}")
    return errors


def validate_files(paths: Iterable) -> Dict[str, List[str]]:
    """Validate every ``.csv`` path, continuing past failures.

    Returns:
        dict of path -> error list, one entry per validated file.
    """
    results: Dict[str, List[str]] = {}
    for path in paths:
        path = str(path)
        if not path.lower().endswith(".csv"):
            logger.debug("Skipping non-CSV file %s", path)
            continue
        results[path] = validate_file(path)
    return results


def assert_valid(db: Database) -> None:
    """Raise on the first model-level problem.

    Raises:
        RequirementNotFoundError: a dependency or blocks target does not exist.
        CycleError: the dependency graph has a cycle.
    """
    for req in db:
        for target in list(req.dependencies) + list(req.blocks):
            if not is_cross_db_ref(target) and target not in db:
                raise RequirementNotFoundError(target, path=db.path)
    cycles = find_cycles(DependencyGraph(db))
    if cycles:
        raise CycleError(cycles, path=db.path)
