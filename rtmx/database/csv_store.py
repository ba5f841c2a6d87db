#!/usr/bin/env python3
"""Delimited-text persistence for the RTM database.

Reads a header-first CSV (LF or CRLF), maps columns by name, and writes the
fixed column order back with LF line endings. Saves go to a temporary file in
the destination directory and are renamed over the target, so a crash leaves
either the old or the new content.

Usage:
    from rtmx.database.csv_store import load_database, save_database

    db = load_database("docs/rtm_database.csv")
    save_database(db, "docs/rtm_database.csv")
"""

import csv
import io
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, TextIO

from rtmx.database.database import Database
from rtmx.database.requirement import Requirement, coerce_field
from rtmx.errors import ConflictError, DatabaseIOError, ParseError, SchemaError

logger = logging.getLogger("rtmx.database.csv_store")

STANDARD_COLUMNS = (
    "req_id",
    "category",
    "subcategory",
    "requirement_text",
    "target_value",
    "test_module",
    "test_function",
    "validation_method",
    "status",
    "priority",
    "phase",
    "notes",
    "effort_weeks",
    "dependencies",
    "blocks",
    "assignee",
    "sprint",
    "started_date",
    "completed_date",
    "requirement_file",
    "external_id",
)

# Columns the loader cannot work without
LOAD_REQUIRED_COLUMNS = ("req_id", "category", "requirement_text")


def normalize_column_name(name: str) -> str:
    """Normalize a header cell to snake_case (``ReqId`` and ``Req ID`` -> ``req_id``)."""
    name = (name or "").strip()
    name = re.sub(r"[\s\-]+", "_", name)
    if "_" in name or name.lower() == name:
        return name.lower()
    # camelCase / PascalCase, keeping acronyms together
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name)
    return name.lower()


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def read_csv(stream: TextIO, path: str = "") -> Database:
    """Parse a CSV stream into a Database.

    Raises:
        ParseError: empty file, missing required column, malformed CSV.
        SchemaError: a cell fails field validation (row and column attached).
        ConflictError: duplicate ReqID.
    """
    reader = csv.reader(stream, strict=True)
    try:
        header = next(reader)
    except StopIteration:
        raise ParseError("missing CSV header", path=path, row=1) from None
    except csv.Error as exc:
        raise ParseError(f"failed to read CSV header: {exc}", path=path, row=1) from None

    col_index: Dict[str, int] = {}
    extra_cols: List[str] = []
    for i, raw in enumerate(header):
        normalized = normalize_column_name(raw)
        if not normalized or normalized in col_index:
            continue
        col_index[normalized] = i
        if normalized not in STANDARD_COLUMNS:
            extra_cols.append(normalized)

    for col in LOAD_REQUIRED_COLUMNS:
        if col not in col_index:
            raise ParseError(f"missing required column: {col}", path=path, row=1, column=col)

    db = Database(path=path)
    row_num = 1
    while True:
        try:
            record = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            raise ParseError(f"malformed CSV: {exc}", path=path, row=row_num + 1) from None
        row_num += 1
        if not any(cell.strip() for cell in record):
            continue
        req = parse_row(record, col_index, extra_cols, path=path, row=row_num)
        if req.req_id in db:
            raise ConflictError(req.req_id, path=path, row=row_num)
        db.add(req)

    db.mark_clean()
    logger.debug("Loaded %d requirements from %s", len(db), path or "<stream>")
    return db


def parse_row(record: List[str], col_index: Dict[str, int], extra_cols: Iterable[str],
              path: str = "", row: int = 0) -> Requirement:
    """Build a Requirement from one CSV record."""
    def value(col):
        idx = col_index.get(col)
        if idx is None or idx >= len(record):
            return ""
        return record[idx].strip()

    req_id = value("req_id")
    if not req_id:
        raise SchemaError("req_id is required", path=path, row=row, column="req_id")

    req = Requirement(req_id=req_id)
    for col in STANDARD_COLUMNS[1:]:
        if col not in col_index:
            continue
        try:
            setattr(req, col, coerce_field(col, value(col)))
        except SchemaError as exc:
            raise SchemaError(exc.message, path=path, row=row, column=col) from None

    for col in extra_cols:
        cell = value(col)
        if cell:
            req.extra[col] = cell
    return req


def load_database(path) -> Database:
    """Load the database file at *path*.

    Raises:
        DatabaseIOError: the file cannot be opened or read.
    """
    path = str(path)
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            return read_csv(f, path=path)
    except FileNotFoundError:
        raise DatabaseIOError("database file not found", path=path) from None
    except UnicodeDecodeError as exc:
        raise ParseError(f"file is not valid UTF-8: {exc.reason}", path=path) from None
    except OSError as exc:
        if isinstance(exc, DatabaseIOError):
            raise
        raise DatabaseIOError(f"failed to read database: {exc.strerror or exc}",
                              path=path) from None


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def _format_number(value: float) -> str:
    if value == int(value):
        return str(int(value)) if value else ""
    return repr(value)


def format_row(req: Requirement, header: Iterable[str]) -> List[str]:
    """Render *req* as CSV cells in *header* order."""
    row = []
    for col in header:
        if col == "status":
            row.append(req.status.value)
        elif col == "priority":
            row.append(req.priority.value)
        elif col == "phase":
            row.append(str(req.phase) if req.phase > 0 else "")
        elif col == "effort_weeks":
            row.append(_format_number(req.effort_weeks) if req.effort_weeks > 0 else "")
        elif col in ("dependencies", "blocks"):
            row.append(getattr(req, col).serialize())
        elif col in STANDARD_COLUMNS:
            row.append(getattr(req, col))
        else:
            row.append(req.extra.get(col, ""))
    return row


def header_for(db: Database) -> List[str]:
    """Standard columns followed by any extra columns, sorted."""
    extra = set()
    for req in db:
        extra.update(req.extra)
    return list(STANDARD_COLUMNS) + sorted(extra)


def write_csv(db: Database, stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    header = header_for(db)
    writer.writerow(header)
    for req in db:
        writer.writerow(format_row(req, header))


def dumps(db: Database) -> str:
    buf = io.StringIO()
    write_csv(db, buf)
    return buf.getvalue()


def save_database(db: Database, path=None) -> Path:
    """Write *db* atomically to *path* (default: the path it was loaded from).

    Raises:
        DatabaseIOError: no target path, or the write/rename failed.
    """
    target = str(path) if path else db.path
    if not target:
        raise DatabaseIOError("no path specified for saving database")

    target_path = Path(target)
    directory = target_path.parent if str(target_path.parent) else Path(".")
    fd = None
    tmp_name = ""
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target_path.name}.", suffix=".tmp",
                                        dir=str(directory))
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            fd = None
            write_csv(db, f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
        tmp_name = ""
    except OSError as exc:
        raise DatabaseIOError(f"failed to save database: {exc.strerror or exc}",
                              path=target) from None
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    logger.debug("Saved %d requirements to %s", len(db), target)
    db.path = target
    db.mark_clean()
    return target_path
