#!/usr/bin/env python3
"""Requirement entity: one row of the RTM database.

Fields mirror the on-disk columns. Derived predicates (is_incomplete,
has_test, is_blocked, blocking_deps) are computed, never stored.
"""

import copy
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List

from rtmx.database.enums import Priority, Status
from rtmx.database.string_set import StringSet
from rtmx.errors import SchemaError

if TYPE_CHECKING:
    from rtmx.database.database import Database

REQ_ID_PATTERN = re.compile(r"^REQ-[A-Z0-9]+-\d+$")

# Prefix marking a reference into another RTM database
CROSS_DB_PREFIX = "@"


def is_valid_req_id(req_id: str) -> bool:
    """True if *req_id* matches ``REQ-<CATEGORY>-<NNN>``."""
    return bool(REQ_ID_PATTERN.match(req_id or ""))


def is_cross_db_ref(req_id: str) -> bool:
    return (req_id or "").startswith(CROSS_DB_PREFIX)


@dataclass
class Requirement:
    """Single requirement row with validated enum fields."""

    req_id: str
    category: str = ""
    subcategory: str = ""
    requirement_text: str = ""
    target_value: str = ""
    test_module: str = ""
    test_function: str = ""
    validation_method: str = ""
    status: Status = Status.MISSING
    priority: Priority = Priority.MEDIUM
    phase: int = 0
    notes: str = ""
    effort_weeks: float = 0.0
    dependencies: StringSet = field(default_factory=StringSet)
    blocks: StringSet = field(default_factory=StringSet)
    assignee: str = ""
    sprint: str = ""
    started_date: str = ""
    completed_date: str = ""
    requirement_file: str = ""
    external_id: str = ""
    extra: Dict[str, str] = field(default_factory=dict)

    # -- predicates -------------------------------------------------------

    @property
    def is_complete(self) -> bool:
        return self.status.is_complete

    @property
    def is_incomplete(self) -> bool:
        return self.status.is_incomplete

    @property
    def has_test(self) -> bool:
        return bool(self.test_function)

    @property
    def is_high_priority(self) -> bool:
        return self.priority.is_high

    def blocking_deps(self, db: "Database") -> List[str]:
        """Dependencies that resolve in *db* to an incomplete requirement."""
        blocking = []
        for dep in self.dependencies:
            if is_cross_db_ref(dep):
                continue
            dep_req = db.get(dep)
            if dep_req is not None and dep_req.is_incomplete:
                blocking.append(dep)
        return blocking

    def is_blocked(self, db: "Database") -> bool:
        return bool(self.blocking_deps(db))

    # -- mutation helpers -------------------------------------------------

    def set_started_date(self, today: date = None) -> None:
        """Stamp started_date with today unless already set."""
        if not self.started_date:
            self.started_date = (today or date.today()).isoformat()

    def set_completed_date(self, today: date = None) -> None:
        self.completed_date = (today or date.today()).isoformat()

    def clone(self) -> "Requirement":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly dict, enums as strings and sets as lists."""
        data = {
            "req_id": self.req_id,
            "category": self.category,
            "subcategory": self.subcategory,
            "requirement_text": self.requirement_text,
            "target_value": self.target_value,
            "test_module": self.test_module,
            "test_function": self.test_function,
            "validation_method": self.validation_method,
            "status": self.status.value,
            "priority": self.priority.value,
            "phase": self.phase,
            "notes": self.notes,
            "effort_weeks": self.effort_weeks,
            "dependencies": self.dependencies.to_list(),
            "blocks": self.blocks.to_list(),
            "assignee": self.assignee,
            "sprint": self.sprint,
            "started_date": self.started_date,
            "completed_date": self.completed_date,
            "requirement_file": self.requirement_file,
            "external_id": self.external_id,
        }
        if self.extra:
            data["extra"] = dict(self.extra)
        return data


# ---------------------------------------------------------------------------
# Field coercion (shared by CSV load and Database.update)
# ---------------------------------------------------------------------------

TEXT_FIELDS = (
    "category", "subcategory", "requirement_text", "target_value",
    "test_module", "test_function", "validation_method", "notes",
    "assignee", "sprint", "started_date", "completed_date",
    "requirement_file", "external_id",
)


def _parse_phase(value) -> int:
    if isinstance(value, bool):
        raise SchemaError(f"invalid phase {value!r}", column="phase")
    if isinstance(value, int):
        phase = value
    else:
        text = str(value if value is not None else "").strip()
        if not text:
            return 0
        try:
            phase = int(text)
        except ValueError:
            raise SchemaError(f"invalid phase {value!r}", column="phase") from None
    if phase < 0:
        raise SchemaError(f"phase must be >= 0, got {phase}", column="phase")
    return phase


def _parse_effort(value) -> float:
    if isinstance(value, bool):
        raise SchemaError(f"invalid effort_weeks {value!r}", column="effort_weeks")
    if isinstance(value, (int, float)):
        effort = float(value)
    else:
        text = str(value if value is not None else "").strip()
        if not text:
            return 0.0
        try:
            effort = float(text)
        except ValueError:
            raise SchemaError(
                f"invalid effort_weeks {value!r}", column="effort_weeks") from None
    if effort < 0 or not math.isfinite(effort):
        raise SchemaError(
            f"effort_weeks must be a non-negative number, got {value!r}",
            column="effort_weeks")
    return effort


def _parse_id_set(value) -> StringSet:
    if isinstance(value, StringSet):
        return value.copy()
    if isinstance(value, str):
        return StringSet.parse(value)
    if value is None:
        return StringSet()
    return StringSet(value)


def coerce_field(name: str, value):
    """Convert *value* to the typed representation for column *name*.

    Raises:
        SchemaError: unknown column or a value that fails validation.
    """
    if name == "status":
        return Status.parse(value)
    if name == "priority":
        return Priority.parse(value)
    if name == "phase":
        return _parse_phase(value)
    if name == "effort_weeks":
        return _parse_effort(value)
    if name in ("dependencies", "blocks"):
        return _parse_id_set(value)
    if name in TEXT_FIELDS:
        return "" if value is None else str(value).strip()
    raise SchemaError(f"unknown field {name!r}", column=name)
