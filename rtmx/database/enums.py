#!/usr/bin/env python3
"""Status and Priority value types for the RTM database.

Both are closed sets stored free-form on disk. Parsing is case-insensitive and
an empty cell maps to the column default; anything else unknown raises
SchemaError rather than silently falling back.
"""

from enum import Enum

from rtmx.errors import SchemaError


class Status(str, Enum):
    """Lifecycle state of a requirement."""

    COMPLETE = "COMPLETE"
    PARTIAL = "PARTIAL"
    MISSING = "MISSING"
    NOT_STARTED = "NOT_STARTED"

    @classmethod
    def parse(cls, value) -> "Status":
        """Parse *value* case-insensitively. Empty means MISSING."""
        if isinstance(value, cls):
            return value
        text = (value or "").strip().upper()
        if not text:
            return cls.MISSING
        try:
            return cls(text)
        except ValueError:
            raise SchemaError(
                f"invalid status {value!r} (valid: {', '.join(s.value for s in cls)})",
                column="status",
            ) from None

    @property
    def completion_percent(self) -> float:
        """COMPLETE=100, PARTIAL=50, MISSING=NOT_STARTED=0."""
        return _COMPLETION[self]

    @property
    def weight(self) -> int:
        """Sort weight, 0 for COMPLETE up to 3 for NOT_STARTED."""
        return _STATUS_WEIGHT[self]

    @property
    def is_complete(self) -> bool:
        return self is Status.COMPLETE

    @property
    def is_incomplete(self) -> bool:
        return self is not Status.COMPLETE

    def is_regression_from(self, previous: "Status") -> bool:
        """True when moving from *previous* to this status loses completion."""
        return self.completion_percent < previous.completion_percent

    def __str__(self) -> str:
        return self.value


class Priority(str, Enum):
    """Priority level. Ordered P0 < HIGH < MEDIUM < LOW."""

    P0 = "P0"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @classmethod
    def parse(cls, value) -> "Priority":
        """Parse *value* case-insensitively. Empty means MEDIUM."""
        if isinstance(value, cls):
            return value
        text = (value or "").strip().upper()
        if not text:
            return cls.MEDIUM
        try:
            return cls(text)
        except ValueError:
            raise SchemaError(
                f"invalid priority {value!r} (valid: {', '.join(p.value for p in cls)})",
                column="priority",
            ) from None

    @property
    def weight(self) -> int:
        """Lower weight sorts first."""
        return _PRIORITY_WEIGHT[self]

    @property
    def is_high(self) -> bool:
        return self in (Priority.P0, Priority.HIGH)

    def __lt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.weight < other.weight

    def __le__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.weight <= other.weight

    def __gt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.weight > other.weight

    def __ge__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.weight >= other.weight

    def __str__(self) -> str:
        return self.value


_COMPLETION = {
    Status.COMPLETE: 100.0,
    Status.PARTIAL: 50.0,
    Status.MISSING: 0.0,
    Status.NOT_STARTED: 0.0,
}

_STATUS_WEIGHT = {
    Status.COMPLETE: 0,
    Status.PARTIAL: 1,
    Status.MISSING: 2,
    Status.NOT_STARTED: 3,
}

_PRIORITY_WEIGHT = {
    Priority.P0: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}

VALID_STATUSES = tuple(s.value for s in Status)
VALID_PRIORITIES = tuple(p.value for p in Priority)
