#!/usr/bin/env python3
"""RTMX structured exception hierarchy.

Every error raised by the core derives from RTMXError. The core never prints
and never exits; the CLI shell maps these to exit codes and messages.

Usage:
    from rtmx.errors import ParseError, RequirementNotFoundError

    raise ParseError("invalid status 'DONE'", path="rtm.csv", row=4, column="status")
"""


class RTMXError(Exception):
    """Base exception for all RTMX errors.

    Attributes:
        path: File the error refers to, if any.
        row: 1-based row number in the delimited file (header is row 1).
        column: Column name the error refers to.
    """

    def __init__(self, message: str, path: str = "", row: int = 0, column: str = ""):
        super().__init__(message)
        self.message = message
        self.path = str(path) if path else ""
        self.row = row
        self.column = column

    def __str__(self) -> str:
        prefix = []
        if self.path:
            prefix.append(self.path)
        if self.row:
            prefix.append(f"row {self.row}")
        if self.column:
            prefix.append(f"column {self.column}")
        if prefix:
            return f"{': '.join(prefix)}: {self.message}"
        return self.message


class DatabaseIOError(RTMXError, OSError):
    """File open/read/write/rename failure. Carries the offending path."""


class ParseError(RTMXError):
    """Syntax-level failure of the tabular file (unbalanced quote, bad number)."""


class SchemaError(ParseError):
    """Field-level failure: unknown enum value, bad ReqID shape, bad column."""


class ValidationError(RTMXError):
    """A loaded or raw database violates a model invariant."""


class ConflictError(ValidationError):
    """Two requirements claim the same ReqID."""

    def __init__(self, req_id: str, path: str = "", row: int = 0):
        super().__init__(f"duplicate id {req_id}", path=path, row=row, column="req_id")
        self.req_id = req_id


class CycleError(ValidationError):
    """Circular dependency found while validating. The graph itself returns data."""

    def __init__(self, cycles, path: str = ""):
        super().__init__(f"found {len(cycles)} circular dependency(s)", path=path)
        self.cycles = cycles


class RequirementNotFoundError(RTMXError, KeyError):
    """Unknown ReqID passed to a lookup or dangling reference target."""

    def __init__(self, req_id: str, path: str = ""):
        super().__init__(f"requirement {req_id!r} not found", path=path)
        self.req_id = req_id

    # KeyError.__str__ would repr() the message
    __str__ = RTMXError.__str__


class ConfigurationError(RTMXError):
    """Configuration file is unreadable or malformed."""

    def __init__(self, message: str, path: str = "", config_key: str = ""):
        super().__init__(message, path=path)
        self.config_key = config_key


class ExitCodeError(RTMXError):
    """Propagates a numeric exit code from a command without a textual error."""

    def __init__(self, exit_code: int, message: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
