"""Raw-file and model-level validation of RTM databases."""

from rtmx.validation.validator import (
    REQUIRED_COLUMNS,
    assert_valid,
    validate_database,
    validate_file,
    validate_files,
    validate_raw,
)

__all__ = [
    "REQUIRED_COLUMNS",
    "assert_valid",
    "validate_database",
    "validate_file",
    "validate_files",
    "validate_raw",
]
