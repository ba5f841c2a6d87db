"""Closed-loop verification: test events in, requirement statuses out."""

from rtmx.verification.data_types import TestEvent, VerificationResult
from rtmx.verification.events import (
    load_events,
    parse_go_test_json,
    parse_junit_xml,
    parse_pytest_json,
    run_test_command,
)
from rtmx.verification.verifier import apply_results, verify

__all__ = [
    "TestEvent",
    "VerificationResult",
    "apply_results",
    "load_events",
    "parse_go_test_json",
    "parse_junit_xml",
    "parse_pytest_json",
    "run_test_command",
    "verify",
]
