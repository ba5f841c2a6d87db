# RTMX result data types

"""Pydantic models for verification, diff and health results.

These are the structured outputs handed to the CLI layer, which renders them
as text or dumps them with ``model_dump_json``.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

from rtmx.database.enums import Status

Outcome = Literal["pass", "fail", "skip"]


# --- Test events (input to the verifier) ---

class TestEvent(BaseModel):
    """One terminal test outcome, whatever runner produced it."""
    __test__ = False  # not a pytest test class

    test: str
    outcome: Outcome
    package: str = ""
    elapsed: Optional[float] = None

    @property
    def key(self) -> str:
        return f"{self.package}/{self.test}" if self.package else self.test


# --- Verification ---

class VerificationResult(BaseModel):
    """Derived status for one requirement that names a test function."""
    req_id: str
    test_function: str
    previous_status: Status
    new_status: Status
    tests_total: int = 0
    tests_passed: int = 0
    tests_failed: int = 0
    tests_skipped: int = 0
    matched_tests: List[str] = []

    @property
    def updated(self) -> bool:
        return self.new_status != self.previous_status

    @property
    def passing(self) -> bool:
        return self.tests_passed > 0 and self.tests_failed == 0

    @property
    def failing(self) -> bool:
        return self.tests_failed > 0


# --- Diff ---

class ChangedField(BaseModel):
    """A single field that differs between baseline and current."""
    req_id: str
    field: str
    old_value: str
    new_value: str


class SnapshotStats(BaseModel):
    """Headline numbers for one side of a diff."""
    path: str = ""
    total: int = 0
    completion: float = 0.0
    complete: int = 0
    partial: int = 0
    missing: int = 0


class DiffResult(BaseModel):
    """Structural comparison of two database snapshots."""
    baseline: SnapshotStats
    current: SnapshotStats
    added: List[str] = []
    removed: List[str] = []
    changed: List[ChangedField] = []
    improved: int = 0
    regressed: int = 0
    summary: Literal["STABLE", "IMPROVED", "REGRESSED", "BREAKING"] = "STABLE"
    exit_code: int = 0

    @property
    def completion_delta(self) -> float:
        return self.current.completion - self.baseline.completion


# --- Health ---

class HealthCheck(BaseModel):
    """Individual health check result."""
    name: str
    status: Literal["PASS", "WARN", "FAIL", "SKIP"]
    message: str
    blocking: bool = False
    details: Dict[str, Any] = {}


class HealthResult(BaseModel):
    """Aggregate health of an RTM project."""
    status: Literal["HEALTHY", "WARNING", "UNHEALTHY"]
    checks: List[HealthCheck] = []
    summary: Dict[str, int] = {}
    stats: Dict[str, Any] = {}

    @property
    def exit_code(self) -> int:
        return {"HEALTHY": 0, "WARNING": 1, "UNHEALTHY": 2}[self.status]
