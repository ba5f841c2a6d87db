"""Database comparison and project health analysis."""

from rtmx.analysis.diff import classify, compare_databases
from rtmx.analysis.health import run_health, run_health_checks

__all__ = [
    "classify",
    "compare_databases",
    "run_health",
    "run_health_checks",
]
