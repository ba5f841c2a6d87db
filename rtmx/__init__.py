"""RTMX: Requirements Traceability Matrix toolkit.

A flat CSV database of requirements linked to tests and to each other, with
dependency analysis, closed-loop verification from test results, snapshot
diffs and health checks.
"""

__version__ = "0.4.0"
