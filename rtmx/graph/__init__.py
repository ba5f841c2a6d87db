"""Dependency graph analysis over an RTM database."""

from rtmx.graph.dependency_graph import DependencyGraph
from rtmx.graph.cycles import find_cycle_path, find_cycles, has_cycles, topological_sort
from rtmx.graph.reciprocity import (
    ReciprocityFix,
    find_reciprocity_violations,
    reconcile_reciprocity,
)

__all__ = [
    "DependencyGraph",
    "ReciprocityFix",
    "find_cycle_path",
    "find_cycles",
    "find_reciprocity_violations",
    "has_cycles",
    "reconcile_reciprocity",
    "topological_sort",
]
