#!/usr/bin/env python3
"""Requirement dependency graph built from a Database snapshot.

Adjacency is stored as two ReqID -> [ReqID] maps. An edge ``A -> B`` means
"A depends on B". Edges whose target is not in the database are dropped from
the graph but stay on the Requirement (cross-database ``@`` references,
dangling IDs).

The graph holds identifiers only. Rebuild it after mutating the database.

Usage:
    from rtmx.database import Database
    from rtmx.graph import DependencyGraph

    graph = DependencyGraph.from_database(Database.load("rtm.csv"))
    graph.transitive_dependencies("REQ-CORE-003")
    graph.next_workable()
"""

import logging
from typing import Dict, List, Optional

from rtmx.database.database import Database
from rtmx.database.requirement import is_cross_db_ref

logger = logging.getLogger("rtmx.graph.dependency_graph")


class DependencyGraph:
    """Directed dependency graph over the requirements of one Database."""

    def __init__(self, db: Database):
        self.db = db
        self._deps: Dict[str, List[str]] = {}
        self._dependents: Dict[str, List[str]] = {}
        self._build()

    @classmethod
    def from_database(cls, db: Database) -> "DependencyGraph":
        return cls(db)

    def _build(self) -> None:
        for req_id in self.db.ids():
            self._deps[req_id] = []
            self._dependents[req_id] = []

        dropped = 0
        for req in self.db:
            for dep in req.dependencies:
                if dep not in self._deps:
                    if not is_cross_db_ref(dep):
                        dropped += 1
                    continue
                self._deps[req.req_id].append(dep)
                self._dependents[dep].append(req.req_id)
        if dropped:
            logger.debug("Dropped %d dependency edge(s) to unknown requirements", dropped)

    # ------------------------------------------------------------------
    # Nodes and direct neighbours
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[str]:
        return list(self._deps)

    def __contains__(self, req_id) -> bool:
        return req_id in self._deps

    def __len__(self) -> int:
        return len(self._deps)

    def dependencies(self, req_id: str) -> List[str]:
        """Direct dependencies of *req_id* in column order (empty if unknown)."""
        return list(self._deps.get(req_id, ()))

    def dependents(self, req_id: str) -> List[str]:
        """Requirements that directly depend on *req_id*, in database order."""
        return list(self._dependents.get(req_id, ()))

    def edges(self):
        """Iterate ``(dependent, dependency)`` pairs."""
        for req_id, deps in self._deps.items():
            for dep in deps:
                yield req_id, dep

    @property
    def edge_count(self) -> int:
        return sum(len(deps) for deps in self._deps.values())

    # ------------------------------------------------------------------
    # Transitive closures
    # ------------------------------------------------------------------

    @staticmethod
    def _preorder(adj: Dict[str, List[str]], seed: str) -> List[str]:
        """Iterative DFS preorder from *seed*, excluding the seed itself."""
        visited = {seed}
        order: List[str] = []
        stack = list(reversed(adj.get(seed, ())))
        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            order.append(node)
            stack.extend(reversed(adj.get(node, ())))
        return order

    def transitive_dependencies(self, req_id: str) -> List[str]:
        """Everything *req_id* depends on, directly or indirectly."""
        return self._preorder(self._deps, req_id)

    def transitive_dependents(self, req_id: str) -> List[str]:
        """Everything that depends on *req_id*, directly or indirectly."""
        return self._preorder(self._dependents, req_id)

    # ------------------------------------------------------------------
    # Blocking and workable frontier
    # ------------------------------------------------------------------

    def blocking_dependencies(self, req_id: str) -> List[str]:
        """Direct dependencies of *req_id* that are not COMPLETE."""
        return [dep for dep in self._deps.get(req_id, ())
                if self.db.require(dep).is_incomplete]

    def is_blocked(self, req_id: str) -> bool:
        return bool(self.blocking_dependencies(req_id))

    def next_workable(self) -> List[str]:
        """Incomplete requirements whose in-graph dependencies are all COMPLETE.

        Cross-database and unknown dependency IDs are not in the graph and
        count as satisfied. Result is in database order.
        """
        return [req.req_id for req in self.db
                if req.is_incomplete and not self.is_blocked(req.req_id)]

    def blocked_count(self, req_id: str) -> int:
        """Incomplete requirements transitively held up by *req_id*.

        The walk follows dependents through incomplete requirements only; a
        COMPLETE dependent ends that branch.
        """
        count = 0
        visited = {req_id}
        stack = list(self._dependents.get(req_id, ()))
        while stack:
            dependent = stack.pop()
            if dependent in visited:
                continue
            visited.add(dependent)
            if self.db.require(dependent).is_incomplete:
                count += 1
                stack.extend(self._dependents[dependent])
        return count

    def blocker_scores(self) -> Dict[str, int]:
        """ReqID -> blocked_count for every incomplete requirement."""
        return {req.req_id: self.blocked_count(req.req_id)
                for req in self.db if req.is_incomplete}

    def blocking_analysis(self) -> List[dict]:
        """Incomplete requirements with a non-zero blocker score.

        Sorted by score descending, ties by ReqID.

        Returns:
            list of dicts with req_id, blocks (score), status, priority.
        """
        ranked = sorted(self.blocker_scores().items(), key=lambda item: (-item[1], item[0]))
        results = []
        for req_id, score in ranked:
            if score == 0:
                continue
            req = self.db.require(req_id)
            results.append({
                "req_id": req_id,
                "blocks": score,
                "status": req.status.value,
                "priority": req.priority.value,
            })
        return results

    def critical_path(self, limit: int = 0) -> List[str]:
        """Blockers ordered by how much incomplete work they hold up."""
        ids = [row["req_id"] for row in self.blocking_analysis()]
        return ids[:limit] if limit else ids

    def bottlenecks(self, min_blocked: int = 3) -> List[dict]:
        """Blocking analysis rows with a score of at least *min_blocked*."""
        return [row for row in self.blocking_analysis() if row["blocks"] >= min_blocked]

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------

    def roots(self) -> List[str]:
        """Requirements with no in-graph dependencies."""
        return [req_id for req_id, deps in self._deps.items() if not deps]

    def leaves(self) -> List[str]:
        """Requirements nothing depends on."""
        return [req_id for req_id, deps in self._dependents.items() if not deps]

    def layers(self) -> Optional[List[List[str]]]:
        """Group requirements into waves that can be worked in parallel.

        Layer 0 holds the roots, layer N holds requirements whose dependencies
        all sit in earlier layers. Returns None if the graph has a cycle.
        """
        remaining = {req_id: len(deps) for req_id, deps in self._deps.items()}
        current = [req_id for req_id, count in remaining.items() if count == 0]
        result: List[List[str]] = []
        placed = 0
        while current:
            result.append(current)
            placed += len(current)
            following = []
            for req_id in current:
                for dependent in self._dependents[req_id]:
                    remaining[dependent] -= 1
                    if remaining[dependent] == 0:
                        following.append(dependent)
            current = following
        if placed != len(self._deps):
            return None
        return result

    def execution_order(self) -> List[str]:
        """Incomplete requirements in dependency-first order (empty on cycles)."""
        from rtmx.graph.cycles import topological_sort
        return [req_id for req_id in topological_sort(self)
                if self.db.require(req_id).is_incomplete]

    def statistics(self) -> dict:
        """Node, edge, root and leaf counts plus average out-degree."""
        nodes = len(self._deps)
        edges = self.edge_count
        return {
            "nodes": nodes,
            "edges": edges,
            "roots": len(self.roots()),
            "leaves": len(self.leaves()),
            "avg_dependencies": round(edges / nodes, 2) if nodes else 0.0,
        }

    def __repr__(self) -> str:
        return f"DependencyGraph(nodes={len(self)}, edges={self.edge_count})"
