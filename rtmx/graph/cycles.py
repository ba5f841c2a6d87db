#!/usr/bin/env python3
"""Cycle detection and ordering over a DependencyGraph.

find_cycles uses Tarjan's strongly connected components algorithm, iterative
so deep dependency chains do not hit the recursion limit. topological_sort uses
Kahn's algorithm with ties broken by database order.
"""

import heapq
from typing import List, Sequence

from rtmx.graph.dependency_graph import DependencyGraph


def find_cycles(graph: DependencyGraph) -> List[List[str]]:
    """Strongly connected components that form cycles.

    A component is reported when it has two or more members, or when it is a
    single requirement that depends on itself. Components are returned in
    discovery order.
    """
    index_of = {}
    lowlink = {}
    on_stack = set()
    stack: List[str] = []
    cycles: List[List[str]] = []
    counter = 0

    for start in graph.nodes:
        if start in index_of:
            continue
        index_of[start] = lowlink[start] = counter
        counter += 1
        stack.append(start)
        on_stack.add(start)
        work = [(start, iter(graph.dependencies(start)))]

        while work:
            node, successors = work[-1]
            descended = False
            for succ in successors:
                if succ not in index_of:
                    index_of[succ] = lowlink[succ] = counter
                    counter += 1
                    stack.append(succ)
                    on_stack.add(succ)
                    work.append((succ, iter(graph.dependencies(succ))))
                    descended = True
                    break
                if succ in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[succ])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

            if lowlink[node] == index_of[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                if len(component) > 1 or node in graph.dependencies(node):
                    cycles.append(component)

    return cycles


def has_cycles(graph: DependencyGraph) -> bool:
    return bool(find_cycles(graph))


def find_cycle_path(graph: DependencyGraph, members: Sequence[str]) -> List[str]:
    """Walk a closed path ``v0 -> ... -> vk -> v0`` inside *members*.

    Only edges between members are followed. Returns an empty list when the
    induced subgraph has no cycle.
    """
    member_set = set(members)

    def inside(node):
        return [dep for dep in graph.dependencies(node) if dep in member_set]

    for start in members:
        path = [start]
        visited = {start}
        work = [iter(inside(start))]
        while work:
            succ = next(work[-1], None)
            if succ is None:
                work.pop()
                path.pop()
                continue
            if succ == start:
                return path + [start]
            if succ in visited:
                continue
            visited.add(succ)
            path.append(succ)
            work.append(iter(inside(succ)))
    return []


def topological_sort(graph: DependencyGraph) -> List[str]:
    """Requirements ordered dependencies-first.

    Ties go to the requirement that appears first in the database. Returns an
    empty list if the graph has any cycle.
    """
    position = {req_id: i for i, req_id in enumerate(graph.nodes)}
    remaining = {req_id: len(graph.dependencies(req_id)) for req_id in graph.nodes}
    ready = [(position[req_id], req_id) for req_id, count in remaining.items() if count == 0]
    heapq.heapify(ready)

    order: List[str] = []
    while ready:
        _, req_id = heapq.heappop(ready)
        order.append(req_id)
        for dependent in graph.dependents(req_id):
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                heapq.heappush(ready, (position[dependent], dependent))

    if len(order) != len(graph):
        return []
    return order
