#!/usr/bin/env python3
"""In-memory RTM database.

Owns the requirements in file order plus a ReqID index. Graphs built from a
Database hold identifiers only; rebuild them after mutating the database.

Usage:
    from rtmx.database import Database

    db = Database.load("docs/rtm_database.csv")
    db.update("REQ-CORE-001", {"status": "PARTIAL", "assignee": "alice"})
    db.save()
"""

from collections import Counter
from typing import Any, Dict, Iterator, List, Mapping, Optional

from rtmx.database.enums import Priority, Status
from rtmx.database.requirement import Requirement, coerce_field
from rtmx.errors import ConflictError, RequirementNotFoundError, SchemaError


class Database:
    """Ordered collection of Requirements keyed by ReqID."""

    def __init__(self, requirements=(), path: str = ""):
        self._requirements: Dict[str, Requirement] = {}
        self._order: List[str] = []
        self.path = str(path) if path else ""
        self.dirty = False
        for req in requirements:
            self.add(req)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path) -> "Database":
        """Load a database file. See rtmx.database.csv_store.load_database."""
        from rtmx.database.csv_store import load_database
        return load_database(path)

    def save(self, path=None):
        """Atomically write the database to *path* (default: load path)."""
        from rtmx.database.csv_store import save_database
        return save_database(self, path)

    def mark_clean(self) -> None:
        self.dirty = False

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[Requirement]:
        return iter(self.all())

    def __contains__(self, req_id) -> bool:
        return req_id in self._requirements

    def exists(self, req_id: str) -> bool:
        return req_id in self._requirements

    def get(self, req_id: str) -> Optional[Requirement]:
        """Return the requirement or None."""
        return self._requirements.get(req_id)

    def require(self, req_id: str) -> Requirement:
        """Return the requirement or raise RequirementNotFoundError."""
        req = self._requirements.get(req_id)
        if req is None:
            raise RequirementNotFoundError(req_id, path=self.path)
        return req

    def all(self) -> List[Requirement]:
        return [self._requirements[req_id] for req_id in self._order]

    def ids(self) -> List[str]:
        return list(self._order)

    def index_of(self, req_id: str) -> int:
        """Position of *req_id* in file order."""
        return self._order.index(req_id)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, req: Requirement) -> None:
        if not req.req_id:
            raise SchemaError("requirement ID cannot be empty", column="req_id")
        if req.req_id in self._requirements:
            raise ConflictError(req.req_id, path=self.path)
        self._requirements[req.req_id] = req
        self._order.append(req.req_id)
        self.dirty = True

    def update(self, req_id: str, fields: Mapping[str, Any]) -> Requirement:
        """Apply validated field updates to an existing requirement.

        All values are validated before any is written, so a failing update
        leaves the requirement untouched. ``req_id`` is immutable. Keys that
        name an existing extra column update that column.

        Raises:
            RequirementNotFoundError: unknown *req_id*.
            SchemaError: unknown field name or invalid value.
        """
        req = self.require(req_id)
        staged = {}
        staged_extra = {}
        for name, value in fields.items():
            if name == "req_id":
                if value != req_id:
                    raise SchemaError("req_id is immutable", column="req_id")
                continue
            if name in req.extra:
                staged_extra[name] = "" if value is None else str(value)
                continue
            staged[name] = coerce_field(name, value)

        for name, value in staged.items():
            setattr(req, name, value)
        req.extra.update(staged_extra)
        self.dirty = True
        return req

    def remove(self, req_id: str) -> Requirement:
        req = self.require(req_id)
        del self._requirements[req_id]
        self._order.remove(req_id)
        self.dirty = True
        return req

    delete = remove

    # ------------------------------------------------------------------
    # Queries and aggregations
    # ------------------------------------------------------------------

    def filter(self, status: Status = None, priority: Priority = None,
               category: str = None, phase: int = None, has_test: bool = None,
               is_complete: bool = None, is_blocked: bool = None,
               assignee: str = None) -> List[Requirement]:
        """Requirements matching every given criterion, in file order."""
        results = []
        for req in self.all():
            if status is not None and req.status != Status.parse(status):
                continue
            if priority is not None and req.priority != Priority.parse(priority):
                continue
            if category and req.category != category:
                continue
            if phase is not None and req.phase != phase:
                continue
            if has_test is not None and req.has_test != has_test:
                continue
            if is_complete is not None and req.is_complete != is_complete:
                continue
            if is_blocked is not None and req.is_blocked(self) != is_blocked:
                continue
            if assignee and req.assignee != assignee:
                continue
            results.append(req)
        return results

    def status_counts(self) -> Counter:
        return Counter(req.status for req in self.all())

    def priority_counts(self) -> Counter:
        return Counter(req.priority for req in self.all())

    def completion_percentage(self) -> float:
        """Mean completion percent across requirements (0 if empty)."""
        return completion_of(self.all())

    def categories(self) -> List[str]:
        return sorted({req.category for req in self.all()})

    def phases(self) -> List[int]:
        """Assigned (non-zero) phases, ascending."""
        return sorted({req.phase for req in self.all() if req.phase > 0})

    def by_category(self) -> Dict[str, List[Requirement]]:
        """Requirements grouped by category, categories in lexicographic order."""
        grouped: Dict[str, List[Requirement]] = {}
        for req in self.all():
            grouped.setdefault(req.category, []).append(req)
        return {cat: grouped[cat] for cat in sorted(grouped)}

    def by_phase(self) -> Dict[int, List[Requirement]]:
        """Requirements grouped by phase, phases ascending (0 = unassigned)."""
        grouped: Dict[int, List[Requirement]] = {}
        for req in self.all():
            grouped.setdefault(req.phase, []).append(req)
        return {phase: grouped[phase] for phase in sorted(grouped)}

    def incomplete(self) -> List[Requirement]:
        return [req for req in self.all() if req.is_incomplete]

    def complete(self) -> List[Requirement]:
        return [req for req in self.all() if req.is_complete]

    def backlog(self) -> List[Requirement]:
        """Incomplete requirements by priority weight, then phase, then ReqID."""
        return sorted(self.incomplete(),
                      key=lambda r: (r.priority.weight, r.phase, r.req_id))

    def __repr__(self) -> str:
        return f"Database(path={self.path!r}, requirements={len(self)})"


def completion_of(requirements) -> float:
    """Mean Status.completion_percent over *requirements* (0 if empty)."""
    requirements = list(requirements)
    if not requirements:
        return 0.0
    return sum(r.status.completion_percent for r in requirements) / len(requirements)
