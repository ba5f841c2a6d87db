#!/usr/bin/env python3
"""Reciprocity between the ``dependencies`` and ``blocks`` columns.

"A depends on B" must be mirrored by "B blocks A", and the other way round.
Reconciliation only adds the missing side; it never removes edges.
Cross-database (``@``) and unknown targets are outside the local database and
are skipped.

Usage:
    from rtmx.graph.reciprocity import find_reciprocity_violations, reconcile_reciprocity

    fixes = find_reciprocity_violations(db)
    reconcile_reciprocity(db, fixes, execute=True)
    db.save()
"""

import logging
from typing import List, NamedTuple, Optional

from rtmx.database.database import Database

logger = logging.getLogger("rtmx.graph.reciprocity")


class ReciprocityFix(NamedTuple):
    """Add *value* to the *field* column of requirement *req_id*."""

    req_id: str
    field: str
    value: str

    def describe(self) -> str:
        return f"{self.req_id}.{self.field} += {self.value}"


def find_reciprocity_violations(db: Database) -> List[ReciprocityFix]:
    """Missing mirror edges, in database order."""
    fixes: List[ReciprocityFix] = []
    for req in db:
        for dep in req.dependencies:
            target = db.get(dep)
            if target is not None and req.req_id not in target.blocks:
                fixes.append(ReciprocityFix(dep, "blocks", req.req_id))
        for blocked in req.blocks:
            target = db.get(blocked)
            if target is not None and req.req_id not in target.dependencies:
                fixes.append(ReciprocityFix(blocked, "dependencies", req.req_id))
    return fixes


def reconcile_reciprocity(db: Database, fixes: Optional[List[ReciprocityFix]] = None,
                          execute: bool = False) -> List[ReciprocityFix]:
    """Apply *fixes* (default: all current violations) when *execute* is set.

    Without *execute* this is a dry run that returns what would change. The
    database is modified in memory only; the caller saves it.
    """
    if fixes is None:
        fixes = find_reciprocity_violations(db)
    if not execute:
        return fixes

    applied = 0
    for fix in fixes:
        req = db.require(fix.req_id)
        if getattr(req, fix.field).add(fix.value):
            applied += 1
    if applied:
        db.dirty = True
    logger.info("Applied %d of %d reciprocity fix(es)", applied, len(fixes))
    return fixes
