"""Multi-scope consistency and reference integrity.

Architecture::

    placement.py    Placement Resolver (pure)
    references.py   Reference Integrity Manager (pure)
    plan.py         Phased write plans and batch splitting
    locator.py      Entity Locator -- find copies by id
    cascade.py      Cascade Delete Handler
    engine.py       Sync Engine -- one coroutine per user intent
    audit.py        IntegrityAuditor -- detect and repair broken invariants
"""

from knotsync.sync.audit import AuditReport, Finding, FindingKind, IntegrityAuditor
from knotsync.sync.cascade import CascadeDeleteHandler, CascadeReport
from knotsync.sync.engine import SyncEngine
from knotsync.sync.locator import EntityLocator, Located
from knotsync.sync.placement import ScopeOp, ScopeWrite, resolve_placement
from knotsync.sync.plan import Phase, WritePlan
from knotsync.sync.references import EntityCopies

__all__ = [
    "AuditReport",
    "Finding",
    "FindingKind",
    "IntegrityAuditor",
    "CascadeDeleteHandler",
    "CascadeReport",
    "SyncEngine",
    "EntityLocator",
    "Located",
    "ScopeOp",
    "ScopeWrite",
    "resolve_placement",
    "Phase",
    "WritePlan",
    "EntityCopies",
]
