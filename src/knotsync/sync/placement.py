"""
Placement Resolver.

Pure mapping from an entity's old and new placement to the ordered scope
writes that take its copies from one layout to the other.

Rules (Spots and Knots alike):
    - The authoritative copy lives in the group scope when the entity has a
      group, otherwise in the owner's private scope. It is upserted first.
    - When the group changes, the old authoritative copy is deleted, last.
    - The public copy is upserted iff the new state is groupless and public,
      deleted iff a public copy existed and the new state no longer
      qualifies, and untouched otherwise.
    - Deletion (``new=None``) removes the public copy, then the
      authoritative copy.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from knotsync.models.base import EntityKind, Placement
from knotsync.store.paths import ScopePaths
from knotsync.store.writes import Write


class ScopeOp(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class ScopeWrite:
    """One copy-level action.

    ``existed`` tells the engine whether a copy was already at ``scope``
    before this transition, i.e. whether an upsert can be a field update.
    """

    scope: str
    op: ScopeOp
    payload: Mapping[str, Any] = field(default_factory=dict)
    authoritative: bool = False
    existed: bool = False

    def to_write(self, doc_id: str, changes: Mapping[str, Any] | None = None) -> Write:
        """Concrete batch write.

        Upserts onto an existing copy send only ``changes`` when given, so
        concurrent edits to other fields are not overwritten; new copies get
        the full payload.
        """
        if self.op == ScopeOp.DELETE:
            return Write.delete(self.scope, doc_id)
        if self.existed and changes is not None:
            return Write.update(self.scope, doc_id, changes)
        return Write.set(self.scope, doc_id, self.payload)


def resolve_placement(
    paths: ScopePaths,
    kind: EntityKind,
    owner_id: str,
    old: Placement | None,
    new: Placement | None,
    payload: Mapping[str, Any] | None = None,
) -> list[ScopeWrite]:
    """Ordered scope writes for the transition ``old -> new``.

    ``old=None`` creates from nothing; ``new=None`` deletes. Both ``None``
    is a no-op.
    """
    payload = dict(payload or {})
    writes: list[ScopeWrite] = []
    public = paths.public(kind)
    old_home = paths.authoritative(kind, owner_id, old) if old is not None else None
    had_public = old is not None and old.has_public_copy

    if new is None:
        if had_public:
            writes.append(ScopeWrite(public, ScopeOp.DELETE, existed=True))
        if old_home is not None:
            writes.append(ScopeWrite(old_home, ScopeOp.DELETE, authoritative=True, existed=True))
        return writes

    new_home = paths.authoritative(kind, owner_id, new)
    writes.append(
        ScopeWrite(new_home, ScopeOp.UPSERT, payload, authoritative=True, existed=new_home == old_home)
    )
    if new.has_public_copy:
        writes.append(ScopeWrite(public, ScopeOp.UPSERT, payload, existed=had_public))
    elif had_public:
        writes.append(ScopeWrite(public, ScopeOp.DELETE, existed=True))
    if old_home is not None and old_home != new_home:
        writes.append(ScopeWrite(old_home, ScopeOp.DELETE, authoritative=True, existed=True))
    return writes


__all__ = ["ScopeOp", "ScopeWrite", "resolve_placement"]
