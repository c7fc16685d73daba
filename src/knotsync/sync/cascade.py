"""
Cascade Delete Handler.

Plans the removal of a Spot or Knot together with every reference to it.

Holders are found two ways: by a collection-group query over every scope of
the holder kind (anyone's private scope, the public scope, every group) for
documents whose back-reference array contains the id, and by resolving the
entity's own forward references by id. The query finds every holder listing
the id; forward references add holders the entity lists whose side of the
link was never written.

The resulting plan is phased: reference stripping, then secondary
deletions (public copy, stray copies, comments), then the authoritative
copy. Group membership changes are never cascaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from knotsync.core.logging import get_logger
from knotsync.models.base import EntityKind
from knotsync.models.entities import Spot
from knotsync.store.base import DocumentStore
from knotsync.store.paths import ScopePaths
from knotsync.store.query import Query
from knotsync.store.writes import Write
from knotsync.sync.locator import EntityLocator, Located
from knotsync.sync.placement import ScopeOp, resolve_placement
from knotsync.sync.plan import Phase, WritePlan
from knotsync.sync.references import KNOT_SPOTS, SPOT_KNOTS, EntityCopies, strip_reference

log = get_logger(__name__)


@dataclass
class CascadeReport:
    """What a deletion touched, by ``(scope, doc_id)``."""

    entity_kind: str
    entity_id: str
    stripped: list[tuple[str, str]] = field(default_factory=list)
    deleted: list[tuple[str, str]] = field(default_factory=list)
    comments_deleted: int = 0
    batches: int = 0

    @property
    def holders(self) -> set[str]:
        return {doc_id for _, doc_id in self.stripped}


class CascadeDeleteHandler:
    def __init__(self, store: DocumentStore, paths: ScopePaths, locator: EntityLocator) -> None:
        self._store = store
        self._paths = paths
        self._locator = locator

    async def plan_spot_deletion(self, located: Located) -> tuple[WritePlan, CascadeReport]:
        return await self._plan(located, holder_kind=EntityKind.KNOT, holder_field=KNOT_SPOTS)

    async def plan_knot_deletion(self, located: Located) -> tuple[WritePlan, CascadeReport]:
        return await self._plan(located, holder_kind=EntityKind.SPOT, holder_field=SPOT_KNOTS)

    async def _plan(
        self, located: Located, *, holder_kind: EntityKind, holder_field: str
    ) -> tuple[WritePlan, CascadeReport]:
        entity = located.entity
        kind = located.copies.kind
        plan = WritePlan()
        report = CascadeReport(kind.value, entity.id)

        for holder in await self._find_holders(located, holder_kind, holder_field):
            plan.add(Phase.REFERENCES, *strip_reference(holder, holder_field, entity.id))
            report.stripped += [(scope, holder.entity_id) for scope in holder.scopes]

        if isinstance(entity, Spot):
            comments = await self._store.query(Query(self._paths.comments(entity.id)))
            plan.add(Phase.PRIMARY, *(Write.delete(self._paths.comments(entity.id), c.id) for c in comments))
            report.comments_deleted = len(comments)

        for scope in located.stray:
            plan.add(Phase.PRIMARY, Write.delete(scope, entity.id))
            report.deleted.append((scope, entity.id))

        for scope_write in resolve_placement(self._paths, kind, entity.owner_id, entity.placement, None):
            if scope_write.op != ScopeOp.DELETE or scope_write.scope not in located.copies.scopes:
                continue
            phase = Phase.AUTHORITATIVE if scope_write.authoritative else Phase.PRIMARY
            plan.add(phase, scope_write.to_write(entity.id))
            report.deleted.append((scope_write.scope, entity.id))

        log.info(
            "cascade_planned",
            entity_kind=kind.value,
            entity_id=entity.id,
            holders=len(report.stripped),
            writes=len(plan),
        )
        return plan, report

    async def _find_holders(
        self, located: Located, holder_kind: EntityKind, holder_field: str
    ) -> list[EntityCopies]:
        entity = located.entity
        holders: dict[str, dict[str, None]] = {}
        everywhere = Query.group(self._paths.root, self._paths.collection_id(holder_kind))
        for doc in await self._store.query(everywhere.where(holder_field, "array_contains", entity.id)):
            holders.setdefault(doc.id, {})[doc.collection] = None

        group_ids = await self._locator.member_group_ids(entity.owner_id)
        scopes = await self._locator.candidate_scopes(
            holder_kind,
            entity.owner_id,
            group_ids=[entity.group_id, *group_ids],
            include_member_groups=False,
        )
        forward = entity.knot_ids if isinstance(entity, Spot) else entity.spot_ids
        for holder in await self._locator.locate_many(holder_kind, forward, scopes):
            for scope in holder.copies.scopes:
                holders.setdefault(holder.id, {})[scope] = None
        return [EntityCopies(holder_kind, holder_id, tuple(scoped)) for holder_id, scoped in holders.items()]


__all__ = ["CascadeReport", "CascadeDeleteHandler"]
