"""
Integrity audit and repair.

Scans the scopes reachable from one user (their private scopes, their copies
in the public scope and the scopes of their groups) and reports where the
stored state breaks the invariants the Sync Engine maintains:

    ASYMMETRIC_LINK      a Spot lists a Knot (or vice versa) whose copy does
                         not list it back
    DANGLING_REFERENCE   an id in ``knotIds``/``spotIds`` resolves to nothing:
                         no copy in the scanned or public scopes, and no copy
                         anywhere in the app listing the holder back
    STRAY_PUBLIC_COPY    a public copy of an entity that is grouped or not
                         public

Dangling references are what an interrupted cascade leaves behind; the
repair writes strip them, add missing back-references and delete stray
copies, using the same convergent transforms as normal operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from knotsync.core.errors import SchemaError
from knotsync.core.logging import get_logger
from knotsync.models.base import EntityKind
from knotsync.models.entities import Knot, Spot
from knotsync.store.base import DocumentStore
from knotsync.store.codec import decode
from knotsync.store.paths import ScopePaths
from knotsync.store.query import Query
from knotsync.store.writes import Write
from knotsync.sync.locator import EntityLocator
from knotsync.sync.plan import Phase, WritePlan
from knotsync.sync.references import KNOT_SPOTS, SPOT_KNOTS, EntityCopies, strip_reference, toggle_member

log = get_logger(__name__)

_LINK_FIELD = {EntityKind.SPOT: SPOT_KNOTS, EntityKind.KNOT: KNOT_SPOTS}
_OTHER = {EntityKind.SPOT: EntityKind.KNOT, EntityKind.KNOT: EntityKind.SPOT}


class FindingKind(str, Enum):
    ASYMMETRIC_LINK = "asymmetric_link"
    DANGLING_REFERENCE = "dangling_reference"
    STRAY_PUBLIC_COPY = "stray_public_copy"


@dataclass(frozen=True)
class Finding:
    """One broken invariant on one stored copy."""

    kind: FindingKind
    holder_kind: EntityKind
    holder_id: str
    scope: str
    field: str | None = None
    value: str | None = None

    @property
    def holder(self) -> EntityCopies:
        """The one stored copy this finding is about."""
        return EntityCopies(self.holder_kind, self.holder_id, (self.scope,))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "holder_kind": self.holder_kind.value,
            "holder_id": self.holder_id,
            "scope": self.scope,
            "field": self.field,
            "value": self.value,
        }


@dataclass
class AuditReport:
    user_id: str
    findings: list[Finding] = field(default_factory=list)
    scanned: int = 0
    skipped: int = 0

    @property
    def clean(self) -> bool:
        return not self.findings

    def by_kind(self, kind: FindingKind) -> list[Finding]:
        return [f for f in self.findings if f.kind == kind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "scanned": self.scanned,
            "skipped": self.skipped,
            "findings": [f.to_dict() for f in self.findings],
        }


# kind -> entity id -> scope -> entity
_Copies = dict[EntityKind, dict[str, dict[str, Spot | Knot]]]


class IntegrityAuditor:
    def __init__(self, store: DocumentStore, paths: ScopePaths) -> None:
        self._store = store
        self._paths = paths
        self._locator = EntityLocator(store, paths)

    async def audit_user(self, user_id: str) -> AuditReport:
        report = AuditReport(user_id)
        group_ids = await self._locator.member_group_ids(user_id)
        copies: _Copies = {EntityKind.SPOT: {}, EntityKind.KNOT: {}}
        stray: set[tuple[EntityKind, str]] = set()
        scanned: set[tuple[EntityKind, str, str]] = set()

        for kind in (EntityKind.SPOT, EntityKind.KNOT):
            queries = [Query(self._paths.private(user_id, kind))]
            queries.append(Query(self._paths.public(kind)).where("ownerId", "==", user_id))
            queries += [Query(self._paths.group(g, kind)) for g in group_ids]
            for query in queries:
                for doc in await self._store.query(query):
                    if self._add(report, copies, kind, query.collection, doc.id, doc.data):
                        scanned.add((kind, doc.id, query.collection))

        for kind, entities in copies.items():
            public = self._paths.public(kind)
            for entity_id, scoped in entities.items():
                if public in scoped and self._is_stray_public(kind, scoped):
                    stray.add((kind, entity_id))
                    report.findings.append(Finding(FindingKind.STRAY_PUBLIC_COPY, kind, entity_id, public))

        await self._resolve_missing(report, copies, scanned)
        seen: set[Finding] = set(report.findings)
        for kind, entities in copies.items():
            link_field = _LINK_FIELD[kind]
            other = _OTHER[kind]
            back_field = _LINK_FIELD[other]
            for entity_id, scoped in entities.items():
                for scope, entity in scoped.items():
                    if (kind, entity_id, scope) not in scanned:
                        continue
                    if (kind, entity_id) in stray and scope == self._paths.public(kind):
                        continue
                    for ref in self._refs(entity):
                        targets = copies[other].get(ref)
                        if not targets:
                            finding = Finding(FindingKind.DANGLING_REFERENCE, kind, entity_id, scope, link_field, ref)
                        else:
                            finding = None
                            for target_scope, target in targets.items():
                                if (other, ref) in stray and target_scope == self._paths.public(other):
                                    continue
                                if entity_id not in self._refs(target):
                                    candidate = Finding(
                                        FindingKind.ASYMMETRIC_LINK, other, ref, target_scope, back_field, entity_id
                                    )
                                    if candidate not in seen:
                                        seen.add(candidate)
                                        report.findings.append(candidate)
                        if finding is not None and finding not in seen:
                            seen.add(finding)
                            report.findings.append(finding)

        log.info(
            "audit_completed",
            user_id=user_id,
            scanned=report.scanned,
            findings=len(report.findings),
            skipped=report.skipped,
        )
        return report

    def repair_writes(self, report: AuditReport) -> WritePlan:
        """Writes restoring the invariants reported in ``report``."""
        plan = WritePlan()
        for finding in report.findings:
            if finding.kind == FindingKind.STRAY_PUBLIC_COPY:
                plan.add(Phase.PRIMARY, Write.delete(finding.scope, finding.holder_id))
            elif finding.kind == FindingKind.DANGLING_REFERENCE:
                plan.add(Phase.REFERENCES, *strip_reference(finding.holder, finding.field, finding.value))
            else:
                plan.add(Phase.REFERENCES, *toggle_member(finding.holder, finding.field, finding.value, True))
        return plan

    async def repair(self, report: AuditReport) -> int:
        """Commit the repair writes. Returns the number of writes applied."""
        plan = self.repair_writes(report)
        for batch in plan.batches(self._store.max_batch_size):
            await self._store.commit(batch)
        log.info("audit_repaired", user_id=report.user_id, writes=len(plan))
        return len(plan)

    # ── internals ───────────────────────────────────────────────

    def _add(
        self,
        report: AuditReport,
        copies: _Copies,
        kind: EntityKind,
        scope: str,
        doc_id: str,
        data: dict[str, Any],
    ) -> bool:
        try:
            entity = decode(kind, doc_id, data)
        except SchemaError as e:
            report.skipped += 1
            log.warning("audit_document_skipped", scope=scope, doc_id=doc_id, error=e.message)
            return False
        report.scanned += 1
        copies[kind].setdefault(doc_id, {})[scope] = entity  # type: ignore[assignment]
        return True

    def _is_stray_public(self, kind: EntityKind, scoped: dict[str, Spot | Knot]) -> bool:
        public = self._paths.public(kind)
        truth = next((e for s, e in scoped.items() if s != public), scoped[public])
        return not truth.placement.has_public_copy or not scoped[public].placement.has_public_copy

    async def _resolve_missing(
        self, report: AuditReport, copies: _Copies, scanned: set[tuple[EntityKind, str, str]]
    ) -> None:
        """Find referenced entities outside the scanned scopes.

        Public copies are fetched by id. A reference can also point into
        another user's private scope (anyone's Spot may sit in anyone's Knot)
        or a group the audited user is not in; those copies are found by a
        collection-group query for documents listing the holder back.
        """
        for kind in (EntityKind.SPOT, EntityKind.KNOT):
            other = _OTHER[kind]
            holders: dict[str, set[str]] = {}
            for entity_id, scoped in copies[kind].items():
                for scope, entity in scoped.items():
                    if (kind, entity_id, scope) not in scanned:
                        continue
                    for ref in self._refs(entity):
                        if ref not in copies[other]:
                            holders.setdefault(ref, set()).add(entity_id)
            if not holders:
                continue

            public = self._paths.public(other)
            for doc_id, data in (await self._store.get_many(public, sorted(holders))).items():
                self._add(report, copies, other, public, doc_id, data)

            unresolved = sorted({h for ref, ids in holders.items() if ref not in copies[other] for h in ids})
            back_field = _LINK_FIELD[other]
            for holder_id in unresolved:
                query = Query.group(self._paths.root, self._paths.collection_id(other)).where(
                    back_field, "array_contains", holder_id
                )
                for doc in await self._store.query(query):
                    if holder_id not in holders.get(doc.id, ()):
                        continue
                    if doc.collection in copies[other].get(doc.id, {}):
                        continue
                    self._add(report, copies, other, doc.collection, doc.id, doc.data)

    @staticmethod
    def _refs(entity: Spot | Knot) -> list[str]:
        return entity.knot_ids if isinstance(entity, Spot) else entity.spot_ids


__all__ = ["FindingKind", "Finding", "AuditReport", "IntegrityAuditor"]
