"""
Entity Locator.

Operations receive entity ids, not paths. The locator finds where an entity
lives by probing the scopes reachable from the acting user (their private
scope, the public scope, hinted groups, then the groups they belong to),
decodes the source-of-truth copy and confirms which of the entity's
expected copies actually exist.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from knotsync.core.errors import NotFoundError
from knotsync.core.logging import get_logger
from knotsync.models.base import EntityKind
from knotsync.models.entities import Group, Knot, Spot, UserProfile
from knotsync.store.base import DocumentStore
from knotsync.store.codec import decode
from knotsync.store.paths import PROFILE_DOC_ID, ScopePaths
from knotsync.store.query import Query
from knotsync.sync.references import EntityCopies

log = get_logger(__name__)


@dataclass(frozen=True)
class Located:
    """A decoded Spot or Knot and the copies of it that exist.

    ``stray`` lists copies found in scopes the entity's placement does not
    call for (e.g. a public copy left behind by an interrupted move).
    """

    entity: Spot | Knot
    copies: EntityCopies
    stray: tuple[str, ...] = field(default=())

    @property
    def id(self) -> str:
        return self.entity.id


class EntityLocator:
    def __init__(self, store: DocumentStore, paths: ScopePaths) -> None:
        self._store = store
        self._paths = paths

    async def member_group_ids(self, user_id: str) -> list[str]:
        """Ids of groups whose ``members`` contain ``user_id``."""
        docs = await self._store.query(Query(self._paths.groups()).where("members", "array_contains", user_id))
        return [doc.id for doc in docs]

    async def candidate_scopes(
        self,
        kind: EntityKind,
        user_id: str,
        *,
        owner_id: str | None = None,
        group_ids: Iterable[str | None] = (),
        include_member_groups: bool = True,
    ) -> list[str]:
        scopes = [self._paths.private(user_id, kind)]
        if owner_id and owner_id != user_id:
            scopes.append(self._paths.private(owner_id, kind))
        scopes.append(self._paths.public(kind))
        groups = [g for g in group_ids if g]
        if include_member_groups:
            groups += await self.member_group_ids(user_id)
        for group_id in dict.fromkeys(groups):
            scopes.append(self._paths.group(group_id, kind))
        return scopes

    async def locate(
        self,
        kind: EntityKind,
        entity_id: str,
        user_id: str,
        *,
        owner_id: str | None = None,
        group_id: str | None = None,
    ) -> Located | None:
        """Find a Spot or Knot by id, or ``None`` if no reachable copy exists."""
        scopes = await self.candidate_scopes(
            kind, user_id, owner_id=owner_id, group_ids=[group_id], include_member_groups=False
        )
        found = await self._first_hit(scopes, entity_id)
        if found is None:
            extra = [
                self._paths.group(g, kind)
                for g in await self.member_group_ids(user_id)
                if self._paths.group(g, kind) not in scopes
            ]
            found = await self._first_hit(extra, entity_id)
        if found is None:
            return None
        scope, data = found
        return await self._confirm(kind, entity_id, {scope: data})

    async def require(
        self,
        kind: EntityKind,
        entity_id: str,
        user_id: str,
        *,
        owner_id: str | None = None,
        group_id: str | None = None,
    ) -> Located:
        located = await self.locate(kind, entity_id, user_id, owner_id=owner_id, group_id=group_id)
        if located is None:
            raise NotFoundError.for_entity(kind.value, entity_id)
        return located

    async def locate_many(self, kind: EntityKind, ids: Sequence[str], scopes: Sequence[str]) -> list[Located]:
        """Resolve ids against ``scopes``; unresolvable ids are skipped."""
        ids = list(dict.fromkeys(ids))
        if not ids:
            return []
        seen: dict[str, dict[str, dict[str, Any]]] = {}
        for scope in dict.fromkeys(scopes):
            for doc_id, data in (await self._store.get_many(scope, ids)).items():
                seen.setdefault(doc_id, {})[scope] = data
        located = []
        for doc_id in ids:
            if doc_id in seen:
                located.append(await self._confirm(kind, doc_id, seen[doc_id]))
            else:
                log.debug("reference_unresolved", entity_kind=kind.value, entity_id=doc_id)
        return located

    async def group(self, group_id: str) -> Group | None:
        data = await self._store.get(self._paths.groups(), group_id)
        return decode(EntityKind.GROUP, group_id, data) if data is not None else None  # type: ignore[return-value]

    async def require_group(self, group_id: str) -> Group:
        group = await self.group(group_id)
        if group is None:
            raise NotFoundError.for_entity(EntityKind.GROUP.value, group_id)
        return group

    async def profile(self, user_id: str) -> UserProfile | None:
        data = await self._store.get(self._paths.profile(user_id), PROFILE_DOC_ID)
        return decode(EntityKind.USER, user_id, data) if data is not None else None  # type: ignore[return-value]

    # ── internals ───────────────────────────────────────────────

    async def _first_hit(self, scopes: Iterable[str], entity_id: str) -> tuple[str, dict[str, Any]] | None:
        for scope in scopes:
            data = await self._store.get(scope, entity_id)
            if data is not None:
                return scope, data
        return None

    async def _confirm(self, kind: EntityKind, entity_id: str, known: dict[str, dict[str, Any]]) -> Located:
        """Decode from the authoritative copy and check every expected scope."""
        scope, data = next(iter(known.items()))
        entity = decode(kind, entity_id, data)
        home = self._paths.authoritative(kind, entity.owner_id, entity.placement)  # type: ignore[union-attr]
        if home not in known:
            home_data = await self._store.get(home, entity_id)
            if home_data is not None:
                known[home] = home_data
        if home in known and home != scope:
            entity = decode(kind, entity_id, known[home])

        expected = self._paths.live_scopes(kind, entity.owner_id, entity.placement)  # type: ignore[union-attr]
        existing = []
        for expected_scope in expected:
            if expected_scope not in known:
                expected_data = await self._store.get(expected_scope, entity_id)
                if expected_data is None:
                    continue
                known[expected_scope] = expected_data
            existing.append(expected_scope)
        public = self._paths.public(kind)
        if public not in expected and public not in known:
            public_data = await self._store.get(public, entity_id)
            if public_data is not None:
                known[public] = public_data
        stray = tuple(s for s in known if s not in expected)
        if stray:
            log.warning("stray_copies_found", entity_kind=kind.value, entity_id=entity_id, scopes=list(stray))
        return Located(entity, EntityCopies(kind, entity_id, tuple(existing)), stray)  # type: ignore[arg-type]


__all__ = ["Located", "EntityLocator"]
