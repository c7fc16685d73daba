"""
Logical collection paths of the deployed data layout.

Every scope an entity copy can live in is named here and nowhere else::

    apps/{app}/users/{uid}/spots | knots | notifications | profile
    apps/{app}/public/spots | knots | groups
    apps/{app}/public/groups/{gid}/spots | knots
    apps/{app}/public/spots/{spotId}/comments

Paths are plain strings; backends translate them into their own addressing.
"""

from __future__ import annotations

from dataclasses import dataclass

from knotsync.models.base import EntityKind, Placement

# Profile documents live at users/{uid}/profile/data.
PROFILE_DOC_ID = "data"

_COLLECTION_IDS = {
    EntityKind.SPOT: "spots",
    EntityKind.KNOT: "knots",
    EntityKind.GROUP: "groups",
    EntityKind.NOTIFICATION: "notifications",
    EntityKind.USER: "profile",
}


@dataclass(frozen=True)
class ScopePaths:
    """Path builder bound to one ``appId``."""

    app_id: str

    @property
    def root(self) -> str:
        return f"apps/{self.app_id}"

    # ── user scopes ─────────────────────────────────────────────

    def collection_id(self, kind: EntityKind) -> str:
        """Last path segment of every collection holding ``kind``."""
        return _COLLECTION_IDS[kind]

    def user_collection(self, user_id: str, kind: EntityKind) -> str:
        if kind == EntityKind.GROUP:
            raise KeyError(kind)
        return f"{self.root}/users/{user_id}/{_COLLECTION_IDS[kind]}"

    def private(self, user_id: str, kind: EntityKind) -> str:
        return self.user_collection(user_id, kind)

    def notifications(self, user_id: str) -> str:
        return self.user_collection(user_id, EntityKind.NOTIFICATION)

    def profile(self, user_id: str) -> str:
        return self.user_collection(user_id, EntityKind.USER)

    # ── public scopes ───────────────────────────────────────────

    def public(self, kind: EntityKind) -> str:
        if kind not in (EntityKind.SPOT, EntityKind.KNOT, EntityKind.GROUP):
            raise KeyError(kind)
        return f"{self.root}/public/{_COLLECTION_IDS[kind]}"

    def groups(self) -> str:
        return self.public(EntityKind.GROUP)

    def group(self, group_id: str, kind: EntityKind) -> str:
        if kind not in (EntityKind.SPOT, EntityKind.KNOT):
            raise KeyError(kind)
        return f"{self.root}/public/groups/{group_id}/{_COLLECTION_IDS[kind]}"

    def comments(self, spot_id: str) -> str:
        return f"{self.root}/public/spots/{spot_id}/comments"

    # ── placement ───────────────────────────────────────────────

    def authoritative(self, kind: EntityKind, owner_id: str, placement: Placement) -> str:
        """Scope of the source-of-truth copy: the group scope or the owner's."""
        if placement.group_id:
            return self.group(placement.group_id, kind)
        return self.private(owner_id, kind)

    def live_scopes(self, kind: EntityKind, owner_id: str, placement: Placement) -> tuple[str, ...]:
        """Every scope a copy must exist in for ``placement``, authoritative first."""
        scopes = [self.authoritative(kind, owner_id, placement)]
        if placement.has_public_copy:
            scopes.append(self.public(kind))
        return tuple(scopes)


__all__ = ["PROFILE_DOC_ID", "ScopePaths"]
