"""
Reference Integrity Manager.

Pure functions computing the back-reference deltas for a relationship
change. Every delta targets each live copy of the entities involved and
uses set-like transforms, so applying it twice leaves the same state as
applying it once, and concurrent deltas from different clients converge.

Relationships:
    Spot.knotIds  <-> Knot.spotIds        matched pair
    profile.following <-> profile.followers  matched pair
    Spot.taggedUsers                        one-sided (tags are strings,
                                            profiles keep no back-reference)
"""

from __future__ import annotations

from dataclasses import dataclass

from knotsync.models.base import EntityKind
from knotsync.store.paths import PROFILE_DOC_ID, ScopePaths
from knotsync.store.writes import ArrayRemove, ArrayUnion, Increment, Write

SPOT_KNOTS = "knotIds"
KNOT_SPOTS = "spotIds"
SPOT_LIKES = "likes"
SPOT_TAGS = "taggedUsers"
COMMENT_COUNT = "commentCount"


@dataclass(frozen=True)
class EntityCopies:
    """The scopes where copies of one entity currently exist."""

    kind: EntityKind
    entity_id: str
    scopes: tuple[str, ...]


def toggle_member(copies: EntityCopies, field: str, value: str, present: bool) -> tuple[Write, ...]:
    """Add ``value`` to (or remove it from) the array ``field`` on every copy."""
    transform = ArrayUnion([value]) if present else ArrayRemove([value])
    return tuple(Write.update(scope, copies.entity_id, {field: transform}) for scope in copies.scopes)


def strip_reference(copies: EntityCopies, field: str, value: str) -> tuple[Write, ...]:
    return toggle_member(copies, field, value, False)


def increment_field(copies: EntityCopies, field: str, amount: int = 1) -> tuple[Write, ...]:
    """Counter delta on every copy. Not idempotent; bundle it with its cause."""
    return tuple(Write.update(scope, copies.entity_id, {field: Increment(amount)}) for scope in copies.scopes)


def link_spot_knot(spot: EntityCopies, knot: EntityCopies, linked: bool = True) -> tuple[Write, ...]:
    """Matched pair: ``knot.spotIds`` and ``spot.knotIds`` on all copies of each."""
    return (
        *toggle_member(knot, KNOT_SPOTS, spot.entity_id, linked),
        *toggle_member(spot, SPOT_KNOTS, knot.entity_id, linked),
    )


def unlink_spot_knot(spot: EntityCopies, knot: EntityCopies) -> tuple[Write, ...]:
    return link_spot_knot(spot, knot, linked=False)


def follow_edge(paths: ScopePaths, follower_id: str, followee_id: str, following: bool) -> tuple[Write, ...]:
    """Matched pair of profile updates for a follow or unfollow.

    Merge-sets so a profile document that was never written still receives
    its half of the edge.
    """
    transform = ArrayUnion if following else ArrayRemove
    return (
        Write.set(paths.profile(follower_id), PROFILE_DOC_ID, {"following": transform([followee_id])}, merge=True),
        Write.set(paths.profile(followee_id), PROFILE_DOC_ID, {"followers": transform([follower_id])}, merge=True),
    )


def remove_profile_tag(spot: EntityCopies, tag: str) -> tuple[Write, ...]:
    return toggle_member(spot, SPOT_TAGS, tag, False)


__all__ = [
    "SPOT_KNOTS",
    "KNOT_SPOTS",
    "SPOT_LIKES",
    "SPOT_TAGS",
    "COMMENT_COUNT",
    "EntityCopies",
    "toggle_member",
    "strip_reference",
    "increment_field",
    "link_spot_knot",
    "unlink_spot_knot",
    "follow_edge",
    "remove_profile_tag",
]
