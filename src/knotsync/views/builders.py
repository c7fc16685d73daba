"""
Builders for the application's views.

Each returns a ``View`` over the scopes that view reads. Visibility of other
users' private content is decided by which scopes are listed here, never by
filtering afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable

from knotsync.models.base import EntityKind
from knotsync.models.entities import Knot
from knotsync.store.paths import ScopePaths
from knotsync.store.query import DOC_ID, Query
from knotsync.views.composer import View


def home_feed(
    paths: ScopePaths, user_id: str, group_ids: Iterable[str] = (), *, limit: int | None = None
) -> View:
    """Public Spots, the viewer's own Spots and their groups' Spots."""
    sources = [Query(paths.private(user_id, EntityKind.SPOT)), Query(paths.public(EntityKind.SPOT))]
    sources += [Query(paths.group(g, EntityKind.SPOT)) for g in dict.fromkeys(group_ids)]
    return View("home_feed", EntityKind.SPOT, tuple(sources), limit=limit)


def _profile(paths: ScopePaths, kind: EntityKind, owner_id: str, viewer_id: str) -> View:
    if viewer_id == owner_id:
        source = Query(paths.private(owner_id, kind))
    else:
        source = Query(paths.public(kind)).where("ownerId", "==", owner_id)
    return View(f"profile_{kind.value}s", kind, (source,))


def profile_spots(paths: ScopePaths, owner_id: str, *, viewer_id: str) -> View:
    """The owner sees all their groupless Spots; others see the public ones."""
    return _profile(paths, EntityKind.SPOT, owner_id, viewer_id)


def profile_knots(paths: ScopePaths, owner_id: str, *, viewer_id: str) -> View:
    return _profile(paths, EntityKind.KNOT, owner_id, viewer_id)


def group_spots(paths: ScopePaths, group_id: str) -> View:
    return View("group_spots", EntityKind.SPOT, (Query(paths.group(group_id, EntityKind.SPOT)),))


def group_knots(paths: ScopePaths, group_id: str) -> View:
    return View("group_knots", EntityKind.KNOT, (Query(paths.group(group_id, EntityKind.KNOT)),))


def knot_spots(
    paths: ScopePaths,
    knot: Knot,
    *,
    viewer_id: str,
    group_ids: Iterable[str] = (),
    in_limit: int = 30,
) -> View:
    """The Spots a Knot lists, from every scope the viewer can read.

    Ids go into ``in`` filters of at most ``in_limit`` values. Listed ids
    with no readable Spot are left out.
    """
    ids = list(dict.fromkeys(knot.spot_ids))
    if not ids:
        return View("knot_spots", EntityKind.SPOT, (), ids=frozenset(), sort_by="date", descending=False)
    scopes = [paths.private(viewer_id, EntityKind.SPOT), paths.public(EntityKind.SPOT)]
    groups = [knot.group_id] if knot.group_id else []
    scopes += [paths.group(g, EntityKind.SPOT) for g in dict.fromkeys([*groups, *group_ids])]
    chunks = [ids[i : i + in_limit] for i in range(0, len(ids), in_limit)]
    sources = tuple(Query(scope).where(DOC_ID, "in", chunk) for scope in scopes for chunk in chunks)
    return View("knot_spots", EntityKind.SPOT, sources, ids=frozenset(ids), sort_by="date", descending=False)


def tagged_spots(paths: ScopePaths, profile_tag: str) -> View:
    """Public Spots tagging ``profile_tag``."""
    source = Query(paths.public(EntityKind.SPOT)).where("taggedUsers", "array_contains", profile_tag)
    return View("tagged_spots", EntityKind.SPOT, (source,))


def notifications(paths: ScopePaths, user_id: str, *, unread_only: bool = False) -> View:
    source = Query(paths.notifications(user_id))
    if unread_only:
        source = source.where("read", "==", False)
    return View("notifications", EntityKind.NOTIFICATION, (source,))


__all__ = [
    "home_feed",
    "profile_spots",
    "profile_knots",
    "group_spots",
    "group_knots",
    "knot_spots",
    "tagged_spots",
    "notifications",
]
