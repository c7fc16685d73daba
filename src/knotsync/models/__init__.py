"""knotsync domain models.

Architecture::

    base.py       EntityKind, Visibility, Placement, StoreModel
    entities.py   Spot, Knot, Group, UserProfile, Notification, Comment
    drafts.py     Create/edit inputs for Sync Engine operations
"""

from knotsync.models.base import (
    EntityKind,
    LatLng,
    Placement,
    StoreModel,
    Visibility,
    normalize_tag,
)
from knotsync.models.drafts import (
    GroupChanges,
    GroupDraft,
    KnotChanges,
    KnotDraft,
    SpotChanges,
    SpotDraft,
)
from knotsync.models.entities import (
    Comment,
    Entity,
    Group,
    Knot,
    Notification,
    NotificationKind,
    Spot,
    UserProfile,
)

__all__ = [
    "EntityKind",
    "LatLng",
    "Placement",
    "StoreModel",
    "Visibility",
    "normalize_tag",
    "GroupChanges",
    "GroupDraft",
    "KnotChanges",
    "KnotDraft",
    "SpotChanges",
    "SpotDraft",
    "Comment",
    "Entity",
    "Group",
    "Knot",
    "Notification",
    "NotificationKind",
    "Spot",
    "UserProfile",
]
