"""
Shared model plumbing: entity kinds, visibility, placement descriptors and
the pydantic base class that maps snake_case attributes onto the camelCase
keys stored in documents.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class EntityKind(str, Enum):
    """Document kinds; the value is the ``type`` discriminator in storage."""

    SPOT = "spot"
    KNOT = "knot"
    GROUP = "group"
    USER = "user"
    NOTIFICATION = "notification"
    COMMENT = "comment"


class Visibility(str, Enum):
    """Visibility of a Spot, or status of a Knot.

    ``INTERNAL`` is the group-only state; a Spot or Knot with a ``groupId``
    is always internal.
    """

    PUBLIC = "public"
    PRIVATE = "private"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Placement:
    """Where an entity lives: its group (if any) and its visibility.

    The authoritative copy sits in the group scope when ``group_id`` is set,
    otherwise in the owner's private scope. A global public copy exists
    exactly when the entity is groupless and public.
    """

    group_id: str | None = None
    visibility: Visibility = Visibility.PRIVATE

    @property
    def has_public_copy(self) -> bool:
        return not self.group_id and self.visibility == Visibility.PUBLIC

    @property
    def is_grouped(self) -> bool:
        return bool(self.group_id)


class LatLng(BaseModel):
    """Resolved coordinates supplied by the location collaborator."""

    lat: float
    lng: float


class StoreModel(BaseModel):
    """Base for every stored entity.

    Documents keep the id outside the payload; ``to_document()`` drops it and
    emits camelCase keys. Enum fields are stored as their plain string value,
    the same shape Firestore hands back on read.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str

    def to_document(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"id"}, mode="python")
        return {key: value.value if isinstance(value, Enum) else value for key, value in data.items()}


def normalize_tag(tag: str) -> str:
    """Tags are stored with a single leading ``#``."""
    tag = tag.strip()
    if not tag:
        raise ValueError("tag is required")
    return tag if tag.startswith("#") else f"#{tag}"


def dedupe(values: list[str]) -> list[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        value = value.strip()
        if value:
            seen.setdefault(value, None)
    return list(seen)
