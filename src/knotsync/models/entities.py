"""
Stored entities.

Each model is one tagged variant of the schemaless store: the ``type`` field
is the discriminator and every document is validated here before it reaches
core logic. Legacy documents written by earlier clients (``creatorId``,
``isPublic``) are upgraded on read.
"""

from __future__ import annotations

from datetime import date as _date
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator

from knotsync.core.timestamps import utc_now
from knotsync.models.base import LatLng, Placement, StoreModel, Visibility


def _upgrade_legacy_owner(data: Any) -> Any:
    if isinstance(data, dict) and "ownerId" not in data and "owner_id" not in data:
        data = dict(data)
        if "creatorId" in data:
            data["ownerId"] = data.pop("creatorId")
            data.setdefault("ownerUsername", data.pop("creatorUsername", ""))
            data.setdefault("ownerProfileImage", data.pop("creatorProfileImage", ""))
    return data


class Spot(StoreModel):
    """A single dated, located content item."""

    type: Literal["spot"] = "spot"
    owner_id: str
    owner_username: str = ""
    owner_profile_image: str = ""
    tag: str
    description: str = ""
    cover_image: str = ""
    date: str = ""
    time: str = ""
    location_name: str = ""
    location_coords: LatLng | None = None
    tagged_users: list[str] = Field(default_factory=list)
    visibility: Visibility = Visibility.PRIVATE
    group_id: str | None = None
    knot_ids: list[str] = Field(default_factory=list)
    liker_ids: list[str] = Field(default_factory=list, alias="likes")
    comment_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data: Any) -> Any:
        data = _upgrade_legacy_owner(data)
        if isinstance(data, dict) and "visibility" not in data and "isPublic" in data:
            data = dict(data)
            data["visibility"] = Visibility.PUBLIC if data.pop("isPublic") else Visibility.PRIVATE
        if isinstance(data, dict) and data.get("type") == "event":
            data = {**data, "type": "spot"}
        return data

    @model_validator(mode="after")
    def _group_forces_internal(self) -> Spot:
        if not self.group_id:
            self.group_id = None
            if self.visibility == Visibility.INTERNAL:
                self.visibility = Visibility.PRIVATE
        elif self.visibility != Visibility.INTERNAL:
            self.visibility = Visibility.INTERNAL
        return self

    @property
    def placement(self) -> Placement:
        return Placement(group_id=self.group_id, visibility=self.visibility)


class Knot(StoreModel):
    """A named collection of Spots spanning a date range."""

    type: Literal["knot"] = "knot"
    owner_id: str
    owner_username: str = ""
    owner_profile_image: str = ""
    tag: str
    description: str = ""
    cover_image: str = ""
    location_name: str | None = None
    location_coords: LatLng | None = None
    start_date: str
    end_date: str
    status: Visibility = Visibility.PRIVATE
    group_id: str | None = None
    spot_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data: Any) -> Any:
        return _upgrade_legacy_owner(data)

    @model_validator(mode="after")
    def _check_range_and_group(self) -> Knot:
        check_date_range(self.start_date, self.end_date)
        if not self.group_id:
            self.group_id = None
        elif self.status != Visibility.INTERNAL:
            self.status = Visibility.INTERNAL
        return self

    @property
    def placement(self) -> Placement:
        return Placement(group_id=self.group_id, visibility=self.status)


class Group(StoreModel):
    """A membership set scoping Spots and Knots to an internal audience."""

    type: Literal["group"] = "group"
    name: str
    description: str = ""
    profile_image: str = ""
    creator_id: str
    members: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _creator_is_member(self) -> Group:
        if self.creator_id not in self.members:
            self.members = [self.creator_id, *self.members]
        return self


class UserProfile(StoreModel):
    """Public profile document of a user."""

    type: Literal["user"] = "user"
    username: str = ""
    profile_tag: str = ""
    profile_image: str = ""
    email: str | None = None
    followers: list[str] = Field(default_factory=list)
    following: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)


class NotificationKind(str, Enum):
    LIKE = "like"
    COMMENT = "comment"
    SHARE = "share"
    GROUP_INVITE = "group_invite"


class Notification(StoreModel):
    """Append-only notice for a recipient; only ``read`` ever changes."""

    type: Literal["notification"] = "notification"
    recipient_id: str
    kind: NotificationKind
    from_user_id: str
    from_username: str = ""
    spot_id: str | None = None
    spot_tag: str | None = None
    group_id: str | None = None
    group_name: str | None = None
    message: str = ""
    image_url: str = ""
    read: bool = False
    created_at: datetime = Field(default_factory=utc_now)


class Comment(StoreModel):
    type: Literal["comment"] = "comment"
    spot_id: str
    user_id: str
    username: str = ""
    text: str
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("comment text is required")
        return value.strip()


def check_date_range(start: str, end: str) -> None:
    """Raise ValueError unless both are ISO dates with ``start <= end``."""
    try:
        start_day = _date.fromisoformat(start)
        end_day = _date.fromisoformat(end)
    except ValueError as e:
        raise ValueError(f"invalid knot date range {start!r}..{end!r}") from e
    if start_day > end_day:
        raise ValueError("knot start date must not be after its end date")


Entity = Spot | Knot | Group | UserProfile | Notification | Comment
