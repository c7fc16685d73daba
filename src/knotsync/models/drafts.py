"""
Inputs to Sync Engine operations.

Drafts carry everything a caller supplies when creating an entity; change
sets carry only the fields being edited. A change set distinguishes "leave
alone" from "clear" through ``model_fields_set``: passing ``group_id=None``
explicitly moves an entity out of its group, omitting it keeps the group.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from knotsync.models.base import LatLng, Visibility, dedupe, normalize_tag
from knotsync.models.entities import check_date_range


class _Input(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def changed(self) -> dict[str, Any]:
        """Explicitly supplied fields, by attribute name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class SpotDraft(_Input):
    tag: str
    description: str = ""
    cover_image: str = ""
    date: str
    time: str
    location_name: str = ""
    location_coords: LatLng | None = None
    tagged_users: list[str] = Field(default_factory=list)
    visibility: Visibility = Visibility.PRIVATE
    group_id: str | None = None

    @field_validator("tag")
    @classmethod
    def _tag(cls, value: str) -> str:
        return normalize_tag(value)

    @field_validator("tagged_users")
    @classmethod
    def _tagged(cls, value: list[str]) -> list[str]:
        return dedupe(value)

    @field_validator("date", "time")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("date and time are required")
        return value.strip()


class SpotChanges(_Input):
    tag: str | None = None
    description: str | None = None
    cover_image: str | None = None
    date: str | None = None
    time: str | None = None
    location_name: str | None = None
    location_coords: LatLng | None = None
    tagged_users: list[str] | None = None
    visibility: Visibility | None = None
    group_id: str | None = None

    @field_validator("tag")
    @classmethod
    def _tag(cls, value: str | None) -> str | None:
        return normalize_tag(value) if value is not None else None

    @field_validator("tagged_users")
    @classmethod
    def _tagged(cls, value: list[str] | None) -> list[str] | None:
        return dedupe(value) if value is not None else None

    @model_validator(mode="after")
    def _no_null_attributes(self) -> SpotChanges:
        for name in self.model_fields_set - {"group_id", "location_coords"}:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self


class KnotDraft(_Input):
    tag: str
    description: str = ""
    cover_image: str = ""
    location_name: str | None = None
    location_coords: LatLng | None = None
    start_date: str
    end_date: str
    status: Visibility = Visibility.PRIVATE
    group_id: str | None = None

    @field_validator("tag")
    @classmethod
    def _tag(cls, value: str) -> str:
        return normalize_tag(value)

    @model_validator(mode="after")
    def _range(self) -> KnotDraft:
        check_date_range(self.start_date, self.end_date)
        return self


class KnotChanges(_Input):
    tag: str | None = None
    description: str | None = None
    cover_image: str | None = None
    location_name: str | None = None
    location_coords: LatLng | None = None
    start_date: str | None = None
    end_date: str | None = None
    status: Visibility | None = None
    group_id: str | None = None

    @field_validator("tag")
    @classmethod
    def _tag(cls, value: str | None) -> str | None:
        return normalize_tag(value) if value is not None else None

    @model_validator(mode="after")
    def _no_null_attributes(self) -> KnotChanges:
        nullable = {"group_id", "location_name", "location_coords"}
        for name in self.model_fields_set - nullable:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self


class GroupDraft(_Input):
    name: str
    description: str = ""
    profile_image: str = ""
    member_ids: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("group name is required")
        return value.strip()

    @field_validator("member_ids")
    @classmethod
    def _members(cls, value: list[str]) -> list[str]:
        return dedupe(value)


class GroupChanges(_Input):
    name: str | None = None
    description: str | None = None
    profile_image: str | None = None
    member_ids: list[str] | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("group name is required")
        return value.strip() if value is not None else None

    @field_validator("member_ids")
    @classmethod
    def _members(cls, value: list[str] | None) -> list[str] | None:
        return dedupe(value) if value is not None else None
