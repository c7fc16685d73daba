"""
Tagged-variant decoding at the store boundary.

Raw documents from the store are untyped dicts. ``decode`` validates them
into the entity model for their kind; anything that fails is a
``SchemaError`` carrying the document id, so core logic only ever sees
well-formed entities.
"""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from pydantic import ValidationError as PydanticValidationError

from knotsync.core.errors import SchemaError
from knotsync.models.base import EntityKind, StoreModel
from knotsync.models.entities import Comment, Group, Knot, Notification, Spot, UserProfile

M = TypeVar("M", bound=StoreModel)

MODELS: dict[EntityKind, type[StoreModel]] = {
    EntityKind.SPOT: Spot,
    EntityKind.KNOT: Knot,
    EntityKind.GROUP: Group,
    EntityKind.USER: UserProfile,
    EntityKind.NOTIFICATION: Notification,
    EntityKind.COMMENT: Comment,
}

# Stored ``type`` values accepted for each kind, including legacy names.
_TYPE_TAGS: dict[EntityKind, set[str]] = {
    EntityKind.SPOT: {"spot", "event"},
}


def decode(kind: EntityKind, doc_id: str, data: Mapping[str, Any]) -> StoreModel:
    """Validate ``data`` as an entity of ``kind``.

    Raises:
        SchemaError: wrong ``type`` tag or fields that do not validate.
    """
    tag = data.get("type")
    if tag is not None and tag not in _TYPE_TAGS.get(kind, {kind.value}):
        raise SchemaError(
            f"document {doc_id} is a {tag!r}, expected {kind.value!r}",
            field="type",
            value=tag,
        ).with_context(entity_kind=kind.value, entity_id=doc_id)
    try:
        return MODELS[kind].model_validate({**data, "id": doc_id})
    except PydanticValidationError as e:
        raise SchemaError(
            f"document {doc_id} is not a valid {kind.value}: {e.error_count()} error(s)",
            cause=e,
        ).with_context(entity_kind=kind.value, entity_id=doc_id) from e


def decode_as(model: type[M], doc_id: str, data: Mapping[str, Any]) -> M:
    """Typed variant of ``decode`` for callers that know the model class."""
    kind = next(k for k, m in MODELS.items() if m is model)
    return decode(kind, doc_id, data)  # type: ignore[return-value]


def encode(entity: StoreModel) -> dict[str, Any]:
    """Document payload for ``entity`` (camelCase keys, no id)."""
    return entity.to_document()


__all__ = ["MODELS", "decode", "decode_as", "encode"]
