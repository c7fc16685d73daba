"""
Batch writes and convergent field transforms.

A ``Write`` is one operation of an atomic batch. Field values inside
``Write.data`` may be plain values or one of the transforms below, which the
store resolves against the current document value at commit time:

    ArrayUnion(values)    add each value not already present (set semantics)
    ArrayRemove(values)   remove every occurrence of each value
    Increment(amount)     add ``amount`` to a numeric field (missing -> 0)

Set-like transforms commute, so two clients toggling likes on the same Spot
converge regardless of commit order. ``apply_writes`` is the reference
semantics of a batch; the in-memory store uses it directly and it doubles as
the oracle for idempotence checks in tests.

Examples:
    >>> docs = {("c", "a"): {"tags": ["x"]}}
    >>> new = apply_writes(docs, [Write.update("c", "a", {"tags": ArrayUnion(["y"])})])
    >>> new[("c", "a")]["tags"]
    ['x', 'y']
    >>> docs[("c", "a")]["tags"]
    ['x']
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

DocKey = tuple[str, str]
"""``(collection_path, doc_id)``"""


class WriteOp(str, Enum):
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ArrayUnion:
    values: tuple[Any, ...]

    def __init__(self, values: Iterable[Any]):
        object.__setattr__(self, "values", tuple(values))

    def apply(self, current: Any) -> list[Any]:
        result = list(current) if isinstance(current, list) else []
        for value in self.values:
            if value not in result:
                result.append(value)
        return result


@dataclass(frozen=True)
class ArrayRemove:
    values: tuple[Any, ...]

    def __init__(self, values: Iterable[Any]):
        object.__setattr__(self, "values", tuple(values))

    def apply(self, current: Any) -> list[Any]:
        if not isinstance(current, list):
            return []
        return [value for value in current if value not in self.values]


@dataclass(frozen=True)
class Increment:
    amount: int | float = 1

    def apply(self, current: Any) -> int | float:
        base = current if isinstance(current, (int, float)) and not isinstance(current, bool) else 0
        return base + self.amount


Transform = ArrayUnion | ArrayRemove | Increment
TRANSFORMS = (ArrayUnion, ArrayRemove, Increment)


@dataclass(frozen=True)
class Write:
    """One operation of an atomic batch."""

    op: WriteOp
    collection: str
    doc_id: str
    data: Mapping[str, Any] = field(default_factory=dict)
    merge: bool = False

    @classmethod
    def set(cls, collection: str, doc_id: str, data: Mapping[str, Any], *, merge: bool = False) -> Write:
        return cls(WriteOp.SET, collection, doc_id, dict(data), merge)

    @classmethod
    def update(cls, collection: str, doc_id: str, data: Mapping[str, Any]) -> Write:
        return cls(WriteOp.UPDATE, collection, doc_id, dict(data))

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> Write:
        return cls(WriteOp.DELETE, collection, doc_id)

    @property
    def key(self) -> DocKey:
        return (self.collection, self.doc_id)

    def __repr__(self) -> str:
        fields = ",".join(sorted(self.data)) if self.data else ""
        return f"Write({self.op.value} {self.collection}/{self.doc_id} [{fields}])"


class DocumentMissing(LookupError):
    """An UPDATE targeted a document that does not exist."""

    def __init__(self, key: DocKey):
        super().__init__(f"no document at {key[0]}/{key[1]}")
        self.key = key


def resolve_fields(current: Mapping[str, Any], data: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``data`` into a copy of ``current``, resolving transforms."""
    result = dict(current)
    for name, value in data.items():
        if isinstance(value, TRANSFORMS):
            result[name] = value.apply(result.get(name))
        else:
            result[name] = copy.deepcopy(value)
    return result


def apply_writes(
    documents: Mapping[DocKey, Mapping[str, Any]],
    writes: Iterable[Write],
) -> dict[DocKey, dict[str, Any]]:
    """
    Apply a batch to a document map and return the new map.

    The input map and its documents are never mutated, so a batch that
    raises part-way leaves the caller's state untouched.

    Raises:
        DocumentMissing: an UPDATE targets a missing document.
    """
    result: dict[DocKey, Any] = dict(documents)
    for write in writes:
        key = write.key
        if write.op == WriteOp.DELETE:
            result.pop(key, None)
        elif write.op == WriteOp.UPDATE:
            if key not in result:
                raise DocumentMissing(key)
            result[key] = resolve_fields(result[key], write.data)
        elif write.merge:
            result[key] = resolve_fields(result.get(key, {}), write.data)
        else:
            result[key] = resolve_fields({}, write.data)
    return result


__all__ = [
    "DocKey",
    "WriteOp",
    "Write",
    "ArrayUnion",
    "ArrayRemove",
    "Increment",
    "Transform",
    "DocumentMissing",
    "resolve_fields",
    "apply_writes",
]
