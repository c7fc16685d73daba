"""
Backend-neutral query descriptors.

A ``Query`` targets one collection path (or, as a collection-group query,
every same-named collection below a root) and combines equality and
array-membership filters, an optional ordering and an optional limit: the
subset of Firestore's query language the application uses. ``matches`` and
``arrange`` give the evaluation semantics used by the in-memory store.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable, Mapping

# Filter on the document id rather than a field.
DOC_ID = "__name__"


class FilterOp(str, Enum):
    EQ = "=="
    ARRAY_CONTAINS = "array_contains"
    IN = "in"
    ARRAY_CONTAINS_ANY = "array_contains_any"


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: FilterOp
    value: Any

    def __post_init__(self) -> None:
        op = FilterOp(self.op)
        object.__setattr__(self, "op", op)
        if op in (FilterOp.IN, FilterOp.ARRAY_CONTAINS_ANY):
            object.__setattr__(self, "value", tuple(self.value))

    def matches(self, doc_id: str, data: Mapping[str, Any]) -> bool:
        actual = doc_id if self.field == DOC_ID else data.get(self.field)
        if self.op == FilterOp.EQ:
            return actual == self.value
        if self.op == FilterOp.IN:
            return actual in self.value
        if not isinstance(actual, list):
            return False
        if self.op == FilterOp.ARRAY_CONTAINS:
            return self.value in actual
        return any(value in actual for value in self.value)


@dataclass(frozen=True)
class Document:
    """A document snapshot: id plus decoded-but-untyped payload.

    ``collection`` is only filled in by collection-group queries, where the
    id alone does not say which scope the document came from.
    """

    id: str
    data: dict[str, Any]
    collection: str | None = None


@dataclass(frozen=True)
class Query:
    """
    Immutable query builder.

    Examples:
        >>> q = Query("apps/a/public/spots").where("ownerId", "==", "u1").order("date", descending=True)
        >>> q.filters[0].value
        'u1'
        >>> Query.group("apps/a", "knots").covers("apps/a/users/u2/knots")
        True
    """

    collection: str
    filters: tuple[FieldFilter, ...] = ()
    order_by: tuple[tuple[str, bool], ...] = ()
    limit: int | None = None
    all_descendants: bool = False

    @classmethod
    def group(cls, root: str, collection_id: str) -> Query:
        """Every collection named ``collection_id`` anywhere below ``root``."""
        return cls(f"{root}/{collection_id}", all_descendants=True)

    @property
    def root(self) -> str:
        return self.collection.rsplit("/", 1)[0]

    @property
    def collection_id(self) -> str:
        return self.collection.rsplit("/", 1)[-1]

    def covers(self, collection: str) -> bool:
        """Whether documents of ``collection`` fall under this query."""
        if not self.all_descendants:
            return collection == self.collection
        return collection.startswith(self.root + "/") and collection.rsplit("/", 1)[-1] == self.collection_id

    def where(self, field_name: str, op: FilterOp | str, value: Any) -> Query:
        return replace(self, filters=(*self.filters, FieldFilter(field_name, FilterOp(op), value)))

    def order(self, field_name: str, *, descending: bool = False) -> Query:
        return replace(self, order_by=(*self.order_by, (field_name, descending)))

    def limited(self, limit: int) -> Query:
        return replace(self, limit=limit)

    def matches(self, doc_id: str, data: Mapping[str, Any]) -> bool:
        return all(f.matches(doc_id, data) for f in self.filters)

    def arrange(self, documents: Iterable[Document]) -> list[Document]:
        """Apply ordering and limit to already-filtered documents."""
        result = list(documents)
        for field_name, descending in reversed(self.order_by):
            # Documents missing the field are excluded, as Firestore does.
            result = [d for d in result if d.data.get(field_name) is not None]
            result.sort(key=lambda d: d.data[field_name], reverse=descending)
        if self.limit is not None:
            result = result[: self.limit]
        return result

    def describe(self) -> str:
        parts = [f"{self.collection} (all)" if self.all_descendants else self.collection]
        parts += [f"{f.field} {f.op.value} {f.value!r}" for f in self.filters]
        return " | ".join(parts)


__all__ = ["DOC_ID", "FilterOp", "FieldFilter", "Document", "Query"]
