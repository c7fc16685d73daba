"""
Live View Composer.

A view merges several live queries into one list of decoded entities: the
home feed, for instance, reads the public scope, the viewer's private scope
and every group scope the viewer belongs to.

Semantics:
    - Nothing is emitted until every source has delivered once.
    - Entities are deduplicated by id; earlier sources win.
    - Documents that do not decode are dropped with a warning.
    - An id filter, when given, drops anything outside it. Ids in the filter
      with no document (dangling references) simply do not appear.
    - The first source error tears the view down and is reported once.
    - ``unsubscribe()`` tears down every underlying listener.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from knotsync.core.errors import SchemaError, StoreError
from knotsync.core.logging import get_logger
from knotsync.models.base import EntityKind, StoreModel
from knotsync.store.base import DocumentStore, ErrorCallback, Unsubscribe
from knotsync.store.codec import decode
from knotsync.store.query import Document, Query

log = get_logger(__name__)

ViewCallback = Callable[[list[Any]], None]


@dataclass(frozen=True)
class View:
    """Descriptor of a composed live view.

    ``sort_by`` names an entity attribute; entities without a value (``None``
    or an empty string) sort last.
    """

    name: str
    kind: EntityKind
    sources: tuple[Query, ...]
    ids: frozenset[str] | None = None
    sort_by: str | None = "created_at"
    descending: bool = True
    limit: int | None = None


class LiveViewComposer:
    """Subscribes views against a ``DocumentStore``.

    Example::

        composer = LiveViewComposer(store)
        unsubscribe = composer.subscribe(home_feed(paths, "u1", ["g1"]), render, show_error)
        ...
        unsubscribe()
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def subscribe(self, view: View, on_snapshot: ViewCallback, on_error: ErrorCallback) -> Unsubscribe:
        if not view.sources:
            on_snapshot([])
            return lambda: None

        latest: dict[int, list[Document]] = {}
        unsubscribers: list[Unsubscribe] = []
        state = {"closed": False}

        def teardown() -> None:
            state["closed"] = True
            while unsubscribers:
                unsubscribers.pop()()

        def emit() -> None:
            if state["closed"] or len(latest) < len(view.sources):
                return
            on_snapshot(self.compose(view, [latest[i] for i in range(len(view.sources))]))

        def source_snapshot(index: int) -> Callable[[list[Document]], None]:
            def callback(documents: list[Document]) -> None:
                latest[index] = documents
                emit()

            return callback

        def source_error(error: Exception) -> None:
            if state["closed"]:
                return
            teardown()
            log.warning("view_source_failed", view=view.name, error=str(error))
            on_error(error)

        for index, query in enumerate(view.sources):
            try:
                unsubscribers.append(self._store.subscribe(query, source_snapshot(index), source_error))
            except StoreError as e:
                source_error(e)
                break
            if state["closed"]:
                break
        if state["closed"]:
            teardown()

        return teardown

    def compose(self, view: View, source_results: list[list[Document]]) -> list[StoreModel]:
        """Merge per-source results into the view's entity list."""
        merged: dict[str, StoreModel] = {}
        for documents in source_results:
            for doc in documents:
                if doc.id in merged or (view.ids is not None and doc.id not in view.ids):
                    continue
                try:
                    merged[doc.id] = decode(view.kind, doc.id, doc.data)
                except SchemaError as e:
                    log.warning("view_document_skipped", view=view.name, doc_id=doc.id, error=e.message)
        entities = list(merged.values())
        if view.sort_by:
            present = [e for e in entities if getattr(e, view.sort_by, None) not in (None, "")]
            missing = [e for e in entities if getattr(e, view.sort_by, None) in (None, "")]
            present.sort(key=lambda e: getattr(e, view.sort_by), reverse=view.descending)
            entities = present + missing
        if view.limit is not None:
            entities = entities[: view.limit]
        return entities


__all__ = ["View", "ViewCallback", "LiveViewComposer"]
