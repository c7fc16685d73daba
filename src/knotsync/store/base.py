"""
DocumentStore protocol.

The Entity Store Adapter contract every backend satisfies. All methods are
coroutines except ``subscribe`` (which registers a listener and returns its
teardown) and ``new_id``.

Architecture:
    ::

        DocumentStore (Protocol)
        ├── InMemoryDocumentStore   tests, local runs, the CLI's memory backend
        └── FirestoreDocumentStore  google-cloud-firestore AsyncClient

        Reads:   get, get_many, query
        Push:    subscribe(query, on_snapshot, on_error) -> unsubscribe
        Writes:  set, delete, commit(writes)   (commit is all-or-nothing)

Errors:
    Reads raise ``StoreReadFailure``; writes raise ``StoreWriteFailure``, or
    ``BatchTooLargeError`` when a batch exceeds ``max_batch_size``. Backends
    never leak driver exceptions.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from knotsync.store.query import Document, Query
from knotsync.store.writes import Write

SnapshotCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for hierarchical document store backends."""

    @property
    def max_batch_size(self) -> int:
        """Most writes a single ``commit`` accepts."""
        ...

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Read one document; ``None`` when missing."""
        ...

    async def get_many(self, collection: str, doc_ids: Sequence[str]) -> dict[str, dict[str, Any]]:
        """Read a set of ids from one collection. Missing ids are omitted."""
        ...

    async def query(self, query: Query) -> list[Document]:
        """Run a one-shot query."""
        ...

    def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Push the full result set of ``query`` now and on every change.

        Callbacks run on the event loop thread.
        """
        ...

    async def set(self, collection: str, doc_id: str, data: dict[str, Any], *, merge: bool = False) -> None:
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def commit(self, writes: Sequence[Write]) -> None:
        """Apply ``writes`` atomically: all of them or none."""
        ...

    def new_id(self) -> str:
        ...


__all__ = ["DocumentStore", "SnapshotCallback", "ErrorCallback", "Unsubscribe"]
