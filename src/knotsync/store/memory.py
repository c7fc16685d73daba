"""
In-memory document store.

Manifesto:
    Tests and local runs need a store with the same atomicity and push
    semantics as Firestore but without a network or an emulator.

Batches are applied copy-on-write with ``apply_writes``: the new document
map is built aside and swapped in only when every write succeeded, so a
rejected batch leaves no trace. Listeners are notified synchronously after
each commit with their full, re-evaluated result set.

Fault injection (``fail_next_commit``, ``fail_next_read``) lets tests
exercise store failures and partially applied cascades.

Tags:
    knotsync, store, in-memory, asyncio, testing
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from knotsync.core.errors import BatchTooLargeError, StoreReadFailure, StoreWriteFailure
from knotsync.core.logging import get_logger
from knotsync.core.settings import FIRESTORE_BATCH_CAP
from knotsync.core.timestamps import generate_id
from knotsync.store.base import ErrorCallback, SnapshotCallback, Unsubscribe
from knotsync.store.query import Document, Query
from knotsync.store.writes import DocKey, DocumentMissing, Write, apply_writes

__all__ = ["InMemoryDocumentStore"]

log = get_logger(__name__)


@dataclass
class _Listener:
    id: int
    query: Query
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback


class InMemoryDocumentStore:
    """Single-process document store with Firestore-like batch semantics.

    Example::

        store = InMemoryDocumentStore()
        await store.commit([Write.set("apps/a/public/spots", "s1", {"tag": "#x"})])
        await store.get("apps/a/public/spots", "s1")
        # {'tag': '#x'}
    """

    def __init__(self, *, max_batch_size: int = FIRESTORE_BATCH_CAP) -> None:
        self._documents: dict[DocKey, dict[str, Any]] = {}
        self._listeners: dict[int, _Listener] = {}
        self._next_listener = 0
        self._lock = asyncio.Lock()
        self._max_batch_size = max_batch_size
        self._commit_faults: dict[int, Exception] = {}
        self._commit_attempts = 0
        self._read_fault: Exception | None = None
        self.committed_batches: list[tuple[Write, ...]] = []

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    # ── reads ───────────────────────────────────────────────────

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        self._check_read_fault(collection)
        data = self._documents.get((collection, doc_id))
        return copy.deepcopy(data) if data is not None else None

    async def get_many(self, collection: str, doc_ids: Sequence[str]) -> dict[str, dict[str, Any]]:
        self._check_read_fault(collection)
        result = {}
        for doc_id in doc_ids:
            data = self._documents.get((collection, doc_id))
            if data is not None:
                result[doc_id] = copy.deepcopy(data)
        return result

    async def query(self, query: Query) -> list[Document]:
        self._check_read_fault(query.collection)
        return self._evaluate(query)

    def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        listener_id = self._next_listener
        self._next_listener += 1
        listener = _Listener(listener_id, query, on_snapshot, on_error)
        self._listeners[listener_id] = listener
        self._deliver(listener)

        def unsubscribe() -> None:
            self._listeners.pop(listener_id, None)

        return unsubscribe

    # ── writes ──────────────────────────────────────────────────

    async def set(self, collection: str, doc_id: str, data: dict[str, Any], *, merge: bool = False) -> None:
        await self.commit([Write.set(collection, doc_id, data, merge=merge)])

    async def delete(self, collection: str, doc_id: str) -> None:
        await self.commit([Write.delete(collection, doc_id)])

    async def commit(self, writes: Sequence[Write]) -> None:
        writes = tuple(writes)
        if len(writes) > self._max_batch_size:
            raise BatchTooLargeError(len(writes), self._max_batch_size)
        if not writes:
            return

        async with self._lock:
            attempt = self._commit_attempts
            self._commit_attempts += 1
            fault = self._commit_faults.pop(attempt, None)
            if fault is not None:
                raise StoreWriteFailure(
                    f"injected commit failure: {fault}", cause=fault
                ).with_context(scope=writes[0].collection)
            try:
                self._documents = apply_writes(self._documents, writes)
            except DocumentMissing as e:
                raise StoreWriteFailure(str(e), cause=e).with_context(
                    scope=e.key[0], entity_id=e.key[1]
                ) from e
            self.committed_batches.append(writes)

        log.debug("batch_committed", writes=len(writes))
        self._notify({w.collection for w in writes})

    def new_id(self) -> str:
        return generate_id()

    # ── test hooks ──────────────────────────────────────────────

    def fail_next_commit(self, error: Exception | None = None, *, skip: int = 0) -> None:
        """Reject a future commit.

        ``skip`` lets that many commits succeed first, which is how tests
        fail the second batch of a split cascade.
        """
        self._commit_faults[self._commit_attempts + skip] = error or ConnectionError("unavailable")

    def fail_next_read(self, error: Exception | None = None) -> None:
        self._read_fault = error or ConnectionError("unavailable")

    def documents(self, collection: str) -> dict[str, dict[str, Any]]:
        """Snapshot of one collection, for assertions."""
        return {
            doc_id: copy.deepcopy(data)
            for (coll, doc_id), data in self._documents.items()
            if coll == collection
        }

    def exists(self, collection: str, doc_id: str) -> bool:
        return (collection, doc_id) in self._documents

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # ── internals ───────────────────────────────────────────────

    def _check_read_fault(self, collection: str) -> None:
        if self._read_fault is not None:
            fault, self._read_fault = self._read_fault, None
            raise StoreReadFailure(f"injected read failure: {fault}", cause=fault).with_context(
                scope=collection
            )

    def _evaluate(self, query: Query) -> list[Document]:
        matched = [
            Document(doc_id, copy.deepcopy(data), coll if query.all_descendants else None)
            for (coll, doc_id), data in sorted(self._documents.items())
            if query.covers(coll) and query.matches(doc_id, data)
        ]
        return query.arrange(matched)

    def _notify(self, collections: set[str]) -> None:
        for listener in list(self._listeners.values()):
            if any(map(listener.query.covers, collections)) and listener.id in self._listeners:
                self._deliver(listener)

    def _deliver(self, listener: _Listener) -> None:
        try:
            listener.on_snapshot(self._evaluate(listener.query))
        except Exception as e:
            log.warning(
                "snapshot_listener_error",
                listener_id=listener.id,
                collection=listener.query.collection,
                error=str(e),
            )
