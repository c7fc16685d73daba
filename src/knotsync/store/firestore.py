"""
Cloud Firestore document store.

Manifesto:
    Production data lives in Firestore. This adapter maps the backend-neutral
    ``Write``/``Query`` descriptors onto the google-cloud-firestore client and
    translates Google API errors into the knotsync store error taxonomy.

Reads and batches go through ``firestore.AsyncClient``. Live queries use the
synchronous client's ``on_snapshot`` watch, whose callbacks run on a
background thread; they are bridged back onto the event loop with
``call_soon_threadsafe`` so consumers only ever run on the loop.

Logical paths put collections directly under ``apps/{app}/public``, which
Firestore cannot address (collection paths need an odd number of segments);
the deployed layout keeps them under a ``public/data`` document and
``_physical`` performs that mapping.

Tags:
    knotsync, store, firestore, google-cloud, asyncio
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from google.api_core.exceptions import GoogleAPICallError
from google.auth import default as google_auth_default
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter as FirestoreFieldFilter
from google.cloud.firestore_v1.field_path import FieldPath
from google.oauth2 import service_account

from knotsync.core.errors import BatchTooLargeError, StoreReadFailure, StoreWriteFailure
from knotsync.core.logging import get_logger
from knotsync.core.settings import KnotSyncSettings
from knotsync.core.timestamps import generate_id
from knotsync.store.base import ErrorCallback, SnapshotCallback, Unsubscribe
from knotsync.store.query import DOC_ID, Document, FilterOp, Query
from knotsync.store.writes import ArrayRemove, ArrayUnion, Increment, Write, WriteOp

__all__ = ["FirestoreDocumentStore"]

log = get_logger(__name__)

_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


def _physical(path: str) -> str:
    parts = path.split("/")
    if len(parts) >= 3 and parts[0] == "apps" and parts[2] == "public":
        parts.insert(3, "data")
    return "/".join(parts)


def _logical(path: str) -> str:
    parts = path.split("/")
    if len(parts) >= 4 and parts[0] == "apps" and parts[2] == "public" and parts[3] == "data":
        del parts[3]
    return "/".join(parts)


def _to_firestore_value(value: Any) -> Any:
    if isinstance(value, ArrayUnion):
        return firestore.ArrayUnion(list(value.values))
    if isinstance(value, ArrayRemove):
        return firestore.ArrayRemove(list(value.values))
    if isinstance(value, Increment):
        return firestore.Increment(value.amount)
    return value


def _to_firestore_data(data: dict[str, Any]) -> dict[str, Any]:
    return {name: _to_firestore_value(value) for name, value in data.items()}


def _build_credentials(credentials_path: str):
    if credentials_path:
        return service_account.Credentials.from_service_account_file(credentials_path, scopes=_SCOPES)
    creds, _ = google_auth_default(scopes=_SCOPES)
    return creds


class FirestoreDocumentStore:
    """DocumentStore backed by Cloud Firestore.

    Example::

        store = FirestoreDocumentStore.from_settings(get_settings())
        spots = await store.query(Query(paths.public(EntityKind.SPOT)).limited(20))
    """

    def __init__(
        self,
        client: Any,
        *,
        watch_client: Any | None = None,
        max_batch_size: int = 500,
        in_limit: int = 30,
    ) -> None:
        self._client = client
        self._watch_client = watch_client
        self._max_batch_size = max_batch_size
        self._in_limit = in_limit

    @classmethod
    def from_settings(cls, settings: KnotSyncSettings) -> FirestoreDocumentStore:
        credentials = _build_credentials(settings.credentials_path)
        kwargs = {
            "project": settings.firestore_project,
            "credentials": credentials,
            "database": settings.firestore_database,
        }
        return cls(
            firestore.AsyncClient(**kwargs),
            watch_client=firestore.Client(**kwargs),
            max_batch_size=settings.max_batch_size,
            in_limit=settings.query_in_limit,
        )

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    # ── reads ───────────────────────────────────────────────────

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        try:
            snapshot = await self._client.collection(_physical(collection)).document(doc_id).get()
        except GoogleAPICallError as e:
            raise StoreReadFailure(f"read failed: {e}", cause=e).with_context(
                scope=collection, entity_id=doc_id
            ) from e
        return snapshot.to_dict() if snapshot.exists else None

    async def get_many(self, collection: str, doc_ids: Sequence[str]) -> dict[str, dict[str, Any]]:
        if not doc_ids:
            return {}
        coll = self._client.collection(_physical(collection))
        refs = [coll.document(doc_id) for doc_id in dict.fromkeys(doc_ids)]
        result: dict[str, dict[str, Any]] = {}
        try:
            async for snapshot in self._client.get_all(refs):
                if snapshot.exists:
                    result[snapshot.id] = snapshot.to_dict()
        except GoogleAPICallError as e:
            raise StoreReadFailure(f"batch read failed: {e}", cause=e).with_context(scope=collection) from e
        return result

    async def query(self, query: Query) -> list[Document]:
        documents: dict[str, Document] = {}
        parts = self._split(query)
        try:
            for part in parts:
                async for snapshot in self._build(self._client, part).stream():
                    if not query.all_descendants:
                        documents.setdefault(snapshot.id, Document(snapshot.id, snapshot.to_dict()))
                        continue
                    # Collection groups span every app; keep the ones under our root.
                    collection = _logical(snapshot.reference.path).rsplit("/", 1)[0]
                    if query.covers(collection):
                        documents.setdefault(
                            f"{collection}/{snapshot.id}", Document(snapshot.id, snapshot.to_dict(), collection)
                        )
        except GoogleAPICallError as e:
            raise StoreReadFailure(f"query failed: {e}", cause=e).with_context(
                scope=query.collection, query=query.describe()
            ) from e
        if len(parts) > 1:
            return query.arrange(documents.values())
        return list(documents.values())

    def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        if self._watch_client is None:
            raise StoreReadFailure("live queries need a synchronous watch client").with_context(
                scope=query.collection
            )
        loop = asyncio.get_running_loop()
        parts = self._split(query)
        latest: dict[int, list[Document]] = {}

        def deliver(index: int, documents: list[Document]) -> None:
            latest[index] = documents
            if len(latest) < len(parts):
                return
            merged: dict[str, Document] = {}
            for i in range(len(parts)):
                for doc in latest[i]:
                    merged.setdefault(doc.id, doc)
            on_snapshot(query.arrange(merged.values()) if len(parts) > 1 else list(merged.values()))

        def watch_callback(index: int):
            def callback(snapshots, changes, read_time) -> None:
                try:
                    documents = [Document(s.id, s.to_dict()) for s in snapshots]
                except Exception as e:
                    loop.call_soon_threadsafe(
                        on_error,
                        StoreReadFailure(f"snapshot failed: {e}", cause=e).with_context(scope=query.collection),
                    )
                    return
                loop.call_soon_threadsafe(deliver, index, documents)

            return callback

        watches = [
            self._build(self._watch_client, part).on_snapshot(watch_callback(index))
            for index, part in enumerate(parts)
        ]

        def unsubscribe() -> None:
            for watch in watches:
                watch.unsubscribe()

        return unsubscribe

    # ── writes ──────────────────────────────────────────────────

    async def set(self, collection: str, doc_id: str, data: dict[str, Any], *, merge: bool = False) -> None:
        await self.commit([Write.set(collection, doc_id, data, merge=merge)])

    async def delete(self, collection: str, doc_id: str) -> None:
        await self.commit([Write.delete(collection, doc_id)])

    async def commit(self, writes: Sequence[Write]) -> None:
        if len(writes) > self._max_batch_size:
            raise BatchTooLargeError(len(writes), self._max_batch_size)
        if not writes:
            return
        batch = self._client.batch()
        for write in writes:
            ref = self._client.collection(_physical(write.collection)).document(write.doc_id)
            if write.op == WriteOp.DELETE:
                batch.delete(ref)
            elif write.op == WriteOp.UPDATE:
                batch.update(ref, _to_firestore_data(dict(write.data)))
            else:
                batch.set(ref, _to_firestore_data(dict(write.data)), merge=write.merge)
        try:
            await batch.commit()
        except GoogleAPICallError as e:
            raise StoreWriteFailure(f"batch rejected: {e}", cause=e).with_context(
                scope=writes[0].collection, writes=len(writes)
            ) from e
        log.debug("batch_committed", writes=len(writes))

    def new_id(self) -> str:
        return generate_id()

    # ── query translation ───────────────────────────────────────

    def _split(self, query: Query) -> list[Query]:
        """Split oversized ``in``/``array_contains_any`` filters into chunks."""
        for index, f in enumerate(query.filters):
            if f.op in (FilterOp.IN, FilterOp.ARRAY_CONTAINS_ANY) and len(f.value) > self._in_limit:
                chunks = [f.value[i : i + self._in_limit] for i in range(0, len(f.value), self._in_limit)]
                parts = []
                for chunk in chunks:
                    filters = list(query.filters)
                    filters[index] = type(f)(f.field, f.op, chunk)
                    parts.append(replace(query, filters=tuple(filters), limit=None))
                return parts
        return [query]

    def _build(self, client: Any, query: Query) -> Any:
        if query.all_descendants:
            coll = None
            built = client.collection_group(query.collection_id)
        else:
            coll = client.collection(_physical(query.collection))
            built = coll
        for f in query.filters:
            if f.field == DOC_ID:
                if coll is None:
                    raise StoreReadFailure("collection-group queries cannot filter on document id").with_context(
                        query=query.describe()
                    )
                if f.op == FilterOp.IN:
                    values = [coll.document(v) for v in f.value]
                else:
                    values = coll.document(f.value)
                built = built.where(filter=FirestoreFieldFilter(FieldPath.document_id(), f.op.value, values))
            else:
                built = built.where(filter=FirestoreFieldFilter(f.field, f.op.value, list(f.value) if isinstance(f.value, tuple) else f.value))
        for field_name, descending in query.order_by:
            built = built.order_by(field_name, direction="DESCENDING" if descending else "ASCENDING")
        if query.limit is not None:
            built = built.limit(query.limit)
        return built
