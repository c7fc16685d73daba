"""Entity Store Adapter.

Architecture::

    base.py        DocumentStore protocol
    memory.py      InMemoryDocumentStore (tests, local runs)
    firestore.py   FirestoreDocumentStore (google-cloud-firestore)
    writes.py      Write, ArrayUnion/ArrayRemove/Increment, apply_writes
    query.py       Query, FieldFilter, Document
    paths.py       ScopePaths -- every collection path of the data layout
    codec.py       decode/encode between documents and entity models

Usage::

    from knotsync.store import create_store
    store = create_store(get_settings())
"""

from __future__ import annotations

from knotsync.core.settings import KnotSyncSettings, StoreBackend
from knotsync.store.base import DocumentStore
from knotsync.store.memory import InMemoryDocumentStore
from knotsync.store.paths import PROFILE_DOC_ID, ScopePaths
from knotsync.store.query import DOC_ID, Document, FieldFilter, FilterOp, Query
from knotsync.store.writes import ArrayRemove, ArrayUnion, Increment, Write, WriteOp, apply_writes


def create_store(settings: KnotSyncSettings) -> DocumentStore:
    """Build the store selected by ``settings.store_backend``."""
    if settings.store_backend == StoreBackend.FIRESTORE:
        # Imported lazily so the memory backend works without Google credentials.
        from knotsync.store.firestore import FirestoreDocumentStore

        return FirestoreDocumentStore.from_settings(settings)
    return InMemoryDocumentStore(max_batch_size=settings.max_batch_size)


__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "ScopePaths",
    "PROFILE_DOC_ID",
    "DOC_ID",
    "Document",
    "FieldFilter",
    "FilterOp",
    "Query",
    "ArrayRemove",
    "ArrayUnion",
    "Increment",
    "Write",
    "WriteOp",
    "apply_writes",
    "create_store",
]
