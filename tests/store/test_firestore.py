"""Tests for knotsync.store.firestore against a mocked client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

pytest.importorskip("google.cloud.firestore")

from google.api_core.exceptions import ServiceUnavailable  # noqa: E402
from google.cloud import firestore  # noqa: E402

from knotsync.core.errors import BatchTooLargeError, StoreReadFailure, StoreWriteFailure  # noqa: E402
from knotsync.store.firestore import FirestoreDocumentStore, _logical, _physical, _to_firestore_value  # noqa: E402
from knotsync.store.query import DOC_ID, FilterOp, Query  # noqa: E402
from knotsync.store.writes import ArrayRemove, ArrayUnion, Increment, Write  # noqa: E402


def _client():
    client = MagicMock()
    batch = MagicMock()
    batch.commit = AsyncMock()
    client.batch.return_value = batch
    return client, batch


class TestPhysicalPaths:
    def test_public_collections_nest_under_data_doc(self):
        assert _physical("apps/a/public/spots") == "apps/a/public/data/spots"
        assert _physical("apps/a/public/groups/g1/knots") == "apps/a/public/data/groups/g1/knots"

    def test_user_paths_unchanged(self):
        assert _physical("apps/a/users/ana/spots") == "apps/a/users/ana/spots"

    def test_logical_reverses_physical(self):
        for path in ("apps/a/public/spots", "apps/a/public/groups/g1/knots", "apps/a/users/ana/knots"):
            assert _logical(_physical(path)) == path


class TestTransforms:
    def test_transform_translation(self):
        assert isinstance(_to_firestore_value(ArrayUnion(["a"])), firestore.ArrayUnion)
        assert isinstance(_to_firestore_value(ArrayRemove(["a"])), firestore.ArrayRemove)
        assert isinstance(_to_firestore_value(Increment(1)), firestore.Increment)
        assert _to_firestore_value("plain") == "plain"


class TestSplit:
    def test_in_filter_chunked(self):
        store = FirestoreDocumentStore(MagicMock(), in_limit=2)
        query = Query("apps/a/public/spots").where("ownerId", FilterOp.IN, ["a", "b", "c"]).limited(5)
        parts = store._split(query)
        assert [p.filters[0].value for p in parts] == [("a", "b"), ("c",)]
        assert all(p.limit is None for p in parts)

    def test_small_query_untouched(self):
        store = FirestoreDocumentStore(MagicMock(), in_limit=30)
        query = Query("apps/a/public/spots").where("ownerId", "==", "a")
        assert store._split(query) == [query]


class TestReads:
    @pytest.mark.asyncio
    async def test_get(self):
        client, _ = _client()
        snapshot = MagicMock(exists=True)
        snapshot.to_dict.return_value = {"tag": "#x"}
        client.collection.return_value.document.return_value.get = AsyncMock(return_value=snapshot)
        store = FirestoreDocumentStore(client)
        assert await store.get("apps/a/public/spots", "s1") == {"tag": "#x"}
        client.collection.assert_called_with("apps/a/public/data/spots")

    @pytest.mark.asyncio
    async def test_get_missing(self):
        client, _ = _client()
        client.collection.return_value.document.return_value.get = AsyncMock(return_value=MagicMock(exists=False))
        assert await FirestoreDocumentStore(client).get("apps/a/users/u/spots", "s1") is None

    @pytest.mark.asyncio
    async def test_read_error_translated(self):
        client, _ = _client()
        client.collection.return_value.document.return_value.get = AsyncMock(side_effect=ServiceUnavailable("down"))
        with pytest.raises(StoreReadFailure) as exc:
            await FirestoreDocumentStore(client).get("apps/a/users/u/spots", "s1")
        assert exc.value.context.entity_id == "s1"

    def test_subscribe_requires_watch_client(self):
        with pytest.raises(StoreReadFailure):
            FirestoreDocumentStore(MagicMock()).subscribe(Query("apps/a/public/spots"), print, print)


class TestCommit:
    @pytest.mark.asyncio
    async def test_ops_mapped_onto_batch(self):
        client, batch = _client()
        store = FirestoreDocumentStore(client)
        await store.commit(
            [
                Write.set("apps/a/users/u/spots", "s1", {"a": 1}, merge=True),
                Write.update("apps/a/users/u/spots", "s1", {"likes": ArrayUnion(["b"])}),
                Write.delete("apps/a/public/spots", "s1"),
            ]
        )
        assert batch.set.call_args.kwargs == {"merge": True}
        update_data = batch.update.call_args.args[1]
        assert isinstance(update_data["likes"], firestore.ArrayUnion)
        assert batch.delete.call_count == 1
        batch.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cap_checked_before_any_call(self):
        client, batch = _client()
        store = FirestoreDocumentStore(client, max_batch_size=1)
        with pytest.raises(BatchTooLargeError):
            await store.commit([Write.delete("c/x/y", "1"), Write.delete("c/x/y", "2")])
        client.batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_commit_error_translated(self):
        client, batch = _client()
        batch.commit.side_effect = ServiceUnavailable("down")
        with pytest.raises(StoreWriteFailure) as exc:
            await FirestoreDocumentStore(client).commit([Write.delete("apps/a/users/u/spots", "s1")])
        assert exc.value.retryable is True
        assert exc.value.context.scope == "apps/a/users/u/spots"


def _snapshot(path: str, data: dict):
    snapshot = MagicMock()
    snapshot.id = path.rsplit("/", 1)[-1]
    snapshot.reference.path = path
    snapshot.to_dict.return_value = data
    return snapshot


def _stream(*snapshots):
    async def stream():
        for snapshot in snapshots:
            yield snapshot

    return stream


class TestCollectionGroupQueries:
    @pytest.mark.asyncio
    async def test_group_query_keeps_documents_under_the_app(self):
        client, _ = _client()
        client.collection_group.return_value.where.return_value.stream = _stream(
            _snapshot("apps/a/users/ben/knots/k1", {"spotIds": ["s1"]}),
            _snapshot("apps/a/public/data/knots/k1", {"spotIds": ["s1"]}),
            _snapshot("apps/other/users/zed/knots/k9", {"spotIds": ["s1"]}),
        )
        store = FirestoreDocumentStore(client)
        query = Query.group("apps/a", "knots").where("spotIds", "array_contains", "s1")

        docs = await store.query(query)

        client.collection_group.assert_called_once_with("knots")
        assert [(d.collection, d.id) for d in docs] == [
            ("apps/a/users/ben/knots", "k1"),
            ("apps/a/public/knots", "k1"),
        ]

    @pytest.mark.asyncio
    async def test_group_query_rejects_document_id_filter(self):
        client, _ = _client()
        query = Query.group("apps/a", "knots").where(DOC_ID, "==", "k1")
        with pytest.raises(StoreReadFailure):
            await FirestoreDocumentStore(client).query(query)
