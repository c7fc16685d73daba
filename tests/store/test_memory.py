"""Tests for knotsync.store.memory.InMemoryDocumentStore."""

import pytest

from knotsync.core.errors import BatchTooLargeError, StoreReadFailure, StoreWriteFailure
from knotsync.store.base import DocumentStore
from knotsync.store.memory import InMemoryDocumentStore
from knotsync.store.query import Query
from knotsync.store.writes import ArrayUnion, Write

C = "apps/t/public/spots"


class TestProtocol:
    def test_satisfies_document_store(self, store):
        assert isinstance(store, DocumentStore)

    def test_new_id_unique(self, store):
        assert store.new_id() != store.new_id()


class TestReads:
    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get(C, "nope") is None

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, store):
        await store.set(C, "s1", {"likes": ["ben"]})
        doc = await store.get(C, "s1")
        doc["likes"].append("cleo")
        assert (await store.get(C, "s1"))["likes"] == ["ben"]

    @pytest.mark.asyncio
    async def test_get_many_omits_missing(self, store):
        await store.set(C, "s1", {"a": 1})
        await store.set(C, "s2", {"a": 2})
        assert set(await store.get_many(C, ["s1", "s2", "s3"])) == {"s1", "s2"}

    @pytest.mark.asyncio
    async def test_query_scoped_to_collection(self, store):
        await store.set(C, "s1", {"ownerId": "ana"})
        await store.set("apps/t/users/ana/spots", "s1", {"ownerId": "ana"})
        docs = await store.query(Query(C).where("ownerId", "==", "ana"))
        assert [d.id for d in docs] == ["s1"]

    @pytest.mark.asyncio
    async def test_group_query_spans_scopes(self, store):
        await store.set("apps/t/users/ana/knots", "k1", {"spotIds": ["s1"]})
        await store.set("apps/t/users/ben/knots", "k2", {"spotIds": ["s1"]})
        await store.set("apps/t/public/groups/g1/knots", "k3", {"spotIds": ["s2"]})
        await store.set("apps/t/users/ana/spots", "s9", {"spotIds": ["s1"]})
        docs = await store.query(Query.group("apps/t", "knots").where("spotIds", "array_contains", "s1"))
        assert sorted((d.collection, d.id) for d in docs) == [
            ("apps/t/users/ana/knots", "k1"),
            ("apps/t/users/ben/knots", "k2"),
        ]

    @pytest.mark.asyncio
    async def test_plain_query_leaves_collection_unset(self, store):
        await store.set(C, "s1", {})
        assert (await store.query(Query(C)))[0].collection is None

    @pytest.mark.asyncio
    async def test_injected_read_failure_is_one_shot(self, store):
        store.fail_next_read()
        with pytest.raises(StoreReadFailure) as exc:
            await store.get(C, "s1")
        assert exc.value.context.scope == C
        assert await store.get(C, "s1") is None


class TestCommit:
    """Batches apply all-or-nothing."""

    @pytest.mark.asyncio
    async def test_commit_applies_all(self, store):
        await store.commit([Write.set(C, "s1", {"a": 1}), Write.set(C, "s2", {"a": 2})])
        assert set(store.documents(C)) == {"s1", "s2"}
        assert len(store.committed_batches) == 1

    @pytest.mark.asyncio
    async def test_empty_batch_is_noop(self, store):
        await store.commit([])
        assert store.committed_batches == []

    @pytest.mark.asyncio
    async def test_update_of_missing_doc_rejects_whole_batch(self, store):
        with pytest.raises(StoreWriteFailure) as exc:
            await store.commit([Write.set(C, "s1", {"a": 1}), Write.update(C, "ghost", {"a": 2})])
        assert exc.value.context.entity_id == "ghost"
        assert store.documents(C) == {}

    @pytest.mark.asyncio
    async def test_batch_cap(self):
        store = InMemoryDocumentStore(max_batch_size=2)
        with pytest.raises(BatchTooLargeError):
            await store.commit([Write.set(C, str(i), {}) for i in range(3)])
        assert store.documents(C) == {}

    @pytest.mark.asyncio
    async def test_injected_commit_failure(self, store):
        store.fail_next_commit()
        with pytest.raises(StoreWriteFailure) as exc:
            await store.commit([Write.set(C, "s1", {"a": 1})])
        assert exc.value.retryable is True
        assert not store.exists(C, "s1")
        await store.commit([Write.set(C, "s1", {"a": 1})])
        assert store.exists(C, "s1")

    @pytest.mark.asyncio
    async def test_fail_after_skip(self, store):
        store.fail_next_commit(skip=1)
        await store.commit([Write.set(C, "s1", {})])
        with pytest.raises(StoreWriteFailure):
            await store.commit([Write.set(C, "s2", {})])
        assert store.exists(C, "s1")
        assert not store.exists(C, "s2")

    @pytest.mark.asyncio
    async def test_transforms_resolved(self, store):
        await store.set(C, "s1", {"likes": ["ben"]})
        await store.commit([Write.update(C, "s1", {"likes": ArrayUnion(["ben", "cleo"])})])
        assert (await store.get(C, "s1"))["likes"] == ["ben", "cleo"]


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_initial_and_change_delivery(self, store):
        await store.set(C, "s1", {"ownerId": "ana"})
        seen = []
        store.subscribe(Query(C), lambda docs: seen.append([d.id for d in docs]), lambda e: None)
        await store.set(C, "s2", {"ownerId": "ana"})
        assert seen == [["s1"], ["s1", "s2"]]

    @pytest.mark.asyncio
    async def test_other_collections_do_not_notify(self, store):
        seen = []
        store.subscribe(Query(C), lambda docs: seen.append(len(docs)), lambda e: None)
        await store.set("apps/t/public/knots", "k1", {})
        assert seen == [0]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.subscribe(Query(C), lambda docs: seen.append(len(docs)), lambda e: None)
        assert store.listener_count == 1
        unsubscribe()
        unsubscribe()
        await store.set(C, "s1", {})
        assert seen == [0]
        assert store.listener_count == 0

    @pytest.mark.asyncio
    async def test_listener_exception_does_not_break_commit(self, store):
        def boom(docs):
            raise RuntimeError("listener bug")

        store.subscribe(Query(C), boom, lambda e: None)
        await store.set(C, "s1", {})
        assert store.exists(C, "s1")
