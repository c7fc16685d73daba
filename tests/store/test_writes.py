"""Tests for knotsync.store.writes: batch semantics and convergent transforms."""

import pytest

from knotsync.store.writes import (
    ArrayRemove,
    ArrayUnion,
    DocumentMissing,
    Increment,
    Write,
    WriteOp,
    apply_writes,
)

C = "apps/t/users/ana/spots"


class TestTransforms:
    def test_array_union_set_semantics(self):
        assert ArrayUnion(["b", "c"]).apply(["a", "b"]) == ["a", "b", "c"]

    def test_array_union_on_missing_field(self):
        assert ArrayUnion(["a"]).apply(None) == ["a"]

    def test_array_remove_all_occurrences(self):
        assert ArrayRemove(["a"]).apply(["a", "b", "a"]) == ["b"]

    def test_array_remove_on_missing_field(self):
        assert ArrayRemove(["a"]).apply(None) == []

    def test_increment(self):
        assert Increment().apply(2) == 3
        assert Increment(-1).apply(None) == -1
        assert Increment(1).apply(True) == 1

    def test_transforms_compare_by_value(self):
        assert ArrayUnion(["a"]) == ArrayUnion(("a",))
        assert ArrayRemove(["a"]) != ArrayUnion(["a"])


class TestWrite:
    def test_constructors(self):
        assert Write.set(C, "s1", {"a": 1}).op == WriteOp.SET
        assert Write.update(C, "s1", {"a": 1}).op == WriteOp.UPDATE
        assert Write.delete(C, "s1").data == {}
        assert Write.set(C, "s1", {}, merge=True).merge is True

    def test_key(self):
        assert Write.delete(C, "s1").key == (C, "s1")


class TestApplyWrites:
    """Reference batch semantics."""

    def test_set_replaces(self):
        docs = {(C, "s1"): {"a": 1, "b": 2}}
        assert apply_writes(docs, [Write.set(C, "s1", {"a": 5})])[(C, "s1")] == {"a": 5}

    def test_set_merge_keeps_other_fields(self):
        docs = {(C, "s1"): {"a": 1, "b": 2}}
        result = apply_writes(docs, [Write.set(C, "s1", {"a": 5}, merge=True)])
        assert result[(C, "s1")] == {"a": 5, "b": 2}

    def test_merge_creates_missing(self):
        result = apply_writes({}, [Write.set(C, "s1", {"f": ArrayUnion(["x"])}, merge=True)])
        assert result[(C, "s1")] == {"f": ["x"]}

    def test_update_missing_raises(self):
        with pytest.raises(DocumentMissing) as exc:
            apply_writes({}, [Write.update(C, "s1", {"a": 1})])
        assert exc.value.key == (C, "s1")

    def test_delete_missing_is_noop(self):
        assert apply_writes({}, [Write.delete(C, "s1")]) == {}

    def test_input_never_mutated(self):
        docs = {(C, "s1"): {"likes": ["ben"]}}
        apply_writes(docs, [Write.update(C, "s1", {"likes": ArrayUnion(["cleo"])})])
        assert docs == {(C, "s1"): {"likes": ["ben"]}}

    def test_failed_batch_leaves_input_untouched(self):
        docs = {(C, "s1"): {"a": 1}}
        writes = [Write.update(C, "s1", {"a": 2}), Write.update(C, "missing", {"a": 3})]
        with pytest.raises(DocumentMissing):
            apply_writes(docs, writes)
        assert docs[(C, "s1")] == {"a": 1}

    def test_later_write_sees_earlier(self):
        writes = [Write.set(C, "s1", {"n": 1}), Write.update(C, "s1", {"n": Increment(2)})]
        assert apply_writes({}, writes)[(C, "s1")] == {"n": 3}

    def test_union_and_remove_are_idempotent(self):
        docs = {(C, "s1"): {"likes": ["ben"]}}
        once = apply_writes(docs, [Write.update(C, "s1", {"likes": ArrayUnion(["cleo"])})])
        twice = apply_writes(once, [Write.update(C, "s1", {"likes": ArrayUnion(["cleo"])})])
        assert once == twice
        removed = apply_writes(twice, [Write.update(C, "s1", {"likes": ArrayRemove(["cleo"])})] * 2)
        assert removed[(C, "s1")]["likes"] == ["ben"]

    def test_concurrent_toggles_converge(self):
        docs = {(C, "s1"): {"likes": []}}
        ben = Write.update(C, "s1", {"likes": ArrayUnion(["ben"])})
        cleo = Write.update(C, "s1", {"likes": ArrayUnion(["cleo"])})
        first = apply_writes(apply_writes(docs, [ben]), [cleo])
        second = apply_writes(apply_writes(docs, [cleo]), [ben])
        assert sorted(first[(C, "s1")]["likes"]) == sorted(second[(C, "s1")]["likes"]) == ["ben", "cleo"]
