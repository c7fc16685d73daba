"""Tests for knotsync.store.query."""

from knotsync.store.query import DOC_ID, Document, FieldFilter, FilterOp, Query

C = "apps/t/public/spots"


class TestFieldFilter:
    def test_eq(self):
        f = FieldFilter("ownerId", FilterOp.EQ, "ana")
        assert f.matches("s1", {"ownerId": "ana"})
        assert not f.matches("s1", {"ownerId": "ben"})

    def test_string_op_is_coerced(self):
        assert FieldFilter("a", "==", 1).op == FilterOp.EQ

    def test_in_value_becomes_tuple(self):
        f = FieldFilter("ownerId", FilterOp.IN, ["ana", "ben"])
        assert f.value == ("ana", "ben")
        assert f.matches("s1", {"ownerId": "ben"})

    def test_doc_id_filter(self):
        f = FieldFilter(DOC_ID, FilterOp.IN, ["s1", "s2"])
        assert f.matches("s2", {})
        assert not f.matches("s3", {})

    def test_array_contains(self):
        f = FieldFilter("knotIds", FilterOp.ARRAY_CONTAINS, "k1")
        assert f.matches("s1", {"knotIds": ["k1"]})
        assert not f.matches("s1", {"knotIds": "k1"})
        assert not f.matches("s1", {})

    def test_array_contains_any(self):
        f = FieldFilter("taggedUsers", FilterOp.ARRAY_CONTAINS_ANY, ["@a", "@b"])
        assert f.matches("s1", {"taggedUsers": ["@b"]})
        assert not f.matches("s1", {"taggedUsers": ["@c"]})


class TestQuery:
    def test_builder_is_immutable(self):
        base = Query(C)
        narrowed = base.where("ownerId", "==", "ana")
        assert base.filters == ()
        assert len(narrowed.filters) == 1

    def test_matches_all_filters(self):
        q = Query(C).where("ownerId", "==", "ana").where("visibility", "==", "public")
        assert q.matches("s1", {"ownerId": "ana", "visibility": "public"})
        assert not q.matches("s1", {"ownerId": "ana", "visibility": "private"})

    def test_arrange_orders_limits_and_drops_missing(self):
        docs = [
            Document("a", {"date": "2026-01-02"}),
            Document("b", {"date": "2026-01-03"}),
            Document("c", {}),
            Document("d", {"date": "2026-01-01"}),
        ]
        arranged = Query(C).order("date", descending=True).limited(2).arrange(docs)
        assert [d.id for d in arranged] == ["b", "a"]

    def test_describe(self):
        assert Query(C).where("ownerId", "==", "ana").describe() == f"{C} | ownerId == 'ana'"


class TestCollectionGroup:
    """Collection-group queries span every same-named collection below a root."""

    def test_covers_same_named_collections_under_root(self):
        q = Query.group("apps/t", "knots")
        assert q.all_descendants
        assert q.covers("apps/t/users/ana/knots")
        assert q.covers("apps/t/public/knots")
        assert q.covers("apps/t/public/groups/g1/knots")

    def test_excludes_other_names_and_apps(self):
        q = Query.group("apps/t", "knots")
        assert not q.covers("apps/t/users/ana/spots")
        assert not q.covers("apps/other/users/ana/knots")

    def test_plain_query_covers_only_its_collection(self):
        assert Query(C).covers(C)
        assert not Query(C).covers("apps/t/public/groups/g1/spots")

    def test_filters_survive_builder(self):
        q = Query.group("apps/t", "spots").where("knotIds", "array_contains", "k1")
        assert q.all_descendants
        assert q.describe() == "apps/t/spots (all) | knotIds array_contains 'k1'"
