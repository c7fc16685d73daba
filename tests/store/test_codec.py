"""Tests for knotsync.store.codec."""

import pytest

from knotsync.core.errors import SchemaError
from knotsync.models.base import EntityKind
from knotsync.models.entities import Knot, Notification, Spot
from knotsync.store.codec import decode, decode_as, encode


class TestDecode:
    def test_spot(self):
        spot = decode(EntityKind.SPOT, "s1", {"type": "spot", "ownerId": "ana", "tag": "#x"})
        assert isinstance(spot, Spot)
        assert spot.id == "s1"

    def test_legacy_event_tag_accepted(self):
        spot = decode(EntityKind.SPOT, "s1", {"type": "event", "creatorId": "ana", "tag": "#x"})
        assert spot.owner_id == "ana"

    def test_wrong_type_tag(self):
        with pytest.raises(SchemaError) as exc:
            decode(EntityKind.KNOT, "s1", {"type": "spot", "ownerId": "ana", "tag": "#x"})
        assert exc.value.field == "type"
        assert exc.value.context.entity_id == "s1"

    def test_invalid_fields(self):
        with pytest.raises(SchemaError) as exc:
            decode(EntityKind.SPOT, "s1", {"type": "spot", "tag": "#x"})
        assert exc.value.context.entity_kind == "spot"

    def test_decode_as(self):
        knot = decode_as(Knot, "k1", {"ownerId": "ana", "tag": "#t", "startDate": "2026-01-01", "endDate": "2026-01-01"})
        assert knot.id == "k1"

    def test_encode_drops_id(self):
        spot = Spot(id="s1", owner_id="ana", tag="#x")
        doc = encode(spot)
        assert "id" not in doc
        assert doc["type"] == "spot"
        assert decode(EntityKind.SPOT, "s1", doc) == spot

    def test_encode_stores_enums_as_plain_strings(self):
        knot = Knot(id="k1", owner_id="ana", tag="#t", start_date="2026-01-01", end_date="2026-01-01", status="public")
        doc = encode(knot)
        assert type(doc["status"]) is str
        assert doc["status"] == "public"
        notification = Notification(id="n1", recipient_id="ben", kind="like", from_user_id="ana")
        assert type(encode(notification)["kind"]) is str
