"""Tests for SyncEngine group operations."""

import pytest

from knotsync.core.errors import ConstraintError, NotFoundError
from knotsync.models.base import EntityKind
from knotsync.models.drafts import GroupChanges, GroupDraft, SpotDraft


class TestCreateGroup:
    @pytest.mark.asyncio
    async def test_creator_is_member_and_invites_sent(self, engine, store, paths, ana):
        group = (await engine.create_group(ana, GroupDraft(name="Crew", member_ids=["ben", "cleo"]))).unwrap()
        assert group.members == ["ana", "ben", "cleo"]
        doc = await store.get(paths.groups(), group.id)
        assert doc["creatorId"] == "ana"
        assert doc["members"] == ["ana", "ben", "cleo"]
        for user in ("ben", "cleo"):
            (invite,) = store.documents(paths.notifications(user)).values()
            assert invite["kind"] == "group_invite"
            assert invite["groupName"] == "Crew"
        assert store.documents(paths.notifications("ana")) == {}

    @pytest.mark.asyncio
    async def test_creator_listed_once(self, engine, ana):
        group = (await engine.create_group(ana, GroupDraft(name="Solo", member_ids=["ana"]))).unwrap()
        assert group.members == ["ana"]


class TestUpdateGroup:
    @pytest.mark.asyncio
    async def test_rename(self, engine, store, paths, ana):
        group = (await engine.create_group(ana, GroupDraft(name="Crew"))).unwrap()
        updated = (await engine.update_group(ana, group.id, GroupChanges(name="Squad"))).unwrap()
        assert updated.name == "Squad"
        assert (await store.get(paths.groups(), group.id))["name"] == "Squad"

    @pytest.mark.asyncio
    async def test_membership_delta(self, engine, store, paths, ana):
        group = (await engine.create_group(ana, GroupDraft(name="Crew", member_ids=["ben"]))).unwrap()
        updated = (
            await engine.update_group(ana, group.id, GroupChanges(member_ids=["ana", "cleo"]))
        ).unwrap()
        assert updated.members == ["ana", "cleo"]
        assert (await store.get(paths.groups(), group.id))["members"] == ["ana", "cleo"]
        (invite,) = store.documents(paths.notifications("cleo")).values()
        assert invite["groupId"] == group.id

    @pytest.mark.asyncio
    async def test_creator_cannot_be_removed(self, engine, store, paths, ana):
        group = (await engine.create_group(ana, GroupDraft(name="Crew", member_ids=["ben"]))).unwrap()
        result = await engine.update_group(ana, group.id, GroupChanges(member_ids=["ben"]))
        assert isinstance(result.error, ConstraintError)
        assert (await store.get(paths.groups(), group.id))["members"] == ["ana", "ben"]

    @pytest.mark.asyncio
    async def test_removed_member_content_stays(self, engine, store, paths, ana, ben):
        group = (await engine.create_group(ana, GroupDraft(name="Crew", member_ids=["ben"]))).unwrap()
        draft = SpotDraft(tag="beach", date="2026-07-01", time="10:00", group_id=group.id)
        spot = (await engine.create_spot(ben, draft)).unwrap()
        await engine.update_group(ana, group.id, GroupChanges(member_ids=["ana"]))
        doc = await store.get(paths.group(group.id, EntityKind.SPOT), spot.id)
        assert doc["ownerId"] == "ben"

    @pytest.mark.asyncio
    async def test_unknown_group(self, engine, ana):
        result = await engine.update_group(ana, "ghost", GroupChanges(name="x"))
        assert isinstance(result.error, NotFoundError)
