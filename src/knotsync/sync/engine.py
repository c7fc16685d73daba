"""
Sync Engine.

One coroutine per user intent. Each operation reads what it needs through
the Entity Locator, lets the Placement Resolver and Reference Integrity
Manager compute the write set, and commits it as one atomic batch (or, for
oversized cascades, a phased sequence of batches).

Contract:
    - Every operation returns ``Ok(value)`` or ``Err(error)``, never a
      partial result; a missing or invalidated session fails before any read.
    - Nothing is committed when a read, lookup or validation fails.
    - Notifications are written only after the primary batch committed, and
      their failures are logged, never surfaced.

Examples:
    >>> engine = SyncEngine(InMemoryDocumentStore(), ScopePaths("demo"))
    >>> result = await engine.create_spot(session, SpotDraft(tag="beach", date="2024-06-01", time="10:00"))
    >>> result.unwrap().tag
    '#beach'
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from knotsync.core.errors import (
    ConstraintError,
    KnotSyncError,
    NotFoundError,
    PartialCascadeFailure,
    StoreError,
    ValidationError,
)
from knotsync.core.logging import LogContext, get_logger
from knotsync.core.result import Err, Ok, Result, try_result_async
from knotsync.core.settings import KnotSyncSettings
from knotsync.core.timestamps import utc_now
from knotsync.models.base import EntityKind, StoreModel
from knotsync.models.drafts import GroupChanges, GroupDraft, KnotChanges, KnotDraft, SpotChanges, SpotDraft
from knotsync.models.entities import Comment, Group, Knot, Notification, NotificationKind, Spot
from knotsync.session import ActingSession, require_active
from knotsync.store.base import DocumentStore
from knotsync.store.codec import encode
from knotsync.store.paths import ScopePaths
from knotsync.store.query import Query
from knotsync.store.writes import ArrayRemove, ArrayUnion, Write
from knotsync.sync.cascade import CascadeDeleteHandler, CascadeReport
from knotsync.sync.locator import EntityLocator, Located
from knotsync.sync.placement import ScopeOp, resolve_placement
from knotsync.sync.plan import Phase, WritePlan
from knotsync.sync.references import (
    COMMENT_COUNT,
    KNOT_SPOTS,
    SPOT_LIKES,
    follow_edge,
    increment_field,
    link_spot_knot,
    remove_profile_tag,
    toggle_member,
    unlink_spot_knot,
)

log = get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=StoreModel)


def _build(model: type[M], **fields: Any) -> M:
    try:
        return model(**fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ValidationError(
            f"invalid {model.__name__.lower()}: {first['msg']}",
            field=".".join(str(p) for p in first["loc"]) or None,
            cause=e,
        ) from e


def _rebuild(entity: M, changes: Mapping[str, Any]) -> M:
    """Re-validate ``entity`` with ``changes`` applied (attribute names)."""
    return _build(type(entity), **{**entity.model_dump(), **changes})


def _diff(old: Mapping[str, Any], new: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in new.items() if old.get(key) != value}


class SyncEngine:
    """Mutating operations over Spots, Knots, Groups and the social graph."""

    def __init__(self, store: DocumentStore, paths: ScopePaths) -> None:
        self._store = store
        self._paths = paths
        self._locator = EntityLocator(store, paths)
        self._cascade = CascadeDeleteHandler(store, paths, self._locator)

    @classmethod
    def from_settings(cls, settings: KnotSyncSettings, store: DocumentStore) -> SyncEngine:
        return cls(store, ScopePaths(settings.app_id))

    @property
    def locator(self) -> EntityLocator:
        return self._locator

    # =========================================================================
    # SPOTS
    # =========================================================================

    async def create_spot(self, session: ActingSession | None, draft: SpotDraft) -> Result[Spot]:
        async def run(actor: ActingSession) -> Spot:
            if draft.group_id:
                await self._locator.require_group(draft.group_id)
            spot = _build(
                Spot,
                id=self._store.new_id(),
                owner_id=actor.user_id,
                owner_username=actor.username,
                owner_profile_image=actor.profile_image,
                **draft.model_dump(),
            )
            await self._create(EntityKind.SPOT, spot)
            return spot

        return await self._run("create_spot", session, run)

    async def update_spot(
        self,
        session: ActingSession | None,
        spot_id: str,
        changes: SpotChanges,
        *,
        group_id: str | None = None,
    ) -> Result[Spot]:
        """Edit a Spot in place, or move it when visibility or group changes.

        ``group_id`` is a lookup hint for the Spot's current group.
        """

        async def run(actor: ActingSession) -> Spot:
            located = await self._locator.require(EntityKind.SPOT, spot_id, actor.user_id, group_id=group_id)
            return await self._edit(EntityKind.SPOT, located, changes.changed())  # type: ignore[return-value]

        return await self._run("update_spot", session, run, entity_id=spot_id)

    async def move_spot(
        self,
        session: ActingSession | None,
        spot_id: str,
        *,
        to_group_id: str | None,
        visibility: Any = None,
        group_id: str | None = None,
    ) -> Result[Spot]:
        """Move a Spot into a group, or out of one when ``to_group_id`` is None."""
        fields: dict[str, Any] = {"group_id": to_group_id}
        if visibility is not None:
            fields["visibility"] = visibility
        return await self.update_spot(session, spot_id, SpotChanges.model_construct(**fields), group_id=group_id)

    async def delete_spot(
        self, session: ActingSession | None, spot_id: str, *, group_id: str | None = None
    ) -> Result[CascadeReport]:
        async def run(actor: ActingSession) -> CascadeReport:
            located = await self._locator.require(EntityKind.SPOT, spot_id, actor.user_id, group_id=group_id)
            plan, report = await self._cascade.plan_spot_deletion(located)
            report.batches = await self._commit_plan(plan, EntityKind.SPOT, spot_id)
            return report

        return await self._run("delete_spot", session, run, entity_id=spot_id)

    # =========================================================================
    # KNOTS
    # =========================================================================

    async def create_knot(self, session: ActingSession | None, draft: KnotDraft) -> Result[Knot]:
        async def run(actor: ActingSession) -> Knot:
            if draft.group_id:
                await self._locator.require_group(draft.group_id)
            knot = _build(
                Knot,
                id=self._store.new_id(),
                owner_id=actor.user_id,
                owner_username=actor.username,
                owner_profile_image=actor.profile_image,
                **draft.model_dump(),
            )
            await self._create(EntityKind.KNOT, knot)
            return knot

        return await self._run("create_knot", session, run)

    async def update_knot(
        self,
        session: ActingSession | None,
        knot_id: str,
        changes: KnotChanges,
        *,
        group_id: str | None = None,
    ) -> Result[Knot]:
        async def run(actor: ActingSession) -> Knot:
            located = await self._locator.require(EntityKind.KNOT, knot_id, actor.user_id, group_id=group_id)
            return await self._edit(EntityKind.KNOT, located, changes.changed())  # type: ignore[return-value]

        return await self._run("update_knot", session, run, entity_id=knot_id)

    async def delete_knot(
        self, session: ActingSession | None, knot_id: str, *, group_id: str | None = None
    ) -> Result[CascadeReport]:
        async def run(actor: ActingSession) -> CascadeReport:
            located = await self._locator.require(EntityKind.KNOT, knot_id, actor.user_id, group_id=group_id)
            plan, report = await self._cascade.plan_knot_deletion(located)
            report.batches = await self._commit_plan(plan, EntityKind.KNOT, knot_id)
            return report

        return await self._run("delete_knot", session, run, entity_id=knot_id)

    # =========================================================================
    # SPOT <-> KNOT LINKS
    # =========================================================================

    async def add_spot_to_knot(
        self,
        session: ActingSession | None,
        spot_id: str,
        knot_id: str,
        *,
        spot_group_id: str | None = None,
        knot_group_id: str | None = None,
    ) -> Result[None]:
        async def run(actor: ActingSession) -> None:
            spot = await self._locator.require(EntityKind.SPOT, spot_id, actor.user_id, group_id=spot_group_id)
            knot = await self._locator.require(EntityKind.KNOT, knot_id, actor.user_id, group_id=knot_group_id)
            await self._commit(link_spot_knot(spot.copies, knot.copies))

        return await self._run("add_spot_to_knot", session, run, entity_id=spot_id, knot_id=knot_id)

    async def remove_spot_from_knot(
        self,
        session: ActingSession | None,
        spot_id: str,
        knot_id: str,
        *,
        spot_group_id: str | None = None,
        knot_group_id: str | None = None,
    ) -> Result[None]:
        """Unlink both sides. A missing Spot only has its id stripped from the Knot."""

        async def run(actor: ActingSession) -> None:
            knot = await self._locator.require(EntityKind.KNOT, knot_id, actor.user_id, group_id=knot_group_id)
            spot = await self._locator.locate(EntityKind.SPOT, spot_id, actor.user_id, group_id=spot_group_id)
            if spot is None:
                log.info("dangling_spot_unlinked", spot_id=spot_id, knot_id=knot_id)
                await self._commit(toggle_member(knot.copies, KNOT_SPOTS, spot_id, False))
                return
            await self._commit(unlink_spot_knot(spot.copies, knot.copies))

        return await self._run("remove_spot_from_knot", session, run, entity_id=spot_id, knot_id=knot_id)

    # =========================================================================
    # SOCIAL
    # =========================================================================

    async def toggle_like(
        self,
        session: ActingSession | None,
        spot_id: str,
        *,
        owner_id: str | None = None,
        group_id: str | None = None,
    ) -> Result[bool]:
        """Like or unlike a Spot. Returns whether the actor now likes it."""

        async def run(actor: ActingSession) -> bool:
            located = await self._locator.require(
                EntityKind.SPOT, spot_id, actor.user_id, owner_id=owner_id, group_id=group_id
            )
            spot: Spot = located.entity  # type: ignore[assignment]
            liked = actor.user_id not in spot.liker_ids
            await self._commit(toggle_member(located.copies, SPOT_LIKES, actor.user_id, liked))
            if liked and spot.owner_id != actor.user_id:
                await self._notify(
                    actor,
                    spot.owner_id,
                    NotificationKind.LIKE,
                    f"{actor.username} liked your spot {spot.tag}",
                    spot=spot,
                )
            return liked

        return await self._run("toggle_like", session, run, entity_id=spot_id)

    async def add_comment(
        self,
        session: ActingSession | None,
        spot_id: str,
        text: str,
        *,
        owner_id: str | None = None,
        group_id: str | None = None,
    ) -> Result[Comment]:
        """Append a comment and bump ``commentCount`` on every copy in one batch."""

        async def run(actor: ActingSession) -> Comment:
            located = await self._locator.require(
                EntityKind.SPOT, spot_id, actor.user_id, owner_id=owner_id, group_id=group_id
            )
            spot: Spot = located.entity  # type: ignore[assignment]
            comment = _build(
                Comment,
                id=self._store.new_id(),
                spot_id=spot_id,
                user_id=actor.user_id,
                username=actor.username,
                text=text,
            )
            await self._commit(
                [
                    Write.set(self._paths.comments(spot_id), comment.id, encode(comment)),
                    *increment_field(located.copies, COMMENT_COUNT, 1),
                ]
            )
            if spot.owner_id != actor.user_id:
                await self._notify(
                    actor,
                    spot.owner_id,
                    NotificationKind.COMMENT,
                    f"{actor.username} commented on your spot {spot.tag}",
                    spot=spot,
                )
            return comment

        return await self._run("add_comment", session, run, entity_id=spot_id)

    async def toggle_follow(self, session: ActingSession | None, user_id: str) -> Result[bool]:
        """Follow or unfollow ``user_id``. Returns whether the actor now follows them."""

        async def run(actor: ActingSession) -> bool:
            if user_id == actor.user_id:
                raise ValidationError("users cannot follow themselves", field="user_id", value=user_id)
            if await self._locator.profile(user_id) is None:
                raise NotFoundError.for_entity(EntityKind.USER.value, user_id)
            me = await self._locator.profile(actor.user_id)
            following = me is None or user_id not in me.following
            await self._commit(follow_edge(self._paths, actor.user_id, user_id, following))
            return following

        return await self._run("toggle_follow", session, run, entity_id=user_id)

    async def remove_tag(
        self,
        session: ActingSession | None,
        spot_id: str,
        *,
        tag: str | None = None,
        owner_id: str | None = None,
        group_id: str | None = None,
    ) -> Result[None]:
        """Remove a profile tag (the actor's own by default) from a Spot."""

        async def run(actor: ActingSession) -> None:
            profile_tag = tag if tag is not None else actor.profile_tag
            if not profile_tag:
                raise ValidationError("no profile tag to remove", field="tag")
            located = await self._locator.require(
                EntityKind.SPOT, spot_id, actor.user_id, owner_id=owner_id, group_id=group_id
            )
            await self._commit(remove_profile_tag(located.copies, profile_tag))

        return await self._run("remove_tag", session, run, entity_id=spot_id)

    async def share_spot(
        self,
        session: ActingSession | None,
        spot_id: str,
        recipient_ids: Iterable[str],
        *,
        owner_id: str | None = None,
        group_id: str | None = None,
    ) -> Result[list[Notification]]:
        """Send share notifications for a Spot; the shares are the primary write."""

        async def run(actor: ActingSession) -> list[Notification]:
            recipients = [r for r in dict.fromkeys(recipient_ids) if r and r != actor.user_id]
            if not recipients:
                raise ValidationError("no recipients to share with", field="recipient_ids")
            located = await self._locator.require(
                EntityKind.SPOT, spot_id, actor.user_id, owner_id=owner_id, group_id=group_id
            )
            spot: Spot = located.entity  # type: ignore[assignment]
            notifications = [
                self._notification(
                    actor,
                    recipient,
                    NotificationKind.SHARE,
                    f"{actor.username} shared a spot with you: {spot.tag}",
                    spot=spot,
                )
                for recipient in recipients
            ]
            plan = WritePlan().add(Phase.PRIMARY, *(self._notification_write(n) for n in notifications))
            await self._commit_plan(plan, EntityKind.SPOT, spot_id)
            return notifications

        return await self._run("share_spot", session, run, entity_id=spot_id)

    # =========================================================================
    # GROUPS
    # =========================================================================

    async def create_group(self, session: ActingSession | None, draft: GroupDraft) -> Result[Group]:
        async def run(actor: ActingSession) -> Group:
            group = _build(
                Group,
                id=self._store.new_id(),
                name=draft.name,
                description=draft.description,
                profile_image=draft.profile_image,
                creator_id=actor.user_id,
                members=list(dict.fromkeys([actor.user_id, *draft.member_ids])),
            )
            await self._commit([Write.set(self._paths.groups(), group.id, encode(group))])
            await self._invite(actor, group, [m for m in group.members if m != actor.user_id])
            return group

        return await self._run("create_group", session, run)

    async def update_group(
        self, session: ActingSession | None, group_id: str, changes: GroupChanges
    ) -> Result[Group]:
        """Edit a group. Removing members never moves content already placed in it."""

        async def run(actor: ActingSession) -> Group:
            group = await self._locator.require_group(group_id)
            fields = changes.changed()
            members = fields.pop("member_ids", None)
            if members is not None and group.creator_id not in members:
                raise ConstraintError(
                    "the group creator cannot be removed", field="members", value=group.creator_id
                ).with_context(entity_kind=EntityKind.GROUP.value, entity_id=group_id)
            added = [m for m in (members or []) if m not in group.members]
            removed = [m for m in group.members if m not in members] if members is not None else []

            updated = _rebuild(group, {**fields, "members": members if members is not None else group.members})
            writes = []
            attributes = _diff(encode(group), encode(updated))
            attributes.pop("members", None)
            if attributes:
                writes.append(Write.update(self._paths.groups(), group_id, attributes))
            if added:
                writes.append(Write.update(self._paths.groups(), group_id, {"members": ArrayUnion(added)}))
            if removed:
                writes.append(Write.update(self._paths.groups(), group_id, {"members": ArrayRemove(removed)}))
                log.info("group_members_removed", group_id=group_id, removed=removed, content_evicted=False)
            await self._commit(writes)
            await self._invite(actor, updated, added)
            return updated

        return await self._run("update_group", session, run, entity_id=group_id)

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    async def mark_notification_read(self, session: ActingSession | None, notification_id: str) -> Result[None]:
        async def run(actor: ActingSession) -> None:
            collection = self._paths.notifications(actor.user_id)
            if await self._store.get(collection, notification_id) is None:
                raise NotFoundError.for_entity(EntityKind.NOTIFICATION.value, notification_id)
            await self._commit([Write.update(collection, notification_id, {"read": True})])

        return await self._run("mark_notification_read", session, run, entity_id=notification_id)

    async def mark_all_notifications_read(self, session: ActingSession | None) -> Result[int]:
        async def run(actor: ActingSession) -> int:
            collection = self._paths.notifications(actor.user_id)
            unread = await self._store.query(Query(collection).where("read", "==", False))
            plan = WritePlan().add(Phase.PRIMARY, *(Write.update(collection, d.id, {"read": True}) for d in unread))
            await self._commit_plan(plan, EntityKind.NOTIFICATION, actor.user_id)
            return len(unread)

        return await self._run("mark_all_notifications_read", session, run)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _run(
        self,
        operation: str,
        session: ActingSession | None,
        fn: Callable[[ActingSession], Awaitable[T]],
        **context: Any,
    ) -> Result[T]:
        try:
            actor = require_active(session)
        except KnotSyncError as e:
            e.with_context(operation=operation)
            log.warning("operation_rejected", operation=operation, error=e.message)
            return Err(e)

        with LogContext(operation=operation, user_id=actor.user_id):
            result = await try_result_async(lambda: fn(actor))
            match result:
                case Ok():
                    log.info("operation_completed", **context)
                case Err(error):
                    error.with_context(operation=operation, user_id=actor.user_id)
                    log.warning("operation_failed", error_type=type(error).__name__, error=error.message, **context)
            return result

    async def _create(self, kind: EntityKind, entity: Spot | Knot) -> None:
        payload = encode(entity)
        scope_writes = resolve_placement(self._paths, kind, entity.owner_id, None, entity.placement, payload)
        await self._commit([sw.to_write(entity.id) for sw in scope_writes])

    async def _edit(self, kind: EntityKind, located: Located, fields: dict[str, Any]) -> Spot | Knot:
        old = located.entity
        if fields.get("group_id") and fields["group_id"] != old.group_id:
            await self._locator.require_group(fields["group_id"])
        new = _rebuild(old, {**fields, "updated_at": utc_now()})
        new_doc = encode(new)
        changes = _diff(encode(old), new_doc)

        writes = []
        for sw in resolve_placement(self._paths, kind, old.owner_id, old.placement, new.placement, new_doc):
            if sw.op == ScopeOp.UPSERT and sw.existed and sw.scope not in located.copies.scopes:
                # Expected copy is missing; recreate it whole.
                writes.append(Write.set(sw.scope, old.id, new_doc))
            elif sw.op == ScopeOp.DELETE and sw.scope not in located.copies.scopes:
                continue
            else:
                writes.append(sw.to_write(old.id, changes))
        live = self._paths.live_scopes(kind, old.owner_id, new.placement)
        writes += [Write.delete(scope, old.id) for scope in located.stray if scope not in live]
        if old.placement != new.placement:
            log.info(
                "entity_moved",
                entity_kind=kind.value,
                entity_id=old.id,
                from_group=old.group_id,
                to_group=new.group_id,
                public=new.placement.has_public_copy,
            )
        await self._commit(writes)
        return new

    async def _commit(self, writes: Sequence[Write]) -> None:
        await self._store.commit(list(writes))

    async def _commit_plan(self, plan: WritePlan, kind: EntityKind, entity_id: str) -> int:
        """Commit ``plan`` batch by batch. Returns the number of batches."""
        batches = plan.batches(self._store.max_batch_size)
        for index, batch in enumerate(batches):
            try:
                await self._store.commit(batch)
            except StoreError as e:
                if index == 0:
                    raise
                error = PartialCascadeFailure(
                    f"{kind.value} {entity_id}: batch {index + 1} of {len(batches)} failed",
                    committed_batches=index,
                    total_batches=len(batches),
                    cause=e,
                ).with_context(entity_kind=kind.value, entity_id=entity_id, scope=batch[0].collection)
                log.error("cascade_partially_applied", **error.to_dict())
                raise error from e
        if len(batches) > 1:
            log.info("plan_committed", entity_kind=kind.value, entity_id=entity_id, batches=len(batches))
        return len(batches)

    def _notification(
        self,
        actor: ActingSession,
        recipient_id: str,
        kind: NotificationKind,
        message: str,
        *,
        spot: Spot | None = None,
        group: Group | None = None,
    ) -> Notification:
        return Notification(
            id=self._store.new_id(),
            recipient_id=recipient_id,
            kind=kind,
            from_user_id=actor.user_id,
            from_username=actor.username,
            spot_id=spot.id if spot else None,
            spot_tag=spot.tag if spot else None,
            group_id=group.id if group else None,
            group_name=group.name if group else None,
            message=message,
            image_url=(spot.cover_image if spot else group.profile_image if group else "") or actor.profile_image,
        )

    def _notification_write(self, notification: Notification) -> Write:
        return Write.set(self._paths.notifications(notification.recipient_id), notification.id, encode(notification))

    async def _notify(
        self,
        actor: ActingSession,
        recipient_id: str,
        kind: NotificationKind,
        message: str,
        *,
        spot: Spot | None = None,
        group: Group | None = None,
    ) -> bool:
        notification = self._notification(actor, recipient_id, kind, message, spot=spot, group=group)
        return await self._send([notification])

    async def _invite(self, actor: ActingSession, group: Group, member_ids: Sequence[str]) -> None:
        if member_ids:
            await self._send(
                [
                    self._notification(
                        actor, m, NotificationKind.GROUP_INVITE, f"{actor.username} added you to {group.name}", group=group
                    )
                    for m in member_ids
                ]
            )

    async def _send(self, notifications: Sequence[Notification]) -> bool:
        """Best-effort notification write; failures are logged and dropped."""
        plan = WritePlan().add(Phase.PRIMARY, *(self._notification_write(n) for n in notifications))
        try:
            for batch in plan.batches(self._store.max_batch_size):
                await self._store.commit(batch)
        except StoreError as e:
            log.warning(
                "notification_failed",
                kind=notifications[0].kind.value,
                recipients=len(notifications),
                error=str(e),
            )
            return False
        return True


__all__ = ["SyncEngine"]
