"""Approval state machine for shared content.

Direct writers (unrestricted, superuser) change live fields immediately.
Restricted editors stage a patch instead; a reviewer later approves it
(merge + publish) or rejects it (discard + reason).

Every transition is a single conditional write: the UPDATE/DELETE matches the
item id, the review_state seen when the item was read, and the item revision.
If another request got there first nothing matches, the transaction is rolled
back and the caller gets PreconditionFailed. Events, and through them audit
records, go out only after the commit.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from chapterdesk.access.capabilities import is_restricted, require, require_known_role
from chapterdesk.comments.thread import record_status_change
from chapterdesk.config import settings
from chapterdesk.errors import (
    NotFound,
    OperationFailed,
    PermissionDenied,
    PreconditionFailed,
    ValidationFailed,
)
from chapterdesk.events import emit
from chapterdesk.models.content import ContentItem
from chapterdesk.models.enums import PublicationState, RequestFilter, ReviewState, ThreadKind
from chapterdesk.review.diff import apply_patch, compute_diff, dump_patch, parse_patch, summarize
from chapterdesk.schemas.content import ContentFields, Principal
from chapterdesk.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

PUBLICATION_EVENTS: dict[PublicationState, EventType] = {
    PublicationState.PUBLISHED: EventType.CONTENT_PUBLISHED,
    PublicationState.DRAFT: EventType.CONTENT_UNPUBLISHED,
    PublicationState.ARCHIVED: EventType.CONTENT_ARCHIVED,
}

REQUEST_FILTER_STATES: dict[RequestFilter, list[str]] = {
    RequestFilter.PENDING: [ReviewState.PENDING.value],
    RequestFilter.REJECTED: [ReviewState.REJECTED.value],
    RequestFilter.COMPLETED: [ReviewState.APPROVED.value],
}


def _now() -> datetime:
    return datetime.now(UTC)


def proposed_values(proposed: ContentFields | Mapping[str, Any]) -> dict[str, Any]:
    """Validate a proposal and return only the fields the caller set."""
    if not isinstance(proposed, ContentFields):
        try:
            proposed = ContentFields.model_validate(dict(proposed))
        except ValidationError as exc:
            msg = f"Invalid content fields: {exc.errors(include_url=False)}"
            raise ValidationFailed(msg) from None

    values = proposed.model_dump(exclude_unset=True)
    if "title" in values and not (values["title"] or "").strip():
        msg = "Title must not be empty"
        raise ValidationFailed(msg)
    for list_field in ("tags", "image_refs"):
        if list_field in values and values[list_field] is None:
            values[list_field] = []
    if "body" in values and values["body"] is None:
        values["body"] = ""
    if "featured" in values and values["featured"] is None:
        values["featured"] = False
    return values


class ContentWorkflow:
    """Stateless workflow operations — AsyncSession passed per call."""

    # ── Reads ────────────────────────────────────────────────────────

    async def get(self, db: AsyncSession, item_id: uuid.UUID) -> ContentItem:
        item = await db.get(ContentItem, item_id)
        if item is None:
            msg = f"Content item {item_id} not found"
            raise NotFound(msg)
        return item

    async def list_by_review_state(
        self,
        db: AsyncSession,
        review_state: ReviewState | str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ContentItem]:
        """Review queue, most recently touched first."""
        state = ReviewState(review_state)
        result = await db.execute(
            select(ContentItem)
            .where(ContentItem.review_state == state.value)
            .order_by(ContentItem.updated_at.desc())
            .offset(max(offset, 0))
            .limit(limit or settings.review.pending_queue_page_size)
        )
        return list(result.scalars().all())

    async def pending_count(self, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count(ContentItem.id)).where(
                ContentItem.review_state == ReviewState.PENDING.value
            )
        )
        return result.scalar() or 0

    async def requests_by_author(
        self,
        db: AsyncSession,
        author_id: str,
        request_filter: RequestFilter | str = RequestFilter.PENDING,
    ) -> list[ContentItem]:
        """An editor's own change requests, newest first."""
        chosen = RequestFilter(request_filter)
        query = select(ContentItem).where(ContentItem.staged_by == author_id)
        if chosen in REQUEST_FILTER_STATES:
            query = query.where(ContentItem.review_state.in_(REQUEST_FILTER_STATES[chosen]))
        result = await db.execute(query.order_by(ContentItem.updated_at.desc()))
        return list(result.scalars().all())

    # ── Transitions ──────────────────────────────────────────────────

    async def create(
        self,
        db: AsyncSession,
        principal: Principal,
        fields: ContentFields | Mapping[str, Any],
    ) -> ContentItem:
        """Insert a new item in draft / none."""
        require_known_role(principal)
        values = proposed_values(fields)
        if not values.get("title"):
            msg = "A new content item needs a title"
            raise ValidationFailed(msg)

        restricted = is_restricted(principal)
        now = _now()
        item = ContentItem(
            id=uuid.uuid4(),
            title=values["title"],
            body=values.get("body", ""),
            excerpt=values.get("excerpt"),
            tags=values.get("tags", []),
            category=values.get("category"),
            featured=values.get("featured", False),
            image_refs=values.get("image_refs", []),
            publication_state=PublicationState.DRAFT.value,
            review_state=ReviewState.NONE.value,
            pending_patch=None,
            change_summary=None,
            rejection_reason=None,
            requires_review=restricted,
            created_by=principal.id,
            updated_by=principal.id,
            staged_by=None,
            published_at=None,
            revision=1,
            created_at=now,
            updated_at=now,
        )
        db.add(item)
        await self._commit(db, "create")

        await self._emit(
            EventType.CONTENT_CREATED,
            principal,
            item,
            title=item.title,
            audit=not restricted,
        )
        logger.info("Content created: id=%s by=%s restricted=%s", item.id, principal.id, restricted)
        return item

    async def stage(
        self,
        db: AsyncSession,
        principal: Principal,
        item_id: uuid.UUID,
        proposed: ContentFields | Mapping[str, Any],
    ) -> ContentItem:
        """Park a restricted editor's change as the item's pending patch.

        A new stage while already pending replaces the previous patch. The
        patch is always computed against live fields, which do not move
        while a patch is pending.
        """
        require_known_role(principal)
        if not is_restricted(principal):
            raise PermissionDenied(principal.id, "stage")

        values = proposed_values(proposed)
        item = await self.get(db, item_id)
        patch = compute_diff(item, values)
        if not patch and item.publication_state == PublicationState.PUBLISHED.value:
            msg = "Proposed change does not modify any field"
            raise ValidationFailed(msg)

        summary = summarize(patch)
        await self._transition(
            db,
            item,
            expected=item.review_state,
            values={
                "pending_patch": dump_patch(patch),
                "review_state": ReviewState.PENDING.value,
                "requires_review": True,
                "change_summary": summary,
                "rejection_reason": None,
                "updated_by": principal.id,
                "staged_by": principal.id,
            },
        )

        await self._emit(
            EventType.CONTENT_STAGED,
            principal,
            item,
            fields=list(patch),
            summary=summary,
        )
        logger.info("Change staged: id=%s by=%s (%s)", item.id, principal.id, summary)
        return item

    async def approve(
        self,
        db: AsyncSession,
        principal: Principal,
        item_id: uuid.UUID,
    ) -> ContentItem:
        """Merge the pending patch into live fields and publish."""
        require(principal, "can_review")
        item = await self.get(db, item_id)
        self._expect_pending(item, "approve")

        patch = parse_patch(item.pending_patch)
        merged = apply_patch(item, patch, check_conflicts=True)

        now = _now()
        values: dict[str, Any] = {
            **merged,
            "publication_state": PublicationState.PUBLISHED.value,
            "review_state": ReviewState.APPROVED.value,
            "pending_patch": None,
            "rejection_reason": None,
            "requires_review": False,
            "updated_by": principal.id,
        }
        if item.published_at is None:
            values["published_at"] = now

        summary = item.change_summary or summarize(patch)
        record_status_change(
            db,
            item.id,
            ThreadKind.CONTENT,
            f"Status changed to: Approved ({summary})",
        )
        await self._transition(db, item, expected=ReviewState.PENDING.value, values=values)

        await self._emit(
            EventType.CONTENT_APPROVED,
            principal,
            item,
            fields=list(patch),
            summary=summary,
            staged_by=item.staged_by,
        )
        logger.info("Change approved: id=%s by=%s (%s)", item.id, principal.id, summary)
        return item

    async def reject(
        self,
        db: AsyncSession,
        principal: Principal,
        item_id: uuid.UUID,
        reason: str | None = None,
    ) -> ContentItem:
        """Discard the pending patch; live fields stay as they are."""
        require(principal, "can_review")
        item = await self.get(db, item_id)
        self._expect_pending(item, "reject")

        patch = parse_patch(item.pending_patch)
        cleaned = (reason or "").strip() or None

        body = "Status changed to: Rejected"
        if cleaned:
            body += f"\n\nReason: {cleaned}"
        record_status_change(db, item.id, ThreadKind.CONTENT, body)

        await self._transition(
            db,
            item,
            expected=ReviewState.PENDING.value,
            values={
                "review_state": ReviewState.REJECTED.value,
                "rejection_reason": cleaned,
                "pending_patch": None,
                "requires_review": False,
                "updated_by": principal.id,
            },
        )

        await self._emit(
            EventType.CONTENT_REJECTED,
            principal,
            item,
            fields=list(patch),
            reason=cleaned,
            staged_by=item.staged_by,
        )
        logger.info("Change rejected: id=%s by=%s", item.id, principal.id)
        return item

    async def write_direct(
        self,
        db: AsyncSession,
        principal: Principal,
        item_id: uuid.UUID,
        proposed: ContentFields | Mapping[str, Any],
    ) -> ContentItem:
        """Replace live fields immediately. Any pending patch is discarded."""
        require(principal, "can_write_direct")
        values = proposed_values(proposed)
        item = await self.get(db, item_id)

        changed = list(compute_diff(item, values))
        discarded = item.review_state == ReviewState.PENDING.value

        await self._transition(
            db,
            item,
            expected=item.review_state,
            values={
                **values,
                "review_state": ReviewState.NONE.value,
                "pending_patch": None,
                "change_summary": None,
                "rejection_reason": None,
                "requires_review": False,
                "updated_by": principal.id,
            },
        )

        await self._emit(
            EventType.CONTENT_UPDATED,
            principal,
            item,
            fields=changed,
            discarded_pending=discarded,
        )
        logger.info("Content written directly: id=%s by=%s fields=%s", item.id, principal.id, changed)
        return item

    async def delete(
        self,
        db: AsyncSession,
        principal: Principal,
        item_id: uuid.UUID,
    ) -> None:
        """Remove an item permanently."""
        require(principal, "can_delete")
        item = await self.get(db, item_id)

        stmt = (
            delete(ContentItem)
            .where(
                ContentItem.id == item.id,
                ContentItem.revision == item.revision,
            )
            .execution_options(synchronize_session=False)
        )
        await self._execute_conditional(db, stmt, item, "delete")

        await self._emit(EventType.CONTENT_DELETED, principal, item, title=item.title)
        logger.info("Content deleted: id=%s by=%s", item.id, principal.id)

    async def set_publication_state(
        self,
        db: AsyncSession,
        principal: Principal,
        item_id: uuid.UUID,
        state: PublicationState | str,
    ) -> ContentItem:
        """Publish, unpublish, or archive live content."""
        require(principal, "can_write_direct")
        try:
            target = PublicationState(state)
        except ValueError:
            msg = f"Unknown publication state: {state!r}"
            raise ValidationFailed(msg) from None

        item = await self.get(db, item_id)
        if item.publication_state == target.value:
            return item
        if target is PublicationState.PUBLISHED and item.review_state == ReviewState.PENDING.value:
            msg = "Cannot publish while a change is pending review"
            raise PreconditionFailed(msg)

        previous = item.publication_state
        values: dict[str, Any] = {"publication_state": target.value, "updated_by": principal.id}
        if target is PublicationState.PUBLISHED and item.published_at is None:
            values["published_at"] = _now()

        await self._transition(db, item, expected=item.review_state, values=values)

        await self._emit(PUBLICATION_EVENTS[target], principal, item, previous=previous)
        logger.info("Publication state %s -> %s: id=%s", previous, target.value, item.id)
        return item

    async def edit(
        self,
        db: AsyncSession,
        principal: Principal,
        item_id: uuid.UUID,
        proposed: ContentFields | Mapping[str, Any],
    ) -> ContentItem:
        """Single entry point for author edits: write directly or stage by role."""
        require_known_role(principal)
        if is_restricted(principal):
            return await self.stage(db, principal, item_id, proposed)
        return await self.write_direct(db, principal, item_id, proposed)

    # ── Internals ────────────────────────────────────────────────────

    @staticmethod
    def _expect_pending(item: ContentItem, operation: str) -> None:
        if item.review_state != ReviewState.PENDING.value:
            msg = f"Cannot {operation} item {item.id}: review state is {item.review_state}, not pending"
            raise PreconditionFailed(msg)

    async def _transition(
        self,
        db: AsyncSession,
        item: ContentItem,
        expected: str,
        values: dict[str, Any],
    ) -> None:
        """Conditionally write `values`, then mirror them onto `item`."""
        values = {**values, "revision": item.revision + 1, "updated_at": _now()}
        stmt = (
            update(ContentItem)
            .where(
                ContentItem.id == item.id,
                ContentItem.review_state == expected,
                ContentItem.revision == item.revision,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self._execute_conditional(db, stmt, item, "update")

        # The row is committed; record the new values without marking the
        # instance dirty, so nothing is flushed a second time.
        for key, value in values.items():
            set_committed_value(item, key, value)

    async def _execute_conditional(
        self,
        db: AsyncSession,
        stmt: Any,
        item: ContentItem,
        operation: str,
    ) -> None:
        # A rollback expires `item`; after it only these copies may be read.
        item_id, revision, review_state = item.id, item.revision, item.review_state
        try:
            result = await db.execute(stmt)
            if result.rowcount != 1:
                await db.rollback()
                logger.info(
                    "Conditional %s lost: id=%s revision=%s state=%s",
                    operation,
                    item_id,
                    revision,
                    review_state,
                )
                msg = f"Content item {item_id} changed concurrently; refetch and retry"
                raise PreconditionFailed(msg)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Content %s failed for %s", operation, item_id)
            msg = f"Content {operation} failed"
            raise OperationFailed(msg) from exc

    async def _commit(self, db: AsyncSession, operation: str) -> None:
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Content %s failed", operation)
            msg = f"Content {operation} failed"
            raise OperationFailed(msg) from exc

    async def _emit(
        self,
        event_type: EventType,
        principal: Principal,
        item: ContentItem,
        **data: Any,
    ) -> None:
        await emit(SystemEvent(
            event_type=event_type,
            actor_id=principal.id,
            actor_role=principal.role,
            target_id=str(item.id),
            target_kind=ThreadKind.CONTENT.value,
            data=data,
            source_module="review.workflow",
        ))


# Module-level singleton
content_workflow = ContentWorkflow()
