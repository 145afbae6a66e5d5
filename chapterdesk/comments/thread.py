"""Comment threads on reviewable items — append-only discussion.

Content items and external submissions share one comments table, keyed by
(thread_kind, thread_id). Humans add general, feedback, and internal
comments; status_change comments are written only by workflow transitions
through `record_status_change`, inside the transition's own transaction.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chapterdesk.access.capabilities import require, require_known_role
from chapterdesk.config import settings
from chapterdesk.errors import NotFound, OperationFailed, ValidationFailed
from chapterdesk.events import emit
from chapterdesk.models.comment import CommentRecord
from chapterdesk.models.content import ContentItem
from chapterdesk.models.enums import CommentKind, ThreadKind
from chapterdesk.models.submission import Submission
from chapterdesk.schemas.content import Principal
from chapterdesk.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

THREAD_MODELS: dict[ThreadKind, type[ContentItem] | type[Submission]] = {
    ThreadKind.CONTENT: ContentItem,
    ThreadKind.SUBMISSION: Submission,
}


def _clean_body(body: str | None) -> str:
    text = (body or "").strip()
    if not text:
        msg = "Comment body must not be empty"
        raise ValidationFailed(msg)
    return text


def _parse_kind(kind: CommentKind | str, enum: type[CommentKind] | type[ThreadKind]) -> CommentKind | ThreadKind:
    try:
        return enum(kind)
    except ValueError:
        msg = f"Unknown {enum.__name__}: {kind!r}"
        raise ValidationFailed(msg) from None


def record_status_change(
    db: AsyncSession,
    thread_id: uuid.UUID,
    thread_kind: ThreadKind,
    body: str,
    author_id: str | None = None,
) -> CommentRecord:
    """Stage a system status_change comment in the caller's transaction.

    Not committed here: the transition that produced it commits (or rolls
    back) both together.
    """
    record = CommentRecord(
        thread_id=thread_id,
        thread_kind=thread_kind.value,
        author_id=author_id or settings.review.status_comment_author,
        body=_clean_body(body),
        kind=CommentKind.STATUS_CHANGE.value,
    )
    db.add(record)
    return record


class CommentThread:
    """Stateless comment operations — AsyncSession passed per call."""

    async def add(
        self,
        db: AsyncSession,
        principal: Principal,
        thread_id: uuid.UUID,
        thread_kind: ThreadKind | str,
        body: str,
        kind: CommentKind | str = CommentKind.GENERAL,
    ) -> CommentRecord:
        """Append a human-authored comment to a thread."""
        comment_kind = _parse_kind(kind, CommentKind)
        target_kind = _parse_kind(thread_kind, ThreadKind)
        if comment_kind is CommentKind.STATUS_CHANGE:
            msg = "status_change comments are produced by workflow transitions only"
            raise ValidationFailed(msg)
        text = _clean_body(body)

        require_known_role(principal)
        if comment_kind is CommentKind.INTERNAL:
            require(principal, "can_review")

        target = await db.get(THREAD_MODELS[target_kind], thread_id)
        if target is None:
            msg = f"No {target_kind.value} thread {thread_id}"
            raise NotFound(msg)

        record = CommentRecord(
            thread_id=thread_id,
            thread_kind=target_kind.value,
            author_id=principal.id,
            body=text,
            kind=comment_kind.value,
        )
        db.add(record)
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Failed to add comment to %s %s", target_kind.value, thread_id)
            msg = "Comment could not be added"
            raise OperationFailed(msg) from exc

        await emit(SystemEvent(
            event_type=EventType.COMMENT_ADDED,
            actor_id=principal.id,
            actor_role=principal.role,
            target_id=str(thread_id),
            target_kind=target_kind.value,
            data={"kind": comment_kind.value},
            source_module="comments.thread",
        ))

        logger.info(
            "Comment added: thread=%s kind=%s author=%s",
            thread_id,
            comment_kind.value,
            principal.id,
        )
        return record

    async def list_for(
        self,
        db: AsyncSession,
        thread_id: uuid.UUID,
        include_internal: bool = True,
    ) -> list[CommentRecord]:
        """Return a thread oldest-first."""
        query = select(CommentRecord).where(CommentRecord.thread_id == thread_id)
        if not include_internal:
            query = query.where(CommentRecord.kind != CommentKind.INTERNAL.value)
        result = await db.execute(
            query.order_by(CommentRecord.created_at.asc(), CommentRecord.id.asc())
        )
        return list(result.scalars().all())


# Module-level singleton
comment_thread = CommentThread()
