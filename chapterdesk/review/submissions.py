"""Review of externally uploaded submissions.

The upload itself (file transport, storage) happens elsewhere; this module
records the submission and moves it through pending → reviewed → approved /
rejected, leaving a status_change comment on its thread each time.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from chapterdesk.access.capabilities import require
from chapterdesk.comments.thread import record_status_change
from chapterdesk.config import settings
from chapterdesk.errors import NotFound, OperationFailed, PreconditionFailed, ValidationFailed
from chapterdesk.events import emit
from chapterdesk.models.enums import SubmissionStatus, ThreadKind
from chapterdesk.models.submission import Submission
from chapterdesk.schemas.content import Principal
from chapterdesk.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


def status_comment(status: SubmissionStatus, notes: str | None) -> str:
    """e.g. "Status changed to: Approved\\n\\nNotes: lovely piece"."""
    text = f"Status changed to: {status.value.capitalize()}"
    if notes:
        text += f"\n\nNotes: {notes}"
    return text


class SubmissionReview:
    """Stateless submission operations — AsyncSession passed per call."""

    async def get(self, db: AsyncSession, submission_id: uuid.UUID) -> Submission:
        submission = await db.get(Submission, submission_id)
        if submission is None:
            msg = f"Submission {submission_id} not found"
            raise NotFound(msg)
        return submission

    async def list_by_status(
        self,
        db: AsyncSession,
        status: SubmissionStatus | str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Submission]:
        """Submissions in `status`, newest first."""
        try:
            wanted = SubmissionStatus(status)
        except ValueError:
            msg = f"Unknown submission status: {status!r}"
            raise ValidationFailed(msg) from None
        result = await db.execute(
            select(Submission)
            .where(Submission.status == wanted.value)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .offset(max(offset, 0))
            .limit(limit or settings.review.pending_queue_page_size)
        )
        return list(result.scalars().all())

    async def receive(
        self,
        db: AsyncSession,
        author_id: str,
        title: str,
        file_reference: str | None = None,
    ) -> Submission:
        """Record a new submission in pending."""
        if not (title or "").strip():
            msg = "Submission title must not be empty"
            raise ValidationFailed(msg)

        now = datetime.now(UTC)
        submission = Submission(
            id=uuid.uuid4(),
            title=title.strip(),
            author_id=author_id,
            file_reference=file_reference,
            status=SubmissionStatus.PENDING.value,
            admin_notes=None,
            created_at=now,
            updated_at=now,
        )
        db.add(submission)
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Failed to record submission from %s", author_id)
            msg = "Submission could not be recorded"
            raise OperationFailed(msg) from exc

        await emit(SystemEvent(
            event_type=EventType.SUBMISSION_RECEIVED,
            actor_id=author_id,
            target_id=str(submission.id),
            target_kind=ThreadKind.SUBMISSION.value,
            data={"title": submission.title},
            source_module="review.submissions",
        ))
        return submission

    async def update_status(
        self,
        db: AsyncSession,
        principal: Principal,
        submission_id: uuid.UUID,
        status: SubmissionStatus | str,
        notes: str | None = None,
    ) -> Submission:
        """Move a submission to `status`, with an automatic thread comment."""
        require(principal, "can_review")
        try:
            new_status = SubmissionStatus(status)
        except ValueError:
            msg = f"Unknown submission status: {status!r}"
            raise ValidationFailed(msg) from None

        submission = await self.get(db, submission_id)

        previous = submission.status
        if previous == new_status.value:
            msg = f"Submission {submission_id} is already {previous}"
            raise PreconditionFailed(msg)

        cleaned = (notes or "").strip() or None
        record_status_change(db, submission.id, ThreadKind.SUBMISSION, status_comment(new_status, cleaned))

        values = {
            "status": new_status.value,
            "admin_notes": cleaned if cleaned is not None else submission.admin_notes,
            "updated_at": datetime.now(UTC),
        }
        stmt = (
            update(Submission)
            .where(Submission.id == submission.id, Submission.status == previous)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await db.execute(stmt)
            if result.rowcount != 1:
                await db.rollback()
                msg = f"Submission {submission_id} changed concurrently; refetch and retry"
                raise PreconditionFailed(msg)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Submission status update failed for %s", submission_id)
            msg = "Submission status update failed"
            raise OperationFailed(msg) from exc

        for key, value in values.items():
            set_committed_value(submission, key, value)

        await emit(SystemEvent(
            event_type=EventType.SUBMISSION_STATUS_CHANGED,
            actor_id=principal.id,
            actor_role=principal.role,
            target_id=str(submission.id),
            target_kind=ThreadKind.SUBMISSION.value,
            data={"from_status": previous, "to_status": new_status.value, "notes": cleaned},
            source_module="review.submissions",
        ))
        logger.info(
            "Submission %s: %s -> %s by %s",
            submission.id,
            previous,
            new_status.value,
            principal.id,
        )
        return submission


# Module-level singleton
submission_review = SubmissionReview()
