"""CommentRecord model — append-only discussion attached to a reviewable item."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, event, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from chapterdesk.models.audit import refuse_mutation
from chapterdesk.models.base import Base, IdentityMixin, utcnow
from chapterdesk.models.enums import CommentKind, ThreadKind


class CommentRecord(IdentityMixin, Base):
    """One entry in a content item's or submission's review thread."""

    __tablename__ = "comments"
    __table_args__ = (Index("ix_comments_thread_created", "thread_id", "created_at"),)

    # Thread target: a content item or an external submission
    thread_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    thread_kind: Mapped[str] = mapped_column(
        String(20), default=ThreadKind.CONTENT.value, nullable=False
    )

    author_id: Mapped[str] = mapped_column(String(100), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), default=CommentKind.GENERAL.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<CommentRecord thread={self.thread_id} kind={self.kind}>"


event.listen(CommentRecord, "before_update", refuse_mutation)
event.listen(CommentRecord, "before_delete", refuse_mutation)
