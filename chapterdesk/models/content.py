"""ContentItem model — a piece of shared chapter content under editorial review.

Live fields are what the public site renders. A restricted edit never touches
them; it is parked in `pending_patch` until a reviewer merges or discards it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from chapterdesk.models.base import Base, TimestampMixin
from chapterdesk.models.enums import PublicationState, ReviewState

# Python None is stored as SQL NULL, not JSON null
JsonType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class ContentItem(TimestampMixin, Base):
    """A blog post or page edited through the approval workflow."""

    __tablename__ = "content_items"
    __table_args__ = (
        CheckConstraint(
            "(review_state = 'pending') = (pending_patch IS NOT NULL)",
            name="ck_content_items_pending_patch",
        ),
        CheckConstraint(
            "rejection_reason IS NULL OR review_state = 'rejected'",
            name="ck_content_items_rejection_reason",
        ),
    )

    # Live (published) fields
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    body: Mapped[str] = mapped_column(Text, default="", nullable=False)
    excerpt: Mapped[str | None] = mapped_column(String(1000))
    tags: Mapped[list[str]] = mapped_column(JsonType, default=list, nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), index=True)
    featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    image_refs: Mapped[list[str]] = mapped_column(
        JsonType, default=list, nullable=False, comment="Opaque references owned by the media store"
    )

    # Lifecycle
    publication_state: Mapped[str] = mapped_column(
        String(20), default=PublicationState.DRAFT.value, nullable=False, index=True
    )
    review_state: Mapped[str] = mapped_column(
        String(20), default=ReviewState.NONE.value, nullable=False, index=True
    )

    # Staged change: non-null iff review_state == pending
    pending_patch: Mapped[dict[str, Any] | None] = mapped_column(JsonType)
    change_summary: Mapped[str | None] = mapped_column(String(500))
    rejection_reason: Mapped[str | None] = mapped_column(String(2000))
    requires_review: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Last modified by a restricted principal"
    )

    # Authorship
    created_by: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    updated_by: Mapped[str | None] = mapped_column(String(100))
    staged_by: Mapped[str | None] = mapped_column(
        String(100), index=True, comment="Restricted editor behind the latest staged change"
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Bumped by every committed transition; conditional writes match on it
    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ContentItem id={self.id} publication={self.publication_state} "
            f"review={self.review_state}>"
        )
