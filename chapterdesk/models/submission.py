"""Submission model — an externally uploaded article awaiting editorial review."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from chapterdesk.models.base import Base, TimestampMixin
from chapterdesk.models.enums import SubmissionStatus


class Submission(TimestampMixin, Base):
    """A community member's submission; the file itself lives in the media store."""

    __tablename__ = "submissions"

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    author_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    file_reference: Mapped[str | None] = mapped_column(String(500), comment="Opaque media store key")

    status: Mapped[str] = mapped_column(
        String(20), default=SubmissionStatus.PENDING.value, nullable=False, index=True
    )
    admin_notes: Mapped[str | None] = mapped_column(String(2000))

    def __repr__(self) -> str:
        return f"<Submission title={self.title!r} status={self.status}>"
