"""SQLAlchemy ORM models for chapterdesk.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from chapterdesk.models.audit import AuditRecord, ImmutableRecordError
from chapterdesk.models.base import Base
from chapterdesk.models.comment import CommentRecord
from chapterdesk.models.content import ContentItem
from chapterdesk.models.enums import (
    CommentKind,
    PublicationState,
    RequestFilter,
    ReviewState,
    Role,
    SubmissionStatus,
    ThreadKind,
)
from chapterdesk.models.submission import Submission

__all__ = [
    # Base
    "Base",
    # Models
    "ContentItem",
    "AuditRecord",
    "CommentRecord",
    "Submission",
    "ImmutableRecordError",
    # Enums
    "Role",
    "PublicationState",
    "ReviewState",
    "CommentKind",
    "ThreadKind",
    "SubmissionStatus",
    "RequestFilter",
]
