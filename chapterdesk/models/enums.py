"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization; columns store the `.value`.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Principal role — the only input to capability checks."""

    RESTRICTED = "restricted"  # editors: every change is staged
    UNRESTRICTED = "unrestricted"  # admins: write directly, review
    SUPERUSER = "superuser"


class PublicationState(str, Enum):
    """Whether a content item is visible on the public site."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ReviewState(str, Enum):
    """Approval workflow state, independent of PublicationState."""

    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CommentKind(str, Enum):
    """Comment classification on a review thread."""

    GENERAL = "general"
    FEEDBACK = "feedback"
    INTERNAL = "internal"  # reviewers only
    STATUS_CHANGE = "status_change"  # system-generated by transitions


class ThreadKind(str, Enum):
    """What a comment thread is attached to."""

    CONTENT = "content"
    SUBMISSION = "submission"


class SubmissionStatus(str, Enum):
    """Lifecycle of an externally uploaded submission."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestFilter(str, Enum):
    """Editor dashboard filter over their own review requests."""

    PENDING = "pending"
    REJECTED = "rejected"
    COMPLETED = "completed"
    ALL = "all"
