"""SystemEvent schema — the event type that flows out of every committed transition.

Subscribers (the audit trail first of all) consume these asynchronously,
after the mutation they describe is durable.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Content lifecycle
    CONTENT_CREATED = "content.created"
    CONTENT_STAGED = "content.staged"
    CONTENT_APPROVED = "content.approved"
    CONTENT_REJECTED = "content.rejected"
    CONTENT_UPDATED = "content.updated"
    CONTENT_DELETED = "content.deleted"
    CONTENT_PUBLISHED = "content.published"
    CONTENT_UNPUBLISHED = "content.unpublished"
    CONTENT_ARCHIVED = "content.archived"

    # Submissions
    SUBMISSION_RECEIVED = "submission.received"
    SUBMISSION_STATUS_CHANGED = "submission.status_changed"

    # Comments
    COMMENT_ADDED = "comment.added"

    # Audit
    AUDIT_EXPORTED = "audit.exported"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class SystemEvent(BaseModel):
    """Core event emitted after a state change commits.

    Immutable once created. Consumed by:
    - audit_on_event → appends to the audit_records table
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (optional; system events have no actor or target)
    actor_id: str | None = None
    actor_role: str | None = None
    target_id: str | None = None
    target_kind: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
