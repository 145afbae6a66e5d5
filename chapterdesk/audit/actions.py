"""Audit action vocabulary.

Action kinds are plain strings in the audit table so new ones need no
migration; the enum lists the ones this package writes itself.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class AuditAction(str, Enum):
    """Action kinds recorded by the workflow."""

    # Content
    CREATE_CONTENT = "create_content"
    UPDATE_CONTENT = "update_content"
    DELETE_CONTENT = "delete_content"
    APPROVE_CONTENT = "approve_content"
    REJECT_CONTENT = "reject_content"
    PUBLISH_CONTENT = "publish_content"
    UNPUBLISH_CONTENT = "unpublish_content"
    ARCHIVE_CONTENT = "archive_content"

    # Submissions
    UPDATE_SUBMISSION = "update_submission"

    # Audit log itself
    EXPORT_AUDIT_LOG = "export_audit_log"


ACTION_DESCRIPTIONS: dict[str, str] = {
    AuditAction.CREATE_CONTENT.value: "Created content",
    AuditAction.UPDATE_CONTENT.value: "Updated content directly",
    AuditAction.DELETE_CONTENT.value: "Deleted content",
    AuditAction.APPROVE_CONTENT.value: "Approved pending changes",
    AuditAction.REJECT_CONTENT.value: "Rejected pending changes",
    AuditAction.PUBLISH_CONTENT.value: "Published content",
    AuditAction.UNPUBLISH_CONTENT.value: "Moved content back to draft",
    AuditAction.ARCHIVE_CONTENT.value: "Archived content",
    AuditAction.UPDATE_SUBMISSION.value: "Updated submission status",
    AuditAction.EXPORT_AUDIT_LOG.value: "Exported audit log",
}

ACTION_CATEGORIES: dict[str, list[str]] = {
    "Content Management": [
        AuditAction.CREATE_CONTENT.value,
        AuditAction.UPDATE_CONTENT.value,
        AuditAction.DELETE_CONTENT.value,
        AuditAction.PUBLISH_CONTENT.value,
        AuditAction.UNPUBLISH_CONTENT.value,
        AuditAction.ARCHIVE_CONTENT.value,
    ],
    "Review": [
        AuditAction.APPROVE_CONTENT.value,
        AuditAction.REJECT_CONTENT.value,
        AuditAction.UPDATE_SUBMISSION.value,
    ],
    "Security": [
        AuditAction.EXPORT_AUDIT_LOG.value,
    ],
}

# Workflow transitions: each one is a distinct fact and is never suppressed
# as a duplicate, however close together two of them land.
TRANSITION_ACTIONS: frozenset[str] = frozenset({
    AuditAction.UPDATE_CONTENT.value,
    AuditAction.DELETE_CONTENT.value,
    AuditAction.APPROVE_CONTENT.value,
    AuditAction.REJECT_CONTENT.value,
    AuditAction.PUBLISH_CONTENT.value,
    AuditAction.UNPUBLISH_CONTENT.value,
    AuditAction.ARCHIVE_CONTENT.value,
    AuditAction.UPDATE_SUBMISSION.value,
})


def action_value(action_kind: AuditAction | str) -> str:
    """Plain string form stored in the audit table."""
    if isinstance(action_kind, AuditAction):
        return action_kind.value
    return str(action_kind)


def describe_action(action_kind: AuditAction | str, detail_payload: dict[str, Any] | None = None) -> str:
    """Human-readable label for an action, with the record's description if any."""
    kind = action_value(action_kind)
    label = ACTION_DESCRIPTIONS.get(kind, kind.replace("_", " ").capitalize())
    description = (detail_payload or {}).get("description")
    if description:
        return f"{label}: {description}"
    return label
