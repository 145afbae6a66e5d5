"""Audit subscriber — turns committed workflow events into audit records.

Registered for AUDITED_EVENTS at startup. Runs on the event worker, after
the emitting transaction has committed. Never raises.
"""

from __future__ import annotations

import logging

from chapterdesk.audit.actions import AuditAction
from chapterdesk.audit.trail import audit_trail
from chapterdesk.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EVENT_ACTIONS: dict[EventType, AuditAction] = {
    EventType.CONTENT_CREATED: AuditAction.CREATE_CONTENT,
    EventType.CONTENT_UPDATED: AuditAction.UPDATE_CONTENT,
    EventType.CONTENT_DELETED: AuditAction.DELETE_CONTENT,
    EventType.CONTENT_APPROVED: AuditAction.APPROVE_CONTENT,
    EventType.CONTENT_REJECTED: AuditAction.REJECT_CONTENT,
    EventType.CONTENT_PUBLISHED: AuditAction.PUBLISH_CONTENT,
    EventType.CONTENT_UNPUBLISHED: AuditAction.UNPUBLISH_CONTENT,
    EventType.CONTENT_ARCHIVED: AuditAction.ARCHIVE_CONTENT,
    EventType.SUBMISSION_STATUS_CHANGED: AuditAction.UPDATE_SUBMISSION,
    EventType.AUDIT_EXPORTED: AuditAction.EXPORT_AUDIT_LOG,
}

AUDITED_EVENTS: list[EventType] = list(EVENT_ACTIONS)


async def audit_on_event(event: SystemEvent) -> None:
    """Append the audit record for one event.

    Events from unprivileged actors (a restricted editor creating a draft)
    carry `data["audit"] = False` and are skipped.
    """
    action = EVENT_ACTIONS.get(event.event_type)
    if action is None or event.data.get("audit") is False:
        return

    try:
        await audit_trail.append(
            actor_id=event.actor_id or "system",
            action_kind=action,
            target_id=event.target_id,
            target_kind=event.target_kind,
            detail_payload={k: v for k, v in event.data.items() if k != "audit"},
        )
    except Exception:
        logger.exception(
            "Failed to audit event: %s (target=%s)",
            event.event_type.value,
            event.target_id,
        )
