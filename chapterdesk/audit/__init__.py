"""Audit trail — append-only log of privileged actions."""

from chapterdesk.audit.actions import ACTION_CATEGORIES, AuditAction, describe_action
from chapterdesk.audit.subscriber import AUDITED_EVENTS, audit_on_event
from chapterdesk.audit.trail import audit_trail

__all__ = [
    "ACTION_CATEGORIES",
    "AUDITED_EVENTS",
    "AuditAction",
    "audit_on_event",
    "audit_trail",
    "describe_action",
]
