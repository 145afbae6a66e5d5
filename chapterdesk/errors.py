"""Error kinds surfaced by the review workflow.

Callers only need to tell PermissionDenied (re-authenticate) apart from
PreconditionFailed (refresh and retry). Everything else maps to a generic
failure and never carries storage-layer detail.
"""

from __future__ import annotations

from collections.abc import Iterable


class ChapterDeskError(Exception):
    """Base class for all workflow errors."""


class PermissionDenied(ChapterDeskError):
    """The principal's role lacks the capability an operation requires."""

    def __init__(self, actor_id: str, capability: str) -> None:
        self.actor_id = actor_id
        self.capability = capability
        super().__init__(f"Principal {actor_id} lacks capability {capability}")


class PreconditionFailed(ChapterDeskError):
    """Transition attempted from a state that does not allow it, or a lost race."""


class PatchConflict(PreconditionFailed):
    """Live content moved since the pending patch was computed."""

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = sorted(fields)
        super().__init__(f"Pending patch conflicts with live values for: {', '.join(self.fields)}")


class NotFound(ChapterDeskError):
    """Target item, submission, or thread does not exist."""


class ValidationFailed(ChapterDeskError):
    """Input rejected before touching state (empty comment, malformed patch, ...)."""


class AuditWriteFailed(ChapterDeskError):
    """Audit store unavailable. Always caught inside the audit trail."""


class OperationFailed(ChapterDeskError):
    """Generic failure of an operation; the cause is logged, not exposed."""
