"""Pydantic schemas for principals, patches, and audit queries.

Pure data classes — no DB dependencies. These are the plain structured
records the editorial, reviewer, and activity-log UIs bind to.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Principal
# ---------------------------------------------------------------------------


class Principal(BaseModel):
    """An authenticated actor. Role is fixed for the session."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: str  # Role value; anything else is denied by the access layer


# ---------------------------------------------------------------------------
# Patch
# ---------------------------------------------------------------------------


class FieldChange(BaseModel):
    """One entry of a patch: the live value and the proposed value."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: Any = Field(alias="from")
    to: Any

    def as_json(self) -> dict[str, Any]:
        return {"from": self.from_, "to": self.to}


# Field name → change. Minimal: unchanged fields never appear.
Patch = dict[str, FieldChange]


class ContentFields(BaseModel):
    """Proposed values for the editable fields of a content item.

    Only fields explicitly set by the caller take part in a diff; use
    `model_dump(exclude_unset=True)` to get them.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    body: str | None = None
    excerpt: str | None = None
    tags: list[str] | None = None
    category: str | None = None
    featured: bool | None = None
    image_refs: list[str] | None = None


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class AuditFilter(BaseModel):
    """Filters for audit trail reads. All optional, combined with AND."""

    actor_id: str | None = None
    action_kind: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = Field(default=None, description="Substring over action, target, description")


class CountEntry(BaseModel):
    key: str
    count: int


class AuditStats(BaseModel):
    """Activity-log dashboard counters."""

    total: int = 0
    today: int = 0
    week: int = 0
    month: int = 0
    top_actions: list[CountEntry] = Field(default_factory=list)
    top_actors: list[CountEntry] = Field(default_factory=list)
