"""AuditRecord model — immutable audit trail of privileged actions.

This table is append-only. The ORM refuses to flush an UPDATE or DELETE for
any AuditRecord, even though PostgreSQL itself would allow it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, event, func
from sqlalchemy.orm import Mapped, mapped_column

from chapterdesk.models.base import Base, IdentityMixin, utcnow
from chapterdesk.models.content import JsonType


class ImmutableRecordError(RuntimeError):
    """Raised when something tries to modify an append-only row."""


class AuditRecord(IdentityMixin, Base):
    """Immutable audit trail entry."""

    __tablename__ = "audit_records"
    __table_args__ = (Index("ix_audit_records_actor_occurred", "actor_id", "occurred_at"),)

    actor_id: Mapped[str] = mapped_column(String(100), nullable=False, comment="Principal id or 'system'")
    action_kind: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Target (nullable, not every action has one)
    target_id: Mapped[str | None] = mapped_column(String(100), index=True)
    target_kind: Mapped[str | None] = mapped_column(String(50), comment="content, submission, ...")

    detail_payload: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict, nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AuditRecord action={self.action_kind} actor={self.actor_id} target={self.target_id}>"


def refuse_mutation(mapper: Any, connection: Any, target: Any) -> None:
    """Mapper hook: append-only rows can be inserted, never changed."""
    msg = f"{type(target).__name__} rows are append-only"
    raise ImmutableRecordError(msg)


event.listen(AuditRecord, "before_update", refuse_mutation)
event.listen(AuditRecord, "before_delete", refuse_mutation)
