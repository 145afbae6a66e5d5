"""Initial schema — content items, submissions, comments, audit records.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # ── Mutable tables ────────────────────────────────────────────────

    op.create_table(
        "content_items",
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("excerpt", sa.String(1000)),
        sa.Column("tags", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="[]"),
        sa.Column("category", sa.String(100), index=True),
        sa.Column("featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "image_refs",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default="[]",
            comment="Opaque references owned by the media store",
        ),
        sa.Column("publication_state", sa.String(20), nullable=False, server_default="draft", index=True),
        sa.Column("review_state", sa.String(20), nullable=False, server_default="none", index=True),
        sa.Column("pending_patch", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("change_summary", sa.String(500)),
        sa.Column("rejection_reason", sa.String(2000)),
        sa.Column(
            "requires_review",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
            comment="Last modified by a restricted principal",
        ),
        sa.Column("created_by", sa.String(100), nullable=False, index=True),
        sa.Column("updated_by", sa.String(100)),
        sa.Column(
            "staged_by",
            sa.String(100),
            index=True,
            comment="Restricted editor behind the latest staged change",
        ),
        sa.Column("published_at", sa.DateTime(timezone=True)),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="1"),
        _id_column(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(review_state = 'pending') = (pending_patch IS NOT NULL)",
            name="ck_content_items_pending_patch",
        ),
        sa.CheckConstraint(
            "rejection_reason IS NULL OR review_state = 'rejected'",
            name="ck_content_items_rejection_reason",
        ),
    )

    op.create_table(
        "submissions",
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("author_id", sa.String(100), nullable=False, index=True),
        sa.Column("file_reference", sa.String(500), comment="Opaque media store key"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("admin_notes", sa.String(2000)),
        _id_column(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Append-only tables ────────────────────────────────────────────

    op.create_table(
        "comments",
        sa.Column("thread_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("thread_kind", sa.String(20), nullable=False, server_default="content"),
        sa.Column("author_id", sa.String(100), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False, server_default="general"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        _id_column(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_comments_thread_created", "comments", ["thread_id", "created_at"])

    op.create_table(
        "audit_records",
        sa.Column("actor_id", sa.String(100), nullable=False, comment="Principal id or 'system'"),
        sa.Column("action_kind", sa.String(100), nullable=False, index=True),
        sa.Column("target_id", sa.String(100), index=True),
        sa.Column("target_kind", sa.String(50), comment="content, submission, ..."),
        sa.Column(
            "detail_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="{}"
        ),
        sa.Column(
            "occurred_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False, index=True
        ),
        _id_column(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_records_actor_occurred", "audit_records", ["actor_id", "occurred_at"])


def downgrade() -> None:
    op.drop_index("ix_audit_records_actor_occurred", table_name="audit_records")
    op.drop_table("audit_records")
    op.drop_index("ix_comments_thread_created", table_name="comments")
    op.drop_table("comments")
    op.drop_table("submissions")
    op.drop_table("content_items")
