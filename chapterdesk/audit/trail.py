"""Audit trail — append-only record of privileged actions.

Appending is best-effort: it runs in its own session after the action it
describes has committed, and a store failure degrades to a logged warning.
An audit problem never fails the business operation. Reads are filtered,
newest-first, and paginated. There is deliberately no update or delete here.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import Select, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from chapterdesk.access.capabilities import require
from chapterdesk.audit.actions import TRANSITION_ACTIONS, AuditAction, action_value, describe_action
from chapterdesk.config import settings
from chapterdesk.db.engine import async_session_factory, redis_client
from chapterdesk.errors import AuditWriteFailed
from chapterdesk.events import emit
from chapterdesk.models.audit import AuditRecord
from chapterdesk.schemas.content import AuditFilter, AuditStats, CountEntry, Principal
from chapterdesk.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

CSV_HEADERS = ["Timestamp", "Actor", "Action", "Target", "Details"]
TOP_N = 5


def _apply_filter(stmt: Select[Any], audit_filter: AuditFilter | None) -> Select[Any]:
    if audit_filter is None:
        return stmt
    if audit_filter.actor_id:
        stmt = stmt.where(AuditRecord.actor_id == audit_filter.actor_id)
    if audit_filter.action_kind:
        stmt = stmt.where(AuditRecord.action_kind == audit_filter.action_kind)
    if audit_filter.date_from is not None:
        stmt = stmt.where(AuditRecord.occurred_at >= audit_filter.date_from)
    if audit_filter.date_to is not None:
        stmt = stmt.where(AuditRecord.occurred_at <= audit_filter.date_to)
    if audit_filter.search and audit_filter.search.strip():
        term = f"%{audit_filter.search.strip()}%"
        stmt = stmt.where(
            or_(
                AuditRecord.action_kind.ilike(term),
                AuditRecord.target_id.ilike(term),
                AuditRecord.detail_payload["description"].as_string().ilike(term),
            )
        )
    return stmt


def _build_record(
    actor_id: str,
    action: str,
    target_id: str | None,
    target_kind: str | None,
    detail_payload: dict[str, Any] | None,
    occurred_at: datetime,
) -> AuditRecord:
    return AuditRecord(
        actor_id=actor_id,
        action_kind=action,
        target_id=target_id,
        target_kind=target_kind,
        detail_payload=dict(detail_payload or {}),
        occurred_at=occurred_at,
    )


def _page_size(limit: int | None) -> int:
    if limit is None:
        return settings.audit.default_page_size
    return max(1, min(limit, settings.audit.max_page_size))


class AuditTrail:
    """Append and read audit records. Stateless apart from module collaborators."""

    # ── Write ────────────────────────────────────────────────────────

    async def append(
        self,
        actor_id: str,
        action_kind: AuditAction | str,
        target_id: str | None = None,
        target_kind: str | None = None,
        detail_payload: dict[str, Any] | None = None,
    ) -> AuditRecord | None:
        """Insert one record. Returns None when skipped or when the store is down."""
        action = action_value(action_kind)

        if action not in TRANSITION_ACTIONS and await self._seen_recently(actor_id, action, target_id):
            logger.debug("Skipping duplicate audit record: %s %s %s", actor_id, action, target_id)
            return None

        try:
            record = await self._insert(actor_id, action, target_id, target_kind, detail_payload)
        except AuditWriteFailed:
            logger.warning(
                "Audit append failed, continuing without it: actor=%s action=%s target=%s",
                actor_id,
                action,
                target_id,
                exc_info=True,
            )
            return None

        logger.debug("Audit record appended: %r", record)
        return record

    async def append_many(
        self,
        actor_id: str,
        entries: Sequence[Mapping[str, Any]],
    ) -> list[AuditRecord]:
        """Insert a bulk action's records in one transaction, all or none.

        Each entry carries `action_kind` and optionally `target_id`,
        `target_kind` and `detail_payload`. Every payload is tagged with
        `batch_operation` and `batch_size`. Batches are not deduplicated.
        Returns [] when the store is down.
        """
        if not entries:
            return []

        occurred_at = datetime.now(UTC)
        records = [
            _build_record(
                actor_id,
                action_value(entry["action_kind"]),
                entry.get("target_id"),
                entry.get("target_kind"),
                {**(entry.get("detail_payload") or {}), "batch_operation": True, "batch_size": len(entries)},
                occurred_at,
            )
            for entry in entries
        ]
        try:
            await self._persist(records)
        except AuditWriteFailed:
            logger.warning(
                "Audit batch append failed, continuing without it: actor=%s size=%d",
                actor_id,
                len(records),
                exc_info=True,
            )
            return []

        logger.debug("Audit batch appended: actor=%s size=%d", actor_id, len(records))
        return records

    async def _insert(
        self,
        actor_id: str,
        action: str,
        target_id: str | None,
        target_kind: str | None,
        detail_payload: dict[str, Any] | None,
    ) -> AuditRecord:
        record = _build_record(actor_id, action, target_id, target_kind, detail_payload, datetime.now(UTC))
        await self._persist([record])
        return record

    async def _persist(self, records: list[AuditRecord]) -> None:
        try:
            async with async_session_factory() as db:
                db.add_all(records)
                await db.commit()
        except Exception as exc:
            actions = ", ".join(sorted({r.action_kind for r in records}))
            msg = f"Could not persist audit record(s) {actions}"
            raise AuditWriteFailed(msg) from exc

    async def _seen_recently(self, actor_id: str, action: str, target_id: str | None) -> bool:
        """Claim the (actor, action, target) slot for the dedup window.

        Redis trouble means no suppression, never a lost record.
        """
        window = settings.audit.dedup_window_ms
        if window <= 0:
            return False
        key = f"audit:dedup:{actor_id}:{action}:{target_id or 'no-target'}"
        try:
            claimed = await redis_client.set(key, "1", nx=True, px=window)
        except Exception:
            logger.debug("Audit dedup unavailable, appending unconditionally", exc_info=True)
            return False
        return not claimed

    # ── Read ─────────────────────────────────────────────────────────

    async def query(
        self,
        db: AsyncSession,
        viewer: Principal,
        audit_filter: AuditFilter | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[AuditRecord]:
        """Filtered records, newest first."""
        require(viewer, "can_view_audit")
        return await self._fetch(db, audit_filter, _page_size(limit), offset)

    async def _fetch(
        self,
        db: AsyncSession,
        audit_filter: AuditFilter | None,
        limit: int,
        offset: int,
    ) -> list[AuditRecord]:
        stmt = _apply_filter(select(AuditRecord), audit_filter)
        result = await db.execute(
            stmt.order_by(AuditRecord.occurred_at.desc(), AuditRecord.id.desc())
            .offset(max(offset, 0))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count(
        self,
        db: AsyncSession,
        viewer: Principal,
        audit_filter: AuditFilter | None = None,
    ) -> int:
        """Total matching records, for pagination controls."""
        require(viewer, "can_view_audit")
        result = await db.execute(_apply_filter(select(func.count(AuditRecord.id)), audit_filter))
        return result.scalar() or 0

    async def stats(self, db: AsyncSession, viewer: Principal) -> AuditStats:
        """Counts for today / 7 days / 30 days plus the busiest actions and actors."""
        require(viewer, "can_view_audit")
        now = datetime.now(UTC)
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)

        counts: list[int] = []
        for since in (None, today_start, week_ago, month_ago):
            stmt = select(func.count(AuditRecord.id))
            if since is not None:
                stmt = stmt.where(AuditRecord.occurred_at >= since)
            result = await db.execute(stmt)
            counts.append(result.scalar() or 0)

        top_actions = await self._top(db, AuditRecord.action_kind, month_ago)
        top_actors = await self._top(db, AuditRecord.actor_id, month_ago)

        return AuditStats(
            total=counts[0],
            today=counts[1],
            week=counts[2],
            month=counts[3],
            top_actions=top_actions,
            top_actors=top_actors,
        )

    async def _top(self, db: AsyncSession, column: Any, since: datetime) -> list[CountEntry]:
        n = func.count(AuditRecord.id).label("n")
        result = await db.execute(
            select(column, n)
            .where(AuditRecord.occurred_at >= since)
            .group_by(column)
            .order_by(desc("n"))
            .limit(TOP_N)
        )
        return [CountEntry(key=str(key), count=int(count)) for key, count in result.all()]

    async def export_csv(
        self,
        db: AsyncSession,
        viewer: Principal,
        audit_filter: AuditFilter | None = None,
    ) -> str:
        """Render matching records as CSV (newest first, capped)."""
        require(viewer, "can_export_audit")
        records = await self._fetch(db, audit_filter, settings.audit.export_max_rows, 0)

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
        writer.writerow(CSV_HEADERS)
        for record in records:
            writer.writerow([
                record.occurred_at.isoformat() if record.occurred_at else "",
                record.actor_id,
                describe_action(record.action_kind, record.detail_payload),
                record.target_id or "-",
                json.dumps(record.detail_payload or {}, sort_keys=True, default=str),
            ])

        await emit(SystemEvent(
            event_type=EventType.AUDIT_EXPORTED,
            actor_id=viewer.id,
            actor_role=viewer.role,
            data={"rows": len(records), "filter": audit_filter.model_dump(mode="json") if audit_filter else {}},
            source_module="audit.trail",
        ))
        logger.info("Audit log exported by %s (%d rows)", viewer.id, len(records))
        return buffer.getvalue()


# Module-level singleton
audit_trail = AuditTrail()
