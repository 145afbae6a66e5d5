"""Tests for audit_on_event — event → audit record mapping."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from chapterdesk.audit.actions import AuditAction
from chapterdesk.audit.subscriber import AUDITED_EVENTS, EVENT_ACTIONS, audit_on_event
from chapterdesk.schemas.events import EventType, SystemEvent


def _event(event_type, **data):
    return SystemEvent(
        event_type=event_type,
        actor_id="bob",
        actor_role="unrestricted",
        target_id="item-1",
        target_kind="content",
        data=data,
        source_module="review.workflow",
    )


class TestMapping:
    """Which events are audited."""

    def test_staging_and_comments_not_audited(self):
        assert EventType.CONTENT_STAGED not in EVENT_ACTIONS
        assert EventType.COMMENT_ADDED not in EVENT_ACTIONS
        assert EventType.SUBMISSION_RECEIVED not in EVENT_ACTIONS

    def test_audited_events_match_mapping(self):
        assert set(AUDITED_EVENTS) == set(EVENT_ACTIONS)


class TestAuditOnEvent:
    """audit_on_event appends once per mapped event and never raises."""

    @pytest.mark.asyncio()
    async def test_appends_mapped_event(self):
        with patch("chapterdesk.audit.subscriber.audit_trail") as mock_trail:
            mock_trail.append = AsyncMock()
            await audit_on_event(_event(EventType.CONTENT_REJECTED, reason="Too long"))

        mock_trail.append.assert_awaited_once_with(
            actor_id="bob",
            action_kind=AuditAction.REJECT_CONTENT,
            target_id="item-1",
            target_kind="content",
            detail_payload={"reason": "Too long"},
        )

    @pytest.mark.asyncio()
    async def test_skips_unmapped_event(self):
        with patch("chapterdesk.audit.subscriber.audit_trail") as mock_trail:
            mock_trail.append = AsyncMock()
            await audit_on_event(_event(EventType.CONTENT_STAGED))

        mock_trail.append.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_skips_unprivileged_creation(self):
        with patch("chapterdesk.audit.subscriber.audit_trail") as mock_trail:
            mock_trail.append = AsyncMock()
            await audit_on_event(_event(EventType.CONTENT_CREATED, title="Draft", audit=False))

        mock_trail.append.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_audit_flag_not_recorded(self):
        with patch("chapterdesk.audit.subscriber.audit_trail") as mock_trail:
            mock_trail.append = AsyncMock()
            await audit_on_event(_event(EventType.CONTENT_CREATED, title="Post", audit=True))

        assert mock_trail.append.await_args.kwargs["detail_payload"] == {"title": "Post"}

    @pytest.mark.asyncio()
    async def test_system_actor_default(self):
        event = SystemEvent(event_type=EventType.CONTENT_DELETED, target_id="item-1")
        with patch("chapterdesk.audit.subscriber.audit_trail") as mock_trail:
            mock_trail.append = AsyncMock()
            await audit_on_event(event)

        assert mock_trail.append.await_args.kwargs["actor_id"] == "system"

    @pytest.mark.asyncio()
    async def test_never_raises(self):
        with patch("chapterdesk.audit.subscriber.audit_trail") as mock_trail:
            mock_trail.append = AsyncMock(side_effect=RuntimeError("boom"))
            await audit_on_event(_event(EventType.CONTENT_DELETED))

        mock_trail.append.assert_awaited_once()
