"""Tests for the in-process event bus."""

from __future__ import annotations

import pytest

from chapterdesk import events
from chapterdesk.events import (
    dispatch,
    emit,
    handlers_for,
    start_event_system,
    stop_event_system,
    subscribe,
    unsubscribe,
)
from chapterdesk.schemas.events import EventType, SystemEvent


@pytest.fixture(autouse=True)
def _clean_registry():
    """Each test starts with no handlers registered."""
    saved_global = list(events._global_handlers)
    saved_typed = {k: list(v) for k, v in events._handlers_by_type.items()}
    events._global_handlers.clear()
    events._handlers_by_type.clear()
    yield
    events._global_handlers[:] = saved_global
    events._handlers_by_type.clear()
    events._handlers_by_type.update(saved_typed)


def _event(event_type=EventType.CONTENT_APPROVED):
    return SystemEvent(event_type=event_type, actor_id="bob", target_id="item-1")


class TestRegistration:
    """subscribe / unsubscribe / handlers_for."""

    def test_global_then_typed(self):
        async def everything(event):
            pass

        async def approvals(event):
            pass

        subscribe(everything)
        subscribe(approvals, [EventType.CONTENT_APPROVED])

        assert handlers_for(EventType.CONTENT_APPROVED) == [everything, approvals]
        assert handlers_for(EventType.CONTENT_REJECTED) == [everything]

    def test_subscribe_is_idempotent(self):
        async def handler(event):
            pass

        subscribe(handler, [EventType.CONTENT_DELETED])
        subscribe(handler, [EventType.CONTENT_DELETED])
        assert handlers_for(EventType.CONTENT_DELETED) == [handler]

    def test_unsubscribe_everywhere(self):
        async def handler(event):
            pass

        subscribe(handler)
        subscribe(handler, [EventType.CONTENT_DELETED])
        unsubscribe(handler)
        assert handlers_for(EventType.CONTENT_DELETED) == []


class TestDispatch:
    """dispatch isolates handler failures."""

    @pytest.mark.asyncio()
    async def test_failing_handler_does_not_stop_others(self):
        seen = []

        async def broken(event):
            raise RuntimeError("boom")

        async def recorder(event):
            seen.append(event.event_type)

        subscribe(broken)
        subscribe(recorder)

        await dispatch(_event())

        assert seen == [EventType.CONTENT_APPROVED]

    @pytest.mark.asyncio()
    async def test_no_handlers(self):
        await dispatch(_event(EventType.SYSTEM_STARTUP))


class TestWorker:
    """Queued delivery through the background worker."""

    @pytest.mark.asyncio()
    async def test_stop_drains_queue(self):
        seen = []

        async def recorder(event):
            seen.append(event.target_id)

        subscribe(recorder, [EventType.CONTENT_APPROVED])
        await start_event_system()
        try:
            await emit(_event())
            await emit(_event())
        finally:
            await stop_event_system()

        assert seen == ["item-1", "item-1"]
        assert events._worker is None
        assert events._queue is None

    @pytest.mark.asyncio()
    async def test_emit_before_start_is_delivered(self):
        seen = []

        async def recorder(event):
            seen.append(event.event_type)

        subscribe(recorder)
        await emit(_event(EventType.CONTENT_DELETED))
        await start_event_system()
        await stop_event_system()

        assert seen == [EventType.CONTENT_DELETED]
