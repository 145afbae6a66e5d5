"""In-process event bus for post-commit side effects.

Workflow services emit a SystemEvent once their transaction has committed.
Handlers run on a background worker, so a slow or failing subscriber (the
audit trail, typically) never delays or fails the request that emitted.

Usage:
    from chapterdesk.events import emit, subscribe

    subscribe(audit_on_event, event_types=AUDITED_EVENT_TYPES)

    await emit(SystemEvent(
        event_type=EventType.CONTENT_APPROVED,
        actor_id=principal.id,
        target_id=str(item.id),
    ))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable
from typing import Any

from chapterdesk.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]

# ── Internal state ───────────────────────────────────────────────────

_global_handlers: list[EventHandler] = []
_handlers_by_type: dict[EventType, list[EventHandler]] = {}
_queue: asyncio.Queue[SystemEvent] | None = None
_worker: asyncio.Task[None] | None = None


# ── Registration ─────────────────────────────────────────────────────


def subscribe(handler: EventHandler, event_types: Iterable[EventType] | None = None) -> None:
    """Register an async handler for every event, or only for `event_types`."""
    if event_types is None:
        if handler not in _global_handlers:
            _global_handlers.append(handler)
        logger.info("Subscribed %s to all events", handler.__name__)
        return

    types = list(event_types)
    for event_type in types:
        bucket = _handlers_by_type.setdefault(event_type, [])
        if handler not in bucket:
            bucket.append(handler)
    logger.info("Subscribed %s to %s", handler.__name__, [t.value for t in types])


def unsubscribe(handler: EventHandler) -> None:
    """Remove a handler from every registration it has."""
    if handler in _global_handlers:
        _global_handlers.remove(handler)
    for bucket in _handlers_by_type.values():
        if handler in bucket:
            bucket.remove(handler)


def handlers_for(event_type: EventType) -> list[EventHandler]:
    """Global handlers followed by the ones registered for this type."""
    return [*_global_handlers, *_handlers_by_type.get(event_type, [])]


# ── Publishing ───────────────────────────────────────────────────────


async def emit(event: SystemEvent) -> None:
    """Queue an event for background delivery. Never raises on handler failure."""
    global _queue
    if _queue is None:
        _queue = asyncio.Queue()
    _ensure_worker()
    await _queue.put(event)
    logger.debug("Event queued: %s (target=%s)", event.event_type.value, event.target_id)


async def dispatch(event: SystemEvent) -> None:
    """Deliver one event to its handlers concurrently, isolating failures."""
    handlers = handlers_for(event.event_type)
    if not handlers:
        return

    results = await asyncio.gather(*(h(event) for h in handlers), return_exceptions=True)
    for handler, result in zip(handlers, results, strict=True):
        if isinstance(result, Exception):
            logger.error(
                "Handler %s failed for %s: %s",
                handler.__name__,
                event.event_type.value,
                result,
            )


# ── Background worker ────────────────────────────────────────────────


def _ensure_worker() -> None:
    global _worker
    if _worker is None or _worker.done():
        _worker = asyncio.create_task(_run_worker())
        logger.info("Event worker started")


async def _run_worker() -> None:
    """Drain the queue forever; one bad event never stops the loop."""
    while _queue is not None:
        try:
            event = await _queue.get()
        except asyncio.CancelledError:
            logger.info("Event worker shutting down")
            break
        try:
            await dispatch(event)
        except Exception:
            logger.exception("Error dispatching %s", event.event_type.value)
        finally:
            _queue.task_done()


# ── Lifecycle ────────────────────────────────────────────────────────


async def start_event_system() -> None:
    """Create the queue and worker. Call during application startup."""
    global _queue
    if _queue is None:
        _queue = asyncio.Queue()
    _ensure_worker()
    logger.info(
        "Event system started with %d global + %d typed handlers",
        len(_global_handlers),
        sum(len(v) for v in _handlers_by_type.values()),
    )


async def stop_event_system() -> None:
    """Deliver whatever is queued, then stop the worker."""
    global _worker, _queue

    if _queue is not None and _worker is not None and not _worker.done():
        await _queue.join()

    if _worker is not None and not _worker.done():
        _worker.cancel()
        try:
            await _worker
        except asyncio.CancelledError:
            pass

    _worker = None
    _queue = None
    logger.info("Event system stopped")
