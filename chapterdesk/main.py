"""FastAPI application entry point — owns the process lifespan.

Usage:
    python -m chapterdesk.main

The workflow is consumed in-process by the editorial, reviewer, and
activity-log UIs; this app only starts the database, the event worker, and
the audit subscriber, and answers health checks.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from chapterdesk import __version__
from chapterdesk.audit.subscriber import AUDITED_EVENTS, audit_on_event
from chapterdesk.config import settings
from chapterdesk.db.engine import check_connections, db_lifespan
from chapterdesk.events import start_event_system, stop_event_system, subscribe, unsubscribe

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting chapterdesk (env=%s)", settings.environment)

    async with db_lifespan():
        logger.info("Database initialized")

        # Audit subscriber first, so no committed transition goes unlogged
        subscribe(audit_on_event, event_types=AUDITED_EVENTS)
        await start_event_system()
        logger.info("Event system started with audit subscriber")

        try:
            yield
        finally:
            logger.info("Shutting down chapterdesk...")
            await stop_event_system()
            unsubscribe(audit_on_event)
            logger.info("Event system stopped")

    logger.info("chapterdesk shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="chapterdesk",
    description="Content revision and approval workflow",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint; "degraded" when PostgreSQL or Redis is unreachable."""
    connections = await check_connections()
    return {
        "status": "ok" if all(v == "ok" for v in connections.values()) else "degraded",
        **connections,
        "environment": settings.environment,
        "version": __version__,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "chapterdesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
