"""Async engine, session factory and Redis client for chapterdesk.

Workflow services receive an AsyncSession per call and commit their own
transitions. The audit trail opens sessions from `async_session_factory`
directly, since it writes after the action it records has committed.
Redis only holds the audit duplicate-suppression window.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chapterdesk.config import settings

logger = logging.getLogger(__name__)

engine: AsyncEngine = create_async_engine(
    settings.db.database_url,
    echo=settings.log_level == "DEBUG",
    pool_size=settings.db.pool_size,
    max_overflow=settings.db.max_overflow,
    pool_pre_ping=True,
    pool_recycle=settings.db.pool_recycle_s,
)

# Transitions mirror committed values onto the instance; nothing reloads.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Audit dedup gives up after one timeout and appends anyway.
redis_client: aioredis.Redis = aioredis.from_url(
    settings.db.redis_url,
    decode_responses=True,
    socket_timeout=settings.db.redis_timeout_s,
    socket_connect_timeout=settings.db.redis_timeout_s,
)


async def check_connections() -> dict[str, str]:
    """Report "ok" or "error" for PostgreSQL and Redis."""
    status: dict[str, str] = {}

    try:
        async with async_session_factory() as db:
            await db.execute(text("SELECT 1"))
        status["postgresql"] = "ok"
    except (SQLAlchemyError, OSError):
        logger.warning("PostgreSQL health check failed", exc_info=True)
        status["postgresql"] = "error"

    try:
        await redis_client.ping()
        status["redis"] = "ok"
    except (RedisError, OSError):
        logger.warning("Redis health check failed", exc_info=True)
        status["redis"] = "error"

    return status


async def init_db() -> None:
    """Create tables outside production; production schemas come from Alembic."""
    if settings.is_production:
        return
    from chapterdesk.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables ensured for %s", settings.environment)


async def close_db() -> None:
    await engine.dispose()
    await redis_client.aclose()


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Open on entry, dispose the pool and Redis connection on exit."""
    await init_db()
    try:
        yield
    finally:
        await close_db()
