"""Tests for the FastAPI app and its lifespan wiring."""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from chapterdesk import __version__, events
from chapterdesk.audit.subscriber import audit_on_event
from chapterdesk.main import app, lifespan
from chapterdesk.schemas.events import EventType


class TestHealth:
    """GET /health."""

    def test_health(self):
        connections = {"postgresql": "ok", "redis": "ok"}
        with patch("chapterdesk.main.check_connections", new_callable=AsyncMock, return_value=connections):
            response = TestClient(app).get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["postgresql"] == "ok"
        assert body["version"] == __version__

    def test_degraded_when_redis_down(self):
        connections = {"postgresql": "ok", "redis": "error"}
        with patch("chapterdesk.main.check_connections", new_callable=AsyncMock, return_value=connections):
            body = TestClient(app).get("/health").json()

        assert body["status"] == "degraded"
        assert body["redis"] == "error"


class TestLifespan:
    """Startup registers the audit subscriber; shutdown removes it."""

    @pytest.mark.asyncio()
    async def test_audit_subscriber_registered_during_lifespan(self):
        @asynccontextmanager
        async def fake_db_lifespan():
            yield

        with (
            patch("chapterdesk.main.db_lifespan", fake_db_lifespan),
            patch("chapterdesk.main.start_event_system", new_callable=AsyncMock) as mock_start,
            patch("chapterdesk.main.stop_event_system", new_callable=AsyncMock) as mock_stop,
        ):
            async with lifespan(app):
                assert audit_on_event in events.handlers_for(EventType.CONTENT_APPROVED)
                mock_start.assert_awaited_once()

        mock_stop.assert_awaited_once()
        assert audit_on_event not in events.handlers_for(EventType.CONTENT_APPROVED)
