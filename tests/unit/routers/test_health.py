"""Unit tests for health and metrics endpoints."""

from unittest.mock import AsyncMock

import pytest

from magic_actions.routers.health import check_backend_status, check_store_health
from magic_actions.services.llm_factory import set_backend

from tests.unit.conftest import FakeBackend


class TestCheckStoreHealth:
    @pytest.mark.asyncio
    async def test_ok(self, store):
        health = await check_store_health(store)
        assert health.status == "ok"
        assert health.latency_ms is not None

    @pytest.mark.asyncio
    async def test_error(self):
        broken = AsyncMock()
        broken.exists.side_effect = ConnectionError("redis down")

        health = await check_store_health(broken)

        assert health.status == "error"
        assert health.error == "redis down"


class TestCheckBackendStatus:
    def test_configured(self):
        set_backend(FakeBackend())
        assert check_backend_status().status == "ok"

    def test_disabled(self):
        set_backend(None)
        health = check_backend_status()
        assert health.status == "disabled"


class TestHealthEndpoint:
    def test_degraded_when_workers_stopped(self, client):
        set_backend(FakeBackend())

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["workers_running"] is False
        assert data["job_store"]["status"] == "ok"
        assert data["backend"]["status"] == "ok"
        assert data["actions"] == 9

    @pytest.mark.asyncio
    async def test_ok_when_everything_up(self, client, engine):
        set_backend(FakeBackend())
        engine.pool.start()
        try:
            response = client.get("/health")
        finally:
            await engine.pool.stop()

        assert response.json()["status"] == "ok"


class TestMetricsEndpoint:
    def test_exposes_prometheus_text(self, client):
        client.post(
            "/actions/propose-title",
            params={"sync": "true"},
            json={"target": {"type": "entry", "id": "e1"}, "field": "title"},
        )

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "magic_actions_jobs_dispatched_total" in response.text
        assert "magic_actions_job_outcomes_total" in response.text
