"""
API tests for health probes and metrics.
"""

import pytest
from httpx import AsyncClient


class TestHealth:
    @pytest.mark.asyncio
    async def test_root_health(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "carhaus-backend"

    @pytest.mark.asyncio
    async def test_detailed_health(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["services"]["postgres"]["status"] == "healthy"
        assert "connections" in data["services"]["realtime"]["details"]

    @pytest.mark.asyncio
    async def test_liveness(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health/live")
        assert response.json()["status"] == "alive"

    @pytest.mark.asyncio
    async def test_readiness_fails_without_database(self, async_client: AsyncClient, monkeypatch):
        async def database_down() -> bool:
            return False

        monkeypatch.setattr("carhaus.api.v1.endpoints.health.check_database_connection", database_down)

        response = await async_client.get("/api/v1/health/ready")

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_security_headers(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "X-Request-ID" in response.headers


class TestMetrics:
    @pytest.mark.asyncio
    async def test_prometheus_text(self, async_client: AsyncClient):
        await async_client.get("/api/v1/health/live")

        response = await async_client.get("/api/v1/metrics")

        assert response.status_code == 200
        assert "carhaus_http_requests_total" in response.text

    @pytest.mark.asyncio
    async def test_summary(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/metrics/summary")

        assert "realtime_connections" in response.json()
