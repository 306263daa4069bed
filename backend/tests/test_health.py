"""
Tests for the health check and API root endpoints.

Covers:
- Healthy/degraded state with the database reachable
- Response structure validation
- Signing key check
- No auth required
"""

import pytest
from httpx import AsyncClient

from config import settings
from services.health import check_signing_key


class TestHealthEndpoint:
    """Health check endpoint tests."""

    @pytest.mark.asyncio
    async def test_health_returns_200(self, async_client: AsyncClient):
        """GET /health returns 200 when database is accessible."""
        response = await async_client.get("/health")
        # degraded when JWT_SECRET is still the placeholder
        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ("healthy", "degraded")

    @pytest.mark.asyncio
    async def test_health_response_structure(self, async_client: AsyncClient):
        """Health response contains all required fields."""
        response = await async_client.get("/health")
        data = response.json()
        assert "status" in data
        assert "app" in data
        assert "version" in data
        assert "uptime_seconds" in data
        assert "checks" in data
        assert "timestamp" in data
        assert isinstance(data["checks"], list)

    @pytest.mark.asyncio
    async def test_health_includes_database_check(self, async_client: AsyncClient):
        response = await async_client.get("/health")
        data = response.json()
        db_check = next(c for c in data["checks"] if c["name"] == "database")
        assert db_check["status"] == "ok"
        assert db_check["response_time_ms"] is not None

    @pytest.mark.asyncio
    async def test_health_no_auth_required(self, async_client: AsyncClient):
        response = await async_client.get("/health")
        assert response.status_code in (200, 503)
        assert response.headers["x-request-id"]

    @pytest.mark.asyncio
    async def test_health_app_and_version_present(self, async_client: AsyncClient):
        response = await async_client.get("/health")
        data = response.json()
        assert data["app"] == settings.APP_NAME
        assert data["version"]


class TestSigningKeyCheck:

    def test_placeholder_secret_is_degraded(self, monkeypatch):
        monkeypatch.setattr(settings, "JWT_SECRET", "change-me-in-production")
        assert check_signing_key().status == "degraded"

    def test_empty_secret_is_error(self, monkeypatch):
        monkeypatch.setattr(settings, "JWT_SECRET", "")
        assert check_signing_key().status == "error"

    def test_real_secret_is_ok(self, monkeypatch):
        monkeypatch.setattr(settings, "JWT_SECRET", "a-long-random-production-secret")
        assert check_signing_key().status == "ok"


class TestApiRoot:

    @pytest.mark.asyncio
    async def test_api_root_lists_endpoints(self, async_client: AsyncClient):
        response = await async_client.get("/api")
        assert response.status_code == 200
        endpoints = response.json()["endpoints"]
        assert endpoints["auth"] == "/api/auth"
        assert endpoints["profile"] == "/api/profile"
