#!/usr/bin/env python3
"""
Integration Tests for System Endpoints
Tests for root, health check, metrics and the error envelope
"""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from docgov.core.exceptions import TransientException


@pytest.mark.integration
class TestRootEndpoint:
    """Test root endpoint (/)"""

    @pytest.mark.asyncio
    async def test_root_returns_app_info(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        result = response.json()
        assert result["name"]
        assert result["version"]
        assert "application/json" in response.headers.get("content-type", "")

    @pytest.mark.asyncio
    async def test_root_accepts_get_only(self, client: AsyncClient):
        response = await client.post("/")

        assert response.status_code == 405
        assert response.json()["error"]["code"] == "method_not_allowed"


@pytest.mark.integration
class TestHealthEndpoint:
    """Test health check endpoint (/health)"""

    @pytest.mark.asyncio
    async def test_degraded_without_storage(self, client: AsyncClient):
        """Database up, MinIO not initialised"""
        with patch("docgov.main.check_storage", AsyncMock(return_value=False)):
            response = await client.get("/health")

        assert response.status_code == 200
        result = response.json()
        assert result["status"] == "degraded"
        assert result["services"] == {"database": "healthy", "storage": "unhealthy"}

    @pytest.mark.asyncio
    async def test_healthy(self, client: AsyncClient):
        with patch("docgov.main.check_storage", AsyncMock(return_value=True)):
            response = await client.get("/health")

        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_unhealthy_without_database(self, client: AsyncClient):
        with patch("docgov.main.check_database", AsyncMock(return_value=False)), \
                patch("docgov.main.check_storage", AsyncMock(return_value=True)):
            response = await client.get("/health")

        assert response.json()["status"] == "unhealthy"


@pytest.mark.integration
class TestMetricsEndpoint:

    @pytest.mark.asyncio
    async def test_metrics_exposed(self, client: AsyncClient):
        await client.get("/")
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert "magic_link_redemptions_total" in response.text


@pytest.mark.integration
class TestErrorEnvelope:
    """Every failure uses {"error": {code, message, details, timestamp}}"""

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/documents")

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "authentication_error"
        assert error["message"]
        assert error["timestamp"]

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not.a.jwt"})

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "authentication_error"
        assert error["message"] == "Invalid token"
        assert error["details"] is None

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, factory, auth_headers):
        principal = await factory.principal()

        response = await client.get("/api/v1/documents", headers=auth_headers(principal, minutes=-1))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_principal(self, client: AsyncClient, factory, auth_headers):
        principal = await factory.principal(is_active=False)

        response = await client.get("/api/v1/documents", headers=auth_headers(principal))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_uuid(self, client: AsyncClient, factory, auth_headers):
        principal = await factory.principal()

        response = await client.get("/api/v1/documents/not-a-uuid", headers=auth_headers(principal))

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "validation_error"
        assert error["details"]["document_id"] == "not-a-uuid"

    @pytest.mark.asyncio
    async def test_unknown_document(self, client: AsyncClient, factory, auth_headers):
        principal = await factory.principal()

        response = await client.get(f"/api/v1/documents/{uuid.uuid4()}", headers=auth_headers(principal))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_request_validation(self, client: AsyncClient, factory, auth_headers):
        principal = await factory.principal()

        response = await client.post("/api/v1/magic-links", json={"ttl_days": 3}, headers=auth_headers(principal))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"


@pytest.mark.integration
class TestTransientFailures:
    """Driver and storage failures become 503 try_again_later without leaking their text"""

    @pytest.mark.asyncio
    async def test_database_error_is_try_again_later(self, client: AsyncClient, factory, auth_headers):
        principal = await factory.principal()
        failure = OperationalError(
            "SELECT memberships", {}, Exception("could not connect to server at 10.0.0.5:5432")
        )

        with patch(
            "docgov.api.v1.auth.TenancyService.get_user_tenants",
            AsyncMock(side_effect=failure),
        ):
            response = await client.get("/api/v1/auth/me", headers=auth_headers(principal))

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "try_again_later"
        assert error["details"] == {"service": "database"}
        assert "10.0.0.5" not in response.text
        assert "SELECT" not in response.text

    @pytest.mark.asyncio
    async def test_storage_timeout_on_download_url(self, client: AsyncClient, factory, auth_headers):
        author = await factory.principal()
        document = await factory.document(author, storage_path="documents/d1/d1.pdf")

        with patch(
            "docgov.services.documents.get_presigned_url",
            AsyncMock(side_effect=TransientException(service="storage")),
        ):
            response = await client.get(f"/api/v1/documents/{document.id}/download-url", headers=auth_headers(author))

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "try_again_later"
