"""Tests for the application shell: health, envelopes and middleware.

Tests cover:
- Health endpoint without authentication
- X-Request-ID propagation
- Error envelope for framework, validation and unexpected errors
- Generic 500 for unexpected exceptions, without details
"""

import pytest
from httpx import ASGITransport, AsyncClient

from lettertrack.api import create_app
from lettertrack.core.config import DatabaseSettings, Settings, StoreBackend


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_is_public(self, api_client: AsyncClient):
        response = await api_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["version"] == "0.1.0"
        assert "timestamp" in body


class TestRequestID:
    @pytest.mark.asyncio
    async def test_generated_when_missing(self, api_client: AsyncClient):
        response = await api_client.get("/health")
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_client_id_is_echoed(self, api_client: AsyncClient):
        response = await api_client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_error_body_carries_request_id(self, api_client: AsyncClient):
        response = await api_client.get("/departments", headers={"X-Request-ID": "req-401"})
        assert response.json()["request_id"] == "req-401"


class TestErrorEnvelope:
    """Every failure uses the same body shape."""

    @pytest.mark.asyncio
    async def test_unauthenticated(self, api_client: AsyncClient):
        response = await api_client.get("/outgoing")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_unknown_route(self, api_client: AsyncClient):
        response = await api_client.get("/nowhere")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_request_validation_is_400_with_fields(
        self, api_client: AsyncClient, admin_headers
    ):
        response = await api_client.get("/outgoing/not-a-uuid", headers=admin_headers)
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "validation_error"
        assert "letter_id" in error["details"]["fields"]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic_500(self, tokens):
        def broken_store():
            raise RuntimeError("connection string with secrets")

        async def verify_token(token):
            return tokens.get(token)

        app = create_app(
            Settings(database=DatabaseSettings(backend=StoreBackend.MEMORY)),
            store_factory=broken_store,
            token_verifier=verify_token,
        )
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get(
                "/couriers", headers={"Authorization": "Bearer admin-token"}
            )

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == {
            "code": "internal_error",
            "message": "An internal error occurred",
        }
        assert "secrets" not in response.text
