"""
Smoke tests for the GeekLogg API.

These tests verify basic functionality without requiring a live database or
any third-party API.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from api import deps
from api.main import DEFAULT_CORS_ORIGINS, app, get_cors_origins
from geeklogg_backend.integrations.http import ExternalApiError
from geeklogg_backend.integrations.igdb.client import IgdbClientError, IgdbNotConfiguredError
from geeklogg_backend.integrations.igdb.token_cache import TokenRefreshError


@pytest.fixture
def igdb_client():
    return MagicMock()


@pytest.fixture
def media_service():
    return MagicMock()


@pytest.fixture
def client(igdb_client, media_service):
    """Create a test client with mocked external dependencies."""
    app.dependency_overrides[deps.get_supabase_admin_client] = lambda: MagicMock()
    app.dependency_overrides[deps.get_igdb_client] = lambda: igdb_client
    app.dependency_overrides[deps.get_external_media_service] = lambda: media_service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_root_returns_ok(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "geeklogg-backend"

    def test_health_returns_healthy(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestCors:
    """Test CORS configuration."""

    def test_default_origins_when_env_unset(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)
        assert get_cors_origins() == DEFAULT_CORS_ORIGINS

    def test_origins_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example.com, https://b.example.com,")
        assert get_cors_origins() == ["https://a.example.com", "https://b.example.com"]

    def test_geeklogg_subdomain_is_allowed(self, client: TestClient):
        response = client.get("/health", headers={"Origin": "https://preview.geeklogg.com"})
        assert response.headers.get("access-control-allow-origin") == "https://preview.geeklogg.com"

    def test_unknown_origin_is_not_allowed(self, client: TestClient):
        response = client.get("/health", headers={"Origin": "https://evil.example.com"})
        assert "access-control-allow-origin" not in response.headers


class TestIgdbEndpoints:
    """Test the IGDB proxy routes."""

    def test_games_requires_query(self, client: TestClient):
        response = client.post("/api/igdb/games", json={})
        assert response.status_code == 400

    def test_games_forwards_query(self, client: TestClient, igdb_client: MagicMock):
        igdb_client.query_games.return_value = [{"id": 1942, "name": "The Witcher 3"}]

        response = client.post("/api/igdb/games", json={"query": "fields name; limit 1;"})

        assert response.status_code == 200
        assert response.json() == [{"id": 1942, "name": "The Witcher 3"}]
        igdb_client.query_games.assert_called_once_with("fields name; limit 1;")

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (IgdbNotConfiguredError("IGDB_CLIENT_ID is not set."), 503),
            (TokenRefreshError("Token refresh failed: 400"), 503),
            (IgdbClientError("IGDB API error: 429 - Rate limit exceeded", status_code=429), 502),
        ],
    )
    def test_games_error_mapping(self, client: TestClient, igdb_client: MagicMock, error, status_code):
        igdb_client.query_games.side_effect = error
        response = client.post("/api/igdb/games", json={"query": "fields name;"})
        assert response.status_code == status_code

    def test_status_ok(self, client: TestClient, igdb_client: MagicMock):
        igdb_client.check_status.return_value = {
            "status": "ok",
            "message": "IGDB API available",
            "token_cached": True,
            "token_expires_at": "2025-01-01T00:00:00+00:00",
        }

        response = client.get("/api/igdb/status")

        assert response.status_code == 200
        assert response.json()["tokenCached"] is True
        assert response.json()["tokenExpiresAt"] == "2025-01-01T00:00:00+00:00"

    def test_status_not_configured_is_503(self, client: TestClient, igdb_client: MagicMock):
        igdb_client.check_status.return_value = {"status": "not_configured", "message": "IGDB_CLIENT_ID not configured"}
        response = client.get("/api/igdb/status")
        assert response.status_code == 503
        assert response.json()["status"] == "not_configured"

    def test_refresh_token(self, client: TestClient, igdb_client: MagicMock):
        igdb_client.token_cache.expires_at_iso.return_value = "2025-01-01T00:00:00+00:00"

        response = client.post("/api/igdb/refresh-token")

        assert response.status_code == 200
        assert response.json()["success"] is True
        igdb_client.token_cache.invalidate.assert_called_once()
        igdb_client.token_cache.validate_and_refresh_token.assert_called_once()

    def test_refresh_token_failure(self, client: TestClient, igdb_client: MagicMock):
        igdb_client.token_cache.validate_and_refresh_token.side_effect = TokenRefreshError("boom")
        response = client.post("/api/igdb/refresh-token")
        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "boom"}


class TestSearchEndpoints:
    """Test external catalogue search."""

    def test_search_by_type(self, client: TestClient, media_service: MagicMock):
        media_service.search_media.return_value = [{"id": "603", "title": "Matrix"}]

        response = client.get("/api/v1/search", params={"query": "matrix", "type": "movies", "limit": 5})

        assert response.status_code == 200
        assert response.json() == [{"id": "603", "title": "Matrix"}]
        args, kwargs = media_service.search_media.call_args
        assert args[0] == "matrix"
        assert args[1].value == "movies"
        assert kwargs["limit"] == 5

    def test_search_rejects_unknown_type(self, client: TestClient):
        response = client.get("/api/v1/search", params={"query": "matrix", "type": "podcasts"})
        assert response.status_code == 422

    def test_search_upstream_error_is_502(self, client: TestClient, media_service: MagicMock):
        media_service.search_media.side_effect = ExternalApiError("TMDb request failed with HTTP 500.")
        response = client.get("/api/v1/search", params={"query": "matrix", "type": "movies"})
        assert response.status_code == 502

    def test_search_missing_key_is_503(self, client: TestClient, media_service: MagicMock):
        media_service.search_media.side_effect = RuntimeError("TMDB_API_KEY is not set.")
        response = client.get("/api/v1/search", params={"query": "matrix", "type": "series"})
        assert response.status_code == 503

    def test_search_status(self, client: TestClient, media_service: MagicMock):
        media_service.check_api_availability.return_value = {"google_books": True, "tmdb": True, "igdb": False}
        response = client.get("/api/v1/search/status")
        assert response.status_code == 200
        assert response.json()["igdb"] is False
