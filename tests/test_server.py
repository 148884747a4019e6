"""
Endpoint tests for the FastAPI app using TestClient.

The catalog is injected with an in-memory source, so no Google credentials
or network access are needed.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeClock, FakeSource
from livesync.api.server import LISTING_CACHE_CONTROL, create_app
from livesync.core.cache_store import CacheStore
from livesync.core.catalog_service import LiveCatalogService
from livesync.core.config import SyncConfig
from livesync.core.errors import SourceUnavailable


@pytest.fixture(autouse=True)
def _skip_preload(monkeypatch):
    monkeypatch.setenv("LIVESYNC_SKIP_PRELOAD", "1")


def _client(config, source):
    service = LiveCatalogService(config, CacheStore(source, ttl_seconds=60, clock=FakeClock()))
    return TestClient(create_app(catalog=service))


@pytest.fixture
def client(config, source):
    with _client(config, source) as c:
        yield c


# ── Listing ──────────────────────────────────────────────────────────────

class TestListEndpoint:
    def test_default_listing(self, client):
        response = client.get("/api/products/live")
        assert response.status_code == 200
        data = response.json()
        assert [p["id"] for p in data["products"]] == [1, 2, 3, 5]
        assert data["pagination"] == {
            "total": 4, "pages": 1, "current": 1, "limit": 12,
            "hasNext": False, "hasPrev": False,
        }
        assert response.headers["cache-control"] == LISTING_CACHE_CONTROL

    def test_filters_and_sort(self, client):
        response = client.get(
            "/api/products/live",
            params={"category": "tshirt", "sortBy": "price", "sortOrder": "desc"},
        )
        assert [p["id"] for p in response.json()["products"]] == [1, 5]

    def test_pagination_params(self, client):
        data = client.get("/api/products/live", params={"page": "2", "limit": "3"}).json()
        assert [p["id"] for p in data["products"]] == [5]
        assert data["pagination"]["hasPrev"] is True

    def test_garbage_params_fall_back(self, client):
        response = client.get("/api/products/live", params={"page": "x", "limit": "-1"})
        assert response.status_code == 200
        assert response.json()["pagination"]["current"] == 1

    def test_refresh_flag_refetches(self, client, source):
        client.get("/api/products/live")
        client.get("/api/products/live")
        assert source.calls == 1
        client.get("/api/products/live", params={"refresh": "true"})
        assert source.calls == 2

    def test_product_shape(self, client):
        product = client.get("/api/products/live").json()["products"][0]
        assert product["slug"] == "acid-washed-oversized-tee"
        assert product["colors"][0] == {"name": "Black", "value": "#000000"}
        assert product["variants"][1]["isAvailable"] is False


class TestProductEndpoint:
    def test_found(self, client):
        response = client.get("/api/products/live/classic-hoodie")
        assert response.status_code == 200
        assert response.json()["product"]["id"] == 2

    def test_not_found(self, client):
        response = client.get("/api/products/live/no-such-product")
        assert response.status_code == 404
        assert "no-such-product" in response.json()["error"]


class TestVariantSkuEndpoint:
    def test_found(self, client):
        response = client.get(
            "/api/products/variant-sku",
            params={"productId": "1", "color": "white", "size": "M"},
        )
        assert response.status_code == 200
        assert response.json() == {"sku": "1-WHI-M", "productId": 1, "color": "white", "size": "M"}

    def test_missing_param(self, client):
        response = client.get("/api/products/variant-sku", params={"productId": "1", "color": "Black"})
        assert response.status_code == 400

    def test_unknown_variant(self, client):
        response = client.get(
            "/api/products/variant-sku",
            params={"productId": "1", "color": "Purple", "size": "M"},
        )
        assert response.status_code == 404


class TestImageStrategiesEndpoint:
    def test_drive_link(self, client):
        response = client.get("/api/images/strategies", params={"url": "1AbCdEfGhIjKlMnOpQrStUvWxYz012345"})
        assert response.status_code == 200
        assert len(response.json()["candidates"]) == 3

    def test_unusable(self, client):
        assert client.get("/api/images/strategies", params={"url": "junk"}).status_code == 400


# ── Admin / cron ─────────────────────────────────────────────────────────

class TestAdminEndpoints:
    def test_clear_cache(self, client, source):
        client.get("/api/products/live")
        response = client.post("/api/admin/clear-sheet-cache")
        assert response.status_code == 200
        assert response.json()["success"] is True
        client.get("/api/products/live")
        assert source.calls == 2

    def test_warm_cache_default_profiles(self, client):
        data = client.post("/api/admin/warm-cache").json()
        assert data["success"] is True
        assert data["profiles"] == 4
        assert data["refreshed"] is True

    def test_warm_cache_custom_profiles(self, client):
        data = client.post("/api/admin/warm-cache", json={"profiles": [{"category": "hoodie"}]}).json()
        assert data["profiles"] == 1
        assert data["succeeded"] == 1

    def test_cache_stats(self, client):
        client.get("/api/products/live")
        data = client.get("/api/admin/cache-stats").json()
        assert data["cache"]["snapshot"]["products"] == 4
        assert data["cache"]["refreshes"] == 1

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "cold"
        client.get("/api/products/live")
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["configured"] is True


class TestCronEndpoint:
    def test_sync(self, client, source):
        response = client.post("/api/cron/sync")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["stats"]["products"] == 4
        assert source.calls == 1

    def test_secret_required(self, config, source):
        config.cron_secret = "s3cret"
        with _client(config, source) as client:
            assert client.post("/api/cron/sync").status_code == 401
            wrong = client.post("/api/cron/sync", headers={"Authorization": "Bearer nope"})
            assert wrong.status_code == 401
            ok = client.post("/api/cron/sync", headers={"Authorization": "Bearer s3cret"})
            assert ok.status_code == 200
        assert source.calls == 1

    def test_failure_reported(self, client, source):
        source.error = SourceUnavailable("sheet down")
        response = client.post("/api/cron/sync")
        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert "sheet down" in data["error"]


# ── Error mapping ────────────────────────────────────────────────────────

class TestErrorMapping:
    def test_unavailable_without_snapshot(self, config):
        with _client(config, FakeSource(error=SourceUnavailable("sheet down"))) as client:
            response = client.get("/api/products/live")
        assert response.status_code == 503
        assert "sheet down" in response.json()["detail"]

    def test_stale_served_after_failure(self, client, source):
        client.get("/api/products/live")
        client.post("/api/admin/clear-sheet-cache")
        source.error = SourceUnavailable("sheet down")
        response = client.get("/api/products/live")
        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 4

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr("livesync.core.config._config", SyncConfig())
        with TestClient(create_app()) as client:
            response = client.get("/api/products/live")
            health = client.get("/health").json()
        assert response.status_code == 500
        assert "LIVE_SHEET_ID" in response.json()["missing"]
        assert health["status"] == "not_configured"
        assert health["configured"] is False


class TestStartupWarm:
    def test_lifespan_warms_cache(self, config, source, monkeypatch):
        monkeypatch.setenv("LIVESYNC_SKIP_PRELOAD", "0")
        with _client(config, source) as client:
            assert source.calls == 1
            client.get("/api/products/live")
            assert source.calls == 1
