"""
HTTP tests for the files and prune endpoints.

The app is built around a registry of in-memory stores, so these
exercise routing, status codes and the JSON wire format end to end.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from bucketsets.api.dependencies import get_registry
from bucketsets.config.settings import Settings
from bucketsets.infrastructure.storage.client import MockStorageClient
from bucketsets.infrastructure.storage.registry import BackendRegistry
from bucketsets.main import create_app

from conftest import FailingListStore, make_backend

OLD = datetime.now(timezone.utc) - timedelta(days=3)
NEW = datetime.now(timezone.utc) - timedelta(minutes=5)


@pytest.fixture
def photos() -> MockStorageClient:
    store = MockStorageClient(bucket_name="photos")
    store.put("old/cat 1.png", size=100, last_modified=OLD)
    store.put("new.jpg", size=200, last_modified=NEW)
    store.put("readme.txt", size=5, last_modified=OLD)
    return store


@pytest.fixture
def registry(photos) -> BackendRegistry:
    return BackendRegistry([
        make_backend("R2", store=photos),
        make_backend("R2_2", ready=False, bucket=None),
        make_backend("S3", store=FailingListStore(message="InvalidAccessKeyId")),
    ])


@pytest.fixture
def client(registry) -> TestClient:
    settings = Settings(cors_origins="*", storage_mock_mode=True)
    return TestClient(create_app(settings=settings, registry=registry))


class TestFiles:
    """GET /files and /files/{set_id}"""

    def test_errors_first_then_sorted_files(self, client):
        response = client.get("/files")

        assert response.status_code == 200
        body = response.json()
        assert [entry["set"] for entry in body[:2]] == ["R2_2", "S3"]
        assert "error" in body[0] and "error" in body[1]
        assert [entry["name"] for entry in body[2:]] == ["new.jpg", "old/cat 1.png", "readme.txt"]

    def test_file_wire_format(self, client):
        entry = client.get("/files").json()[2]

        assert entry["set"] == "R2"
        assert entry["bucket"] == "photos"
        assert entry["size"] == 200
        assert entry["url"] == "https://cdn.example.com/new.jpg"
        assert "lastModified" in entry

    def test_listing_is_not_cached(self, client):
        response = client.get("/files")

        assert response.headers["cache-control"] == "no-store, max-age=0, must-revalidate"

    @pytest.mark.parametrize("path,expected_status", [
        ("/files/R2", 200),
        ("/files/missing", 404),
        ("/files/S3", 500),
        ("/files/R2_2", 500),
    ])
    def test_single_set_is_not_cached(self, client, path, expected_status):
        """Error answers must not be cached either."""
        response = client.get(path)

        assert response.status_code == expected_status
        assert response.headers["cache-control"] == "no-store, max-age=0, must-revalidate"

    def test_single_set(self, client):
        response = client.get("/files/R2")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["set"] == "R2"
        assert body["files"][1]["url"] == "https://cdn.example.com/old/cat%201.png"

    def test_unknown_set_is_404(self, client):
        response = client.get("/files/nope")

        assert response.status_code == 404
        assert response.json() == {"ok": False, "error": "set not found"}

    def test_failing_set_is_500(self, client):
        response = client.get("/files/S3")

        assert response.status_code == 500
        body = response.json()
        assert body["ok"] is False
        assert body["set"] == "S3"
        assert "InvalidAccessKeyId" in body["error"]


class TestPrune:
    """GET /prune and /prune/{set_id}"""

    def test_dry_run_across_sets(self, client, photos):
        response = client.get("/prune", params={"ttl": 86400, "dry": "true"})

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["ttl"] == 86400
        assert body["dry"] is True

        results = {r["set"]: r for r in body["results"]}
        assert results["R2"]["deleted"] == 1
        assert results["R2"]["items"] == ["old/cat 1.png"]
        assert "error" in results["R2_2"]
        assert "error" in results["S3"]
        assert photos.delete_calls == []

    def test_single_set_deletes(self, client, photos):
        response = client.get("/prune/R2", params={"ttl": 86400})

        assert response.status_code == 200
        body = response.json()
        assert body == {
            "ok": True,
            "set": "R2",
            "deleted": 1,
            "dry": False,
            "items": ["old/cat 1.png"],
            "errors": [],
        }
        assert photos.keys == ["new.jpg", "readme.txt"]

    def test_default_ttl_comes_from_settings(self, client):
        body = client.get("/prune", params={"dry": "true"}).json()

        assert body["ttl"] == 86400

    def test_unknown_set_is_404(self, client):
        response = client.get("/prune/nope")

        assert response.status_code == 404
        assert response.json()["error"] == "set not found"

    def test_misconfigured_set_is_400(self, client):
        response = client.get("/prune/R2_2")

        assert response.status_code == 400
        assert response.json()["ok"] is False

    def test_failing_set_is_500(self, client):
        response = client.get("/prune/S3")

        assert response.status_code == 500
        assert "InvalidAccessKeyId" in response.json()["error"]

    def test_negative_ttl_is_rejected(self, client):
        response = client.get("/prune", params={"ttl": -5})

        assert response.status_code == 422


class TestServiceSurface:
    """Health checks and top-level error handling."""

    def test_readiness_lists_every_set(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        checks = {c["name"]: c["status"] for c in response.json()["checks"]}
        assert checks == {"set:R2": "ok", "set:R2_2": "error", "set:S3": "ok"}

    def test_not_ready_without_usable_sets(self):
        registry = BackendRegistry([make_backend("R2", ready=False)])
        client = TestClient(create_app(settings=Settings(), registry=registry))

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_unexpected_error_is_500_and_service_survives(self, registry):
        app = create_app(settings=Settings(), registry=registry)

        def broken_registry():
            raise RuntimeError("boom")

        app.dependency_overrides[get_registry] = broken_registry
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/files")

        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "boom"}

        app.dependency_overrides.clear()
        assert client.get("/health").status_code == 200
