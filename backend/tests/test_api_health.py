"""
Tests for health check endpoints.
"""
from fastapi.testclient import TestClient

from app.api.v1._dependencies import get_statistics_engine
from app.core.config import settings
from app.core.exceptions import StorageError
from app.statistics import InMemoryStorage, PopulationStatisticsEngine
from tests.conftest import build_payload, create_test_application


class UnreachableStorage(InMemoryStorage):
    def get(self, key):
        raise StorageError("get", key, ConnectionError("connection refused"))


class TestHealthEndpoints:
    def test_health_check(self, client):
        response = client.get(f"{settings.API_PREFIX}/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == settings.APP_NAME
        assert data["version"] == settings.APP_VERSION
        assert data["statistics"] == {
            "backend": "InMemoryStorage",
            "reachable": True,
            "submissions": 0,
        }
        assert "timestamp" in data

    def test_health_counts_submissions(self, client):
        client.post(f"{settings.API_PREFIX}/submit", json=build_payload())

        data = client.get(f"{settings.API_PREFIX}/health").json()

        assert data["statistics"]["submissions"] == 1

    def test_unreachable_storage_is_degraded(self):
        app = create_test_application(UnreachableStorage())
        engine = PopulationStatisticsEngine(
            app.state.statistics_storage, max_retries=1, retry_backoff_seconds=0
        )
        app.dependency_overrides[get_statistics_engine] = lambda: engine

        with TestClient(app) as client:
            response = client.get(f"{settings.API_PREFIX}/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["statistics"]["reachable"] is False
        assert response.json()["statistics"]["submissions"] is None

    def test_ping(self, client):
        response = client.get(f"{settings.API_PREFIX}/ping")

        assert response.status_code == 200
        assert response.json() == {"message": "pong"}

    def test_root(self):
        from app.main import app

        with TestClient(app) as client:
            response = client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == f"{settings.API_PREFIX}/docs"
