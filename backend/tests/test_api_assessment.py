"""
Integration tests for the assessment endpoints.
"""
from fastapi.testclient import TestClient

from app.api.v1._dependencies import get_statistics_engine
from app.core.config import settings
from app.core.error_responses import ErrorMessages
from app.core.exceptions import StorageError
from app.statistics import AggregateStatistics, InMemoryStorage, PopulationStatisticsEngine
from tests.conftest import build_payload, create_test_application

PREFIX = settings.API_PREFIX
ORDER = [5, 12, 1, 8, 3, 10, 2, 7, 11, 4, 9, 6]


class BrokenStorage(InMemoryStorage):
    def get(self, key):
        raise StorageError("get", key, ConnectionError("connection refused"))

    def set(self, key, value, ttl=None):
        raise StorageError("set", key, ConnectionError("connection refused"))

    def compare_and_set(self, key, expected, value, ttl=None):
        raise StorageError("compare_and_set", key, ConnectionError("connection refused"))


def broken_client() -> TestClient:
    app = create_test_application(BrokenStorage())
    engine = PopulationStatisticsEngine(
        app.state.statistics_storage, max_retries=1, retry_backoff_seconds=0
    )
    app.dependency_overrides[get_statistics_engine] = lambda: engine
    return TestClient(app)


class TestSubmitEndpoint:
    """Tests for POST /submit."""

    def test_submit_success(self, client):
        response = client.post(f"{PREFIX}/submit", json=build_payload(ORDER, [1, 2, 3]))

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["score"] == 33
        assert data["percentile"] == 33
        assert data["category"] == "Somewhat less likely to perceive as overweight"
        assert data["sessionId"]
        assert data["timestamp"].endswith("Z")

    def test_submit_updates_statistics(self, client, statistics_engine):
        for _ in range(3):
            client.post(f"{PREFIX}/submit", json=build_payload(ORDER, [1]))

        assert statistics_engine.get_aggregate().count == 3

    def test_submit_accepts_snake_case(self, client):
        payload = {
            "responses": [
                {
                    "image_number": item,
                    "is_fat": False,
                    "response_time": 500,
                    "position": index + 1,
                }
                for index, item in enumerate(ORDER)
            ],
            "image_order": ORDER,
        }

        response = client.post(f"{PREFIX}/submit", json=payload)

        assert response.status_code == 200
        assert response.json()["score"] == 0

    def test_submit_ranks_against_population(self, client, statistics_engine):
        statistics_engine.storage.set(
            statistics_engine.stats_key,
            AggregateStatistics(count=100, mean=50.0, stddev=20.0).to_json(),
        )

        response = client.post(f"{PREFIX}/submit", json=build_payload(ORDER, ORDER))

        # score 100: 50 + 15 * 2.5 = 87.5 → 88
        assert response.json()["percentile"] == 88
        assert response.json()["category"] == "Much more likely to perceive as overweight"

    def test_incomplete_submission_rejected(self, client, statistics_engine):
        payload = build_payload(ORDER)
        payload["responses"] = payload["responses"][:-1]

        response = client.post(f"{PREFIX}/submit", json=payload)

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid response data."}
        assert statistics_engine.storage.get(statistics_engine.stats_key) is None

    def test_order_mismatch_rejected(self, client):
        payload = build_payload(ORDER)
        payload["imageOrder"] = sorted(ORDER)

        response = client.post(f"{PREFIX}/submit", json=payload)

        assert response.status_code == 400

    def test_duplicate_images_rejected(self, client):
        order = [1, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11]

        response = client.post(f"{PREFIX}/submit", json=build_payload(order))

        assert response.status_code == 400

    def test_malformed_types_are_422(self, client):
        payload = build_payload(ORDER)
        payload["responses"][0]["responseTime"] = "fast"

        response = client.post(f"{PREFIX}/submit", json=payload)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert isinstance(detail, list)
        assert "input" not in detail[0]

    def test_missing_body_is_422(self, client):
        response = client.post(f"{PREFIX}/submit")

        assert response.status_code == 422

    def test_storage_outage_still_returns_result(self):
        with broken_client() as client:
            response = client.post(f"{PREFIX}/submit", json=build_payload(ORDER, [1, 2, 3]))

        assert response.status_code == 200
        assert response.json()["score"] == 33
        assert response.json()["percentile"] == 33

    def test_request_id_echoed(self, client):
        response = client.post(
            f"{PREFIX}/submit",
            json=build_payload(ORDER),
            headers={"X-Request-ID": "req-123"},
        )

        assert response.headers["X-Request-ID"] == "req-123"


class TestStatsEndpoint:
    """Tests for GET /stats."""

    def test_aggregate_defaults(self, client):
        response = client.get(f"{PREFIX}/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 0
        assert data["mean"] == 50.0
        assert data["stddev"] == 20.0
        assert data["histogram"] == {}
        assert "lastUpdated" in data

    def test_aggregate_after_submissions(self, client):
        client.post(f"{PREFIX}/submit", json=build_payload(ORDER, ORDER))
        client.post(f"{PREFIX}/submit", json=build_payload(ORDER))

        data = client.get(f"{PREFIX}/stats").json()

        assert data["count"] == 2
        assert data["histogram"] == {"100": 1, "0": 1}

    def test_session_lookup(self, client):
        submitted = client.post(
            f"{PREFIX}/submit", json=build_payload(ORDER, [1, 2, 3])
        ).json()

        response = client.get(f"{PREFIX}/stats", params={"session": submitted["sessionId"]})

        assert response.status_code == 200
        assert response.json() == {
            "sessionId": submitted["sessionId"],
            "score": 33,
            "percentile": 33,
            "timestamp": submitted["timestamp"],
        }

    def test_unknown_session(self, client):
        response = client.get(f"{PREFIX}/stats", params={"session": "does-not-exist"})

        assert response.status_code == 404
        assert response.json() == {"detail": "Session not found."}

    def test_storage_unavailable_is_503(self):
        with broken_client() as client:
            response = client.get(f"{PREFIX}/stats")

        assert response.status_code == 503
        assert response.json() == {"detail": ErrorMessages.STATISTICS_UNAVAILABLE}

    def test_session_lookup_storage_unavailable_is_503(self):
        with broken_client() as client:
            response = client.get(f"{PREFIX}/stats", params={"session": "abc"})

        assert response.status_code == 503
