"""
Pytest configuration and shared fixtures for testing.
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that require live external services",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


from app.api.v1._dependencies import get_statistics_engine  # noqa: E402
from app.core.session import Response  # noqa: E402
from app.statistics import InMemoryStorage, PopulationStatisticsEngine  # noqa: E402

ITEM_COUNT = 12


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests."""
    yield


def create_test_application(storage=None):
    """Create the full app (routes, middleware, handlers) with the lifespan disabled."""
    from app.main import create_application

    test_app = create_application(storage=storage or InMemoryStorage())
    test_app.router.lifespan_context = _test_lifespan
    return test_app


def build_responses(
    order: Iterable[int], overweight_items: Iterable[int] = ()
) -> List[Response]:
    """Responses following ``order``, answering "yes" for ``overweight_items``."""
    yes = set(overweight_items)
    return [
        Response(item_id=item, is_overweight=item in yes, elapsed_ms=800, position=index + 1)
        for index, item in enumerate(order)
    ]


def build_payload(
    order: Optional[List[int]] = None,
    overweight_items: Iterable[int] = (),
    item_count: int = ITEM_COUNT,
) -> Dict[str, Any]:
    """JSON body for POST /submit, camelCase as the browser client sends it."""
    order = order if order is not None else list(range(1, item_count + 1))
    responses = build_responses(order, overweight_items)
    return {
        "responses": [r.to_payload() for r in responses],
        "imageOrder": list(order),
        "totalTime": 800 * len(responses),
        "timestamp": "2026-01-01T12:00:00.000Z",
    }


@pytest.fixture
def memory_storage():
    """Fresh in-memory storage for each test."""
    return InMemoryStorage()


@pytest.fixture
def statistics_engine(memory_storage):
    """Engine over in-memory storage with retry backoff disabled."""
    return PopulationStatisticsEngine(memory_storage, retry_backoff_seconds=0)


@pytest.fixture
def test_app(memory_storage, statistics_engine):
    """Application wired to the per-test statistics engine."""
    application = create_test_application(memory_storage)
    application.dependency_overrides[get_statistics_engine] = lambda: statistics_engine
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    with TestClient(test_app) as test_client:
        yield test_client
