"""
Tests for statistics storage selection at application startup.
"""
from unittest.mock import MagicMock, patch

import pytest

from app import main
from app.statistics import DatabaseStorage, InMemoryStorage


class TestSanitizeRedisUrl:
    def test_password_removed(self):
        url = "redis://:hunter2@cache.internal:6380/2"

        assert main._sanitize_redis_url(url) == "redis://cache.internal:6380/2"

    def test_url_without_password_unchanged(self):
        assert main._sanitize_redis_url("redis://localhost:6379/0") == "redis://localhost:6379/0"


class TestCreateStatisticsStorage:
    """Tests for _create_statistics_storage."""

    def test_memory_by_default(self):
        with patch.object(main.settings, "STATS_STORAGE", "memory"):
            assert isinstance(main._create_statistics_storage(), InMemoryStorage)

    def test_redis_connected(self):
        redis_storage = MagicMock()
        redis_storage.is_connected.return_value = True

        with patch.object(main.settings, "STATS_STORAGE", "redis"), patch(
            "app.statistics.storage.RedisStorage", return_value=redis_storage
        ):
            assert main._create_statistics_storage() is redis_storage

    def test_redis_unreachable_falls_back_to_memory(self):
        redis_storage = MagicMock()
        redis_storage.is_connected.return_value = False

        with patch.object(main.settings, "STATS_STORAGE", "redis"), patch(
            "app.statistics.storage.RedisStorage", return_value=redis_storage
        ):
            storage = main._create_statistics_storage()

        assert isinstance(storage, InMemoryStorage)
        redis_storage.close.assert_called_once()

    def test_redis_missing_library_falls_back_to_memory(self):
        with patch.object(main.settings, "STATS_STORAGE", "redis"), patch(
            "app.statistics.storage.RedisStorage", side_effect=ImportError("no redis")
        ):
            assert isinstance(main._create_statistics_storage(), InMemoryStorage)

    def test_database(self, tmp_path):
        with patch.object(main.settings, "STATS_STORAGE", "database"), patch.object(
            main.settings, "DATABASE_URL", f"sqlite:///{tmp_path / 'app.db'}"
        ):
            storage = main._create_statistics_storage()

        try:
            assert isinstance(storage, DatabaseStorage)
            storage.set("k", "v")
            assert storage.get("k") == "v"
        finally:
            storage.close()


def test_engine_uses_configured_tuning():
    with patch.object(main.settings, "STATS_MIN_SAMPLE_SIZE", 25), patch.object(
        main.settings, "STATS_VARIANCE_METHOD", "welford"
    ):
        engine = main.create_statistics_engine(InMemoryStorage())

    assert engine.min_sample_size == 25
    assert engine.variance_method == "welford"
    assert engine.stats_key == main.settings.STATS_KEY


@pytest.mark.parametrize("bad_reference", [0, 13])
def test_settings_reject_bad_reference_count(bad_reference):
    from pydantic import ValidationError

    from app.core.config import Settings

    with pytest.raises(ValidationError):
        Settings(ASSESSMENT_ITEM_COUNT=12, FALLBACK_REFERENCE_COUNT=bad_reference)


def test_settings_reject_tiny_item_count():
    from pydantic import ValidationError

    from app.core.config import Settings

    with pytest.raises(ValidationError):
        Settings(ASSESSMENT_ITEM_COUNT=1, FALLBACK_REFERENCE_COUNT=1)


def test_run_serves_configured_host_and_port():
    with patch("uvicorn.run") as mock_run, patch.object(
        main.settings, "HOST", "127.0.0.1"
    ), patch.object(main.settings, "PORT", 9001), patch.object(
        main.settings, "ENV", "production"
    ):
        main.run()

    args, kwargs = mock_run.call_args
    assert args == ("app.main:app",)
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9001
    assert kwargs["reload"] is False
    assert kwargs["log_config"] is None
