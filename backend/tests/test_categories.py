"""
Tests for percentile category tables.
"""
import pytest

from app.core.categories import (
    FALLBACK_CATEGORIES,
    SERVER_CATEGORIES,
    categorize,
    fallback_category,
    server_category,
)


class TestServerCategory:
    """Five-bucket table used for server results."""

    @pytest.mark.parametrize(
        "percentile,label",
        [
            (1, "Much less likely to perceive as overweight"),
            (19, "Much less likely to perceive as overweight"),
            (20, "Somewhat less likely to perceive as overweight"),
            (39, "Somewhat less likely to perceive as overweight"),
            (40, "About average in weight perception"),
            (59, "About average in weight perception"),
            (60, "Somewhat more likely to perceive as overweight"),
            (79, "Somewhat more likely to perceive as overweight"),
            (80, "Much more likely to perceive as overweight"),
            (99, "Much more likely to perceive as overweight"),
        ],
    )
    def test_boundaries(self, percentile, label):
        assert server_category(percentile) == label

    def test_has_five_buckets(self):
        assert len(SERVER_CATEGORIES) == 5


class TestFallbackCategory:
    """Four-bucket table used for locally estimated results."""

    @pytest.mark.parametrize(
        "percentile,label",
        [
            (10, "Less likely to perceive as overweight"),
            (24.99, "Less likely to perceive as overweight"),
            (25, "Somewhat less likely to perceive as overweight"),
            (49.5, "Somewhat less likely to perceive as overweight"),
            (50, "About average in weight perception"),
            (74.9, "About average in weight perception"),
            (75, "More likely to perceive as overweight"),
            (99, "More likely to perceive as overweight"),
        ],
    )
    def test_boundaries(self, percentile, label):
        assert fallback_category(percentile) == label

    def test_has_four_buckets(self):
        assert len(FALLBACK_CATEGORIES) == 4


def test_tables_differ_at_same_percentile():
    """The two tables are separate; 22 lands in different buckets."""
    assert server_category(22) == "Somewhat less likely to perceive as overweight"
    assert fallback_category(22) == "Less likely to perceive as overweight"


def test_categorize_with_custom_table():
    table = [(10, "low"), (None, "high")]

    assert categorize(5, table) == "low"
    assert categorize(10, table) == "high"
