"""
Tests for the local fallback estimator.
"""
import pytest

from app.core.fallback import FallbackResult, LocalFallbackEstimator
from tests.conftest import build_responses

ORDER = list(range(1, 13))


class TestRawPercentile:
    """Tests for the heuristic around the reference count."""

    def setup_method(self):
        self.estimator = LocalFallbackEstimator(item_count=12, reference_count=7)

    def test_reference_count_is_midpoint(self):
        assert self.estimator.raw_percentile(7) == 50.0

    def test_below_reference_scaled_by_reference(self):
        # 50 - (4/7) * 40
        assert self.estimator.raw_percentile(3) == pytest.approx(27.142857, rel=1e-6)
        assert self.estimator.raw_percentile(0) == pytest.approx(10.0)

    def test_above_reference_scaled_by_item_count(self):
        # 50 + (5/12) * 40
        assert self.estimator.raw_percentile(12) == pytest.approx(66.666667, rel=1e-6)
        assert self.estimator.raw_percentile(8) == pytest.approx(53.333333, rel=1e-6)

    def test_monotonic(self):
        values = [self.estimator.raw_percentile(c) for c in range(13)]

        assert values == sorted(values)


class TestEstimate:
    """Tests for LocalFallbackEstimator.estimate."""

    def setup_method(self):
        self.estimator = LocalFallbackEstimator(item_count=12, reference_count=7)

    def test_three_yes(self):
        result = self.estimator.estimate(build_responses(ORDER, [1, 2, 3]))

        assert isinstance(result, FallbackResult)
        assert result.percentile == 27
        assert result.category == "Somewhat less likely to perceive as overweight"
        assert result.overweight_count == 3
        assert result.score == 25  # unweighted: 3 / 12
        assert result.used_fallback is True

    def test_no_yes(self):
        result = self.estimator.estimate(build_responses(ORDER))

        assert result.percentile == 10
        assert result.category == "Less likely to perceive as overweight"
        assert result.score == 0

    def test_reference_count_yes(self):
        result = self.estimator.estimate(build_responses(ORDER, range(1, 8)))

        assert result.percentile == 50
        assert result.category == "About average in weight perception"

    def test_all_yes(self):
        result = self.estimator.estimate(build_responses(ORDER, ORDER))

        assert result.percentile == 67
        assert result.category == "About average in weight perception"
        assert result.score == 100

    def test_more_likely_bucket_reachable_with_low_reference(self):
        estimator = LocalFallbackEstimator(item_count=12, reference_count=1)

        result = estimator.estimate(build_responses(ORDER, ORDER))

        assert result.percentile == 87  # 50 + (11/12) * 40 = 86.67
        assert result.category == "More likely to perceive as overweight"

    def test_category_uses_unrounded_percentile(self):
        """50 - (7/11) * 40 = 24.55: rounds to 25 but stays in the lowest bucket."""
        estimator = LocalFallbackEstimator(item_count=12, reference_count=11)

        result = estimator.estimate(build_responses(ORDER, range(1, 5)))

        assert result.percentile == 25
        assert result.category == "Less likely to perceive as overweight"

    def test_percentile_bounds(self):
        for reference in range(1, 13):
            estimator = LocalFallbackEstimator(item_count=12, reference_count=reference)
            for count in range(13):
                result = estimator.estimate(build_responses(ORDER, range(1, count + 1)))
                assert 1 <= result.percentile <= 99

    def test_empty_responses_do_not_raise(self):
        result = self.estimator.estimate([])

        assert result.overweight_count == 0
        assert result.score == 0


class TestConstruction:
    @pytest.mark.parametrize("reference", [0, 13, -1])
    def test_reference_count_out_of_range(self, reference):
        with pytest.raises(ValueError, match="reference_count"):
            LocalFallbackEstimator(item_count=12, reference_count=reference)

    def test_item_count_must_be_positive(self):
        with pytest.raises(ValueError, match="item_count"):
            LocalFallbackEstimator(item_count=0, reference_count=1)
