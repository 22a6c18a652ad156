"""
Local fallback estimator.

When the statistics service cannot be reached, the client still shows a
result. The percentile is a fixed heuristic around an assumed average
respondent who marks ``reference_count`` of the N images as overweight:

- fewer "yes" answers than the reference moves the percentile down,
  scaled by the reference count (at most 40 points)
- more "yes" answers moves it up, scaled by N
- exactly the reference count lands on 50

This is the error handler for an unreachable engine, so it never raises.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from app.core.categories import fallback_category
from app.core.scoring import UnweightedScoring, clamp, round_half_up
from app.core.session import Response

logger = logging.getLogger(__name__)

PERCENTILE_MIN = 1
PERCENTILE_MAX = 99
PERCENTILE_MIDPOINT = 50
PERCENTILE_SPREAD = 40


@dataclass
class FallbackResult:
    """Locally estimated result shown when the statistics service is unavailable."""

    score: int
    percentile: int
    category: str
    overweight_count: int
    used_fallback: bool = True


class LocalFallbackEstimator:
    """Estimate a percentile from a completed session without the statistics service."""

    def __init__(self, item_count: int = 12, reference_count: int = 7):
        """
        Args:
            item_count: Number of images in the assessment (N)
            reference_count: Images an average respondent marks as overweight

        Raises:
            ValueError: If the reference count is outside 1..item_count
        """
        if item_count <= 0:
            raise ValueError("item_count must be positive")
        if not 1 <= reference_count <= item_count:
            raise ValueError(
                f"reference_count must be between 1 and {item_count}, got {reference_count}"
            )
        self.item_count = item_count
        self.reference_count = reference_count
        self._scoring = UnweightedScoring()

    def raw_percentile(self, overweight_count: int) -> float:
        """Unrounded percentile for a given number of "yes" answers."""
        reference = self.reference_count
        if overweight_count < reference:
            return max(
                PERCENTILE_MIN,
                PERCENTILE_MIDPOINT
                - ((reference - overweight_count) / reference) * PERCENTILE_SPREAD,
            )
        if overweight_count > reference:
            return min(
                PERCENTILE_MAX,
                PERCENTILE_MIDPOINT
                + ((overweight_count - reference) / self.item_count) * PERCENTILE_SPREAD,
            )
        return float(PERCENTILE_MIDPOINT)

    def estimate(self, responses: Sequence[Response]) -> FallbackResult:
        """
        Estimate score, percentile and category for a session.

        The category is taken from the unrounded percentile using the
        four-bucket fallback table.
        """
        overweight_count = sum(1 for r in responses if r.is_overweight)
        raw = self.raw_percentile(overweight_count)
        percentile = clamp(round_half_up(raw), PERCENTILE_MIN, PERCENTILE_MAX)
        score = self._scoring.calculate_score(responses, self.item_count).score

        logger.debug(
            f"Fallback estimate: overweight_count={overweight_count}, "
            f"percentile={percentile}, score={score}"
        )

        return FallbackResult(
            score=score,
            percentile=percentile,
            category=fallback_category(raw),
            overweight_count=overweight_count,
        )
