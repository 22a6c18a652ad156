"""
Perception Score Calculation Module.

This module converts a completed assessment session into a bounded
integer score (0-100). The architecture is pluggable: the weighting rule
is a named strategy selected via ``settings.SCORING_STRATEGY``.

Strategies
==========
**unweighted**
- score = round(100 * overweight_count / N)
- Used by the browser client for its locally displayed score

**weighted** (server default)
- A "yes" on an image in the lower half of the id range (1..floor(N/2))
  is worth 2 points, any other "yes" is worth 1 point
- score = round(100 * weighted_sum / max_possible_sum), clamped to 0-100
- Images are numbered from slimmest to heaviest, so marking a slim image
  as overweight says more about the respondent than marking a heavy one

For odd N the lower half is floor(N/2) images; the remaining ceil(N/2)
images carry weight 1.

Rounding is half-up (``Math.round`` semantics) so scores match those
computed by other clients that share the same statistics store.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Protocol, Sequence

from app.core.config import settings
from app.core.session import Response

logger = logging.getLogger(__name__)

SCORE_MIN = 0
SCORE_MAX = 100


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, with .5 rounding towards positive infinity.

    Python's built-in ``round`` uses banker's rounding, which would make
    50 + 0.5 round to 50 rather than 51.
    """
    return int(math.floor(value + 0.5))


def clamp(value: int, lower: int, upper: int) -> int:
    """Clamp an integer into [lower, upper]."""
    return max(lower, min(upper, value))


@dataclass
class PerceptionScore:
    """Result of score derivation."""

    score: int
    overweight_count: int
    total_items: int
    strategy: str


class ScoringStrategy(Protocol):
    """
    Protocol for perception scoring strategies.

    Any class implementing this protocol can be used as a scoring strategy.
    """

    name: str

    def calculate_score(
        self, responses: Sequence[Response], item_count: int
    ) -> PerceptionScore:
        """
        Calculate the perception score for a completed session.

        Args:
            responses: The session's responses
            item_count: Number of images in the assessment (N)

        Returns:
            PerceptionScore with the bounded score and counts
        """
        ...


def _validate_item_count(item_count: int) -> None:
    if item_count <= 0:
        raise ValueError("item_count must be positive")


class UnweightedScoring:
    """
    Share of images marked as overweight, as a percentage.

    Formula: score = round(100 * overweight_count / N)

    Example:
        12 images, 6 marked overweight → 50
    """

    name = "unweighted"

    def calculate_score(
        self, responses: Sequence[Response], item_count: int
    ) -> PerceptionScore:
        _validate_item_count(item_count)
        overweight_count = sum(1 for r in responses if r.is_overweight)
        score = round_half_up(100 * overweight_count / item_count)

        return PerceptionScore(
            score=clamp(score, SCORE_MIN, SCORE_MAX),
            overweight_count=overweight_count,
            total_items=item_count,
            strategy=self.name,
        )


class WeightedScoring:
    """
    Lower-half-weighted score.

    Formula:
        weighted_sum = sum(2 if item_id <= floor(N/2) else 1, for each "yes")
        max_possible = 2 * floor(N/2) + 1 * (N - floor(N/2))
        score = round(100 * weighted_sum / max_possible)

    Example:
        12 images, "yes" only on images 1, 2, 3 → 6 / 18 → 33
    """

    name = "weighted"

    LOWER_HALF_WEIGHT = 2
    UPPER_HALF_WEIGHT = 1

    def max_possible_sum(self, item_count: int) -> int:
        lower_half = item_count // 2
        return (
            self.LOWER_HALF_WEIGHT * lower_half
            + self.UPPER_HALF_WEIGHT * (item_count - lower_half)
        )

    def calculate_score(
        self, responses: Sequence[Response], item_count: int
    ) -> PerceptionScore:
        _validate_item_count(item_count)
        lower_half = item_count // 2

        weighted_sum = 0
        overweight_count = 0
        for response in responses:
            if not response.is_overweight:
                continue
            overweight_count += 1
            if response.item_id <= lower_half:
                weighted_sum += self.LOWER_HALF_WEIGHT
            else:
                weighted_sum += self.UPPER_HALF_WEIGHT

        raw = 100 * weighted_sum / self.max_possible_sum(item_count)

        return PerceptionScore(
            score=clamp(round_half_up(raw), SCORE_MIN, SCORE_MAX),
            overweight_count=overweight_count,
            total_items=item_count,
            strategy=self.name,
        )


SCORING_STRATEGIES: Dict[str, ScoringStrategy] = {
    UnweightedScoring.name: UnweightedScoring(),
    WeightedScoring.name: WeightedScoring(),
}


def get_scoring_strategy(name: str) -> ScoringStrategy:
    """
    Look up a scoring strategy by name.

    Raises:
        ValueError: If no strategy has that name
    """
    try:
        return SCORING_STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown scoring strategy '{name}'. "
            f"Available: {sorted(SCORING_STRATEGIES)}"
        ) from None


# Default scoring strategy (selected by configuration, can be swapped)
_default_strategy: ScoringStrategy = get_scoring_strategy(settings.SCORING_STRATEGY)


def set_scoring_strategy(strategy: ScoringStrategy) -> None:
    """
    Set the global scoring strategy.

    Args:
        strategy: Scoring strategy to use
    """
    global _default_strategy
    logger.info(f"Scoring strategy set to '{strategy.name}'")
    _default_strategy = strategy


def get_default_strategy() -> ScoringStrategy:
    return _default_strategy
