"""
Percentile category labels.

Two tables exist and are intentionally different:

- ``SERVER_CATEGORIES``: five buckets, used for results computed against
  the population statistics.
- ``FALLBACK_CATEGORIES``: four buckets, used when the percentile was
  estimated locally because the statistics service was unreachable.

Each table is a list of (exclusive upper bound, label) pairs checked in
order; the final entry has no bound.
"""

from typing import List, Optional, Tuple

CategoryTable = List[Tuple[Optional[float], str]]

SERVER_CATEGORIES: CategoryTable = [
    (20, "Much less likely to perceive as overweight"),
    (40, "Somewhat less likely to perceive as overweight"),
    (60, "About average in weight perception"),
    (80, "Somewhat more likely to perceive as overweight"),
    (None, "Much more likely to perceive as overweight"),
]

FALLBACK_CATEGORIES: CategoryTable = [
    (25, "Less likely to perceive as overweight"),
    (50, "Somewhat less likely to perceive as overweight"),
    (75, "About average in weight perception"),
    (None, "More likely to perceive as overweight"),
]


def categorize(percentile: float, table: CategoryTable) -> str:
    """Return the label of the first bucket whose upper bound exceeds ``percentile``."""
    for upper_bound, label in table:
        if upper_bound is None or percentile < upper_bound:
            return label
    # Tables always end with an unbounded bucket
    return table[-1][1]


def server_category(percentile: float) -> str:
    return categorize(percentile, SERVER_CATEGORIES)


def fallback_category(percentile: float) -> str:
    return categorize(percentile, FALLBACK_CATEGORIES)
