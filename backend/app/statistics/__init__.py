"""
Population statistics: running aggregate, percentile estimation and storage.
"""
from .aggregate import AggregateStatistics, apply_score, histogram_bucket
from .engine import PopulationStatisticsEngine, estimate_percentile
from .records import SubmissionRecord, generate_session_id
from .storage import (
    DatabaseStorage,
    InMemoryStorage,
    StatisticsStorage,
)

__all__ = [
    "AggregateStatistics",
    "apply_score",
    "histogram_bucket",
    "PopulationStatisticsEngine",
    "estimate_percentile",
    "SubmissionRecord",
    "generate_session_id",
    "StatisticsStorage",
    "InMemoryStorage",
    "DatabaseStorage",
]
