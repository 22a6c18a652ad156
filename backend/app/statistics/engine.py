"""
Population statistics engine.

Maintains the running aggregate of all submitted scores and converts a
score into a percentile against it.

Percentile Calculation
======================
- Fewer than ``min_sample_size`` submissions: the score itself (clamped to
  1-99) stands in for the percentile.
- Otherwise: z = (score - mean) / stddev, percentile = 50 + 15 * z,
  rounded half-up and clamped to 1-99.

This is a fixed linear scaling of the z-score, not an inverse normal CDF;
it is an approximation and is documented as such to participants. The
result is never 0 or 100.

Concurrency
===========
``ingest`` is a read-modify-write of the stored JSON. Backends that can
lock the key (SQL) run it under that lock; the others use an optimistic
compare-and-swap. A lost race or a storage error is retried up to
``max_retries`` times before ``TransientStorageFailure`` is raised.
"""

import logging
import random
import time
from typing import Optional

from app.core.exceptions import StorageError, TransientStorageFailure
from app.core.scoring import SCORE_MAX, SCORE_MIN, clamp, round_half_up
from app.statistics.aggregate import AggregateStatistics, VarianceMethod, apply_score
from app.statistics.records import SubmissionRecord, submission_key
from app.statistics.storage import StatisticsStorage

logger = logging.getLogger(__name__)

DEFAULT_STATS_KEY = "global:stats"
PERCENTILE_MIN = 1
PERCENTILE_MAX = 99
PERCENTILE_CENTER = 50
PERCENTILE_PER_SD = 15


def estimate_percentile(
    score: int, stats: AggregateStatistics, min_sample_size: int = 10
) -> int:
    """
    Convert a score into a percentile against the given aggregate.

    Args:
        score: Score in 0-100
        stats: Aggregate to compare against
        min_sample_size: Submissions required before the distribution is used

    Returns:
        Percentile in 1-99

    Example:
        >>> stats = AggregateStatistics(count=100, mean=50.0, stddev=20.0)
        >>> estimate_percentile(70, stats)
        65
    """
    if stats.count < min_sample_size or stats.stddev <= 0:
        return clamp(score, PERCENTILE_MIN, PERCENTILE_MAX)

    z_score = (score - stats.mean) / stats.stddev
    percentile = PERCENTILE_CENTER + z_score * PERCENTILE_PER_SD
    return clamp(round_half_up(percentile), PERCENTILE_MIN, PERCENTILE_MAX)


class PopulationStatisticsEngine:
    """
    Read/update transactions against the stored population aggregate.

    The storage backend is injected so the same engine runs against
    in-memory, Redis or SQL storage.
    """

    def __init__(
        self,
        storage: StatisticsStorage,
        *,
        stats_key: str = DEFAULT_STATS_KEY,
        min_sample_size: int = 10,
        max_retries: int = 10,
        variance_method: VarianceMethod = "legacy",
        submission_ttl: Optional[int] = 31536000,
        retry_backoff_seconds: float = 0.005,
    ):
        """
        Args:
            storage: Key-value storage backend
            stats_key: Key holding the aggregate JSON document
            min_sample_size: Submissions required before percentiles use the distribution
            max_retries: Compare-and-swap attempts per ingest
            variance_method: "legacy" recurrence or textbook "welford"
            submission_ttl: Retention for submission records in seconds (None = forever)
            retry_backoff_seconds: Upper bound of the random sleep between attempts,
                scaled by the attempt number
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.storage = storage
        self.stats_key = stats_key
        self.min_sample_size = min_sample_size
        self.max_retries = max_retries
        self.variance_method = variance_method
        self.submission_ttl = submission_ttl
        self.retry_backoff_seconds = retry_backoff_seconds

    def _parse(self, raw: str) -> AggregateStatistics:
        try:
            return AggregateStatistics.from_json(raw)
        except ValueError as e:
            raise StorageError("decode", self.stats_key, e) from e

    def _backoff(self, attempt: int) -> None:
        if self.retry_backoff_seconds > 0:
            time.sleep(random.uniform(0, self.retry_backoff_seconds * attempt))

    def _next_aggregate(self, raw: Optional[str], score: int) -> AggregateStatistics:
        current = self._parse(raw) if raw is not None else AggregateStatistics.initial()
        return apply_score(current, score, self.variance_method)

    def _apply_once(self, score: int) -> Optional[AggregateStatistics]:
        """
        One update attempt. Returns None when a concurrent writer won the
        compare-and-swap.
        """
        if self.storage.supports_locked_update:
            written = self.storage.locked_update(
                self.stats_key,
                lambda raw: self._next_aggregate(raw, score).to_json(),
            )
            return self._parse(written)

        current_raw = self.storage.get(self.stats_key)
        updated = self._next_aggregate(current_raw, score)
        if self.storage.compare_and_set(self.stats_key, current_raw, updated.to_json()):
            return updated
        return None

    def get_aggregate(self) -> AggregateStatistics:
        """
        Return a snapshot of the aggregate, materializing defaults if missing.

        Raises:
            TransientStorageFailure: If the aggregate cannot be read
        """
        try:
            raw = self.storage.get(self.stats_key)
            if raw is not None:
                return self._parse(raw)

            initial = AggregateStatistics.initial()
            if self.storage.compare_and_set(self.stats_key, None, initial.to_json()):
                logger.info("Initialized population statistics with defaults")
                return initial

            # Another writer initialized it first
            raw = self.storage.get(self.stats_key)
            return self._parse(raw) if raw is not None else initial
        except StorageError as e:
            raise TransientStorageFailure(
                "Failed to read population statistics",
                attempts=1,
                original_error=e,
            ) from e

    def ingest(self, score: int) -> AggregateStatistics:
        """
        Add one score to the aggregate atomically.

        Not idempotent: ingesting the same score twice counts it twice.

        Args:
            score: Validated score in 0-100

        Returns:
            The aggregate as written

        Raises:
            ValueError: If score is outside 0-100
            TransientStorageFailure: If no attempt could commit the update
        """
        if not SCORE_MIN <= score <= SCORE_MAX:
            raise ValueError(f"score must be between {SCORE_MIN} and {SCORE_MAX}, got {score}")

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                updated = self._apply_once(score)
                if updated is not None:
                    logger.debug(
                        f"Ingested score {score}: count={updated.count}, "
                        f"mean={updated.mean:.2f}, stddev={updated.stddev:.2f}",
                        extra={"score": score},
                    )
                    return updated

                logger.debug(
                    f"Concurrent update detected on '{self.stats_key}' "
                    f"(attempt {attempt}/{self.max_retries})"
                )
            except StorageError as e:
                last_error = e
                logger.warning(
                    f"Storage error while ingesting score (attempt {attempt}/"
                    f"{self.max_retries}): {e}"
                )

            if attempt < self.max_retries:
                self._backoff(attempt)

        raise TransientStorageFailure(
            "Failed to update population statistics",
            attempts=self.max_retries,
            original_error=last_error,
            context={"score": score},
        )

    def percentile(
        self, score: int, aggregate: Optional[AggregateStatistics] = None
    ) -> int:
        """
        Percentile of ``score`` in 1-99.

        Uses ``aggregate`` when given, otherwise reads the current one. If the
        aggregate cannot be read the clamped score is returned.
        """
        if aggregate is None:
            try:
                aggregate = self.get_aggregate()
            except TransientStorageFailure as e:
                logger.warning(f"Using score as percentile, statistics unavailable: {e}")
                return clamp(score, PERCENTILE_MIN, PERCENTILE_MAX)

        return estimate_percentile(score, aggregate, self.min_sample_size)

    def record_submission(self, record: SubmissionRecord) -> None:
        """
        Store a submission record under its session id.

        Raises:
            StorageError: If the record cannot be written
        """
        self.storage.set(
            submission_key(record.session_id),
            record.to_json(),
            ttl=self.submission_ttl,
        )

    def get_submission(self, session_id: str) -> Optional[SubmissionRecord]:
        """
        Look up a stored submission.

        Returns:
            The record, or None if unknown or expired

        Raises:
            StorageError: If the storage read fails or the record is corrupt
        """
        key = submission_key(session_id)
        raw = self.storage.get(key)
        if raw is None:
            return None
        try:
            return SubmissionRecord.from_json(raw)
        except ValueError as e:
            raise StorageError("decode", key, e) from e
