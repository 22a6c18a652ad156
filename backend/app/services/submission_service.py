"""
Submission handling: validate, score, rank, then update the population statistics.

The percentile returned to the participant is computed against the
aggregate as it was before their own score is ingested. The statistics
update and the submission record are best-effort: if storage fails the
submission is still acknowledged.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from app.core.categories import server_category
from app.core.datetime_utils import utc_now_iso
from app.core.graceful_failure import graceful_failure, graceful_failure_decorator
from app.core.scoring import ScoringStrategy, clamp, get_default_strategy
from app.core.session import Response, validate_response_set
from app.schemas.assessment import SubmissionRequest
from app.statistics.aggregate import AggregateStatistics
from app.statistics.engine import PERCENTILE_MAX, PERCENTILE_MIN, PopulationStatisticsEngine
from app.statistics.records import SubmissionRecord, generate_session_id

logger = logging.getLogger(__name__)


@dataclass
class SubmissionOutcome:
    """Result handed back to the transport layer."""

    session_id: str
    score: int
    percentile: int
    category: str
    timestamp: str
    statistics_updated: bool


def to_responses(request: SubmissionRequest) -> List[Response]:
    """Convert validated request items into domain responses."""
    return [
        Response(
            item_id=item.image_number,
            is_overweight=item.is_fat,
            elapsed_ms=item.response_time,
            position=item.position,
        )
        for item in request.responses
    ]


class SubmissionService:
    """Process completed assessment sessions."""

    def __init__(
        self,
        engine: PopulationStatisticsEngine,
        item_count: int,
        scoring_strategy: Optional[ScoringStrategy] = None,
    ):
        self.engine = engine
        self.item_count = item_count
        self.scoring_strategy = scoring_strategy or get_default_strategy()

    @graceful_failure_decorator("read population statistics")
    def _read_snapshot(self) -> Optional[AggregateStatistics]:
        return self.engine.get_aggregate()

    def submit(self, request: SubmissionRequest) -> SubmissionOutcome:
        """
        Score a submission and update the population statistics.

        Raises:
            InvalidSubmissionError: If the response set is incomplete or
                inconsistent. Raised before any state is touched.
        """
        responses = to_responses(request)
        validate_response_set(responses, request.image_order, self.item_count)

        score = self.scoring_strategy.calculate_score(responses, self.item_count).score
        session_id = generate_session_id()
        timestamp = utc_now_iso()
        log_context = {"session_id": session_id}

        with graceful_failure(
            "store submission record", logger, log_level=logging.ERROR, context=log_context
        ):
            self.engine.record_submission(
                SubmissionRecord(
                    session_id=session_id,
                    timestamp=timestamp,
                    score=score,
                    responses=[
                        item.model_dump(by_alias=True) for item in request.responses
                    ],
                    image_order=list(request.image_order),
                    total_time=request.total_time,
                )
            )

        # Rank against the pre-update aggregate
        snapshot = self._read_snapshot()
        if snapshot is not None:
            percentile = self.engine.percentile(score, snapshot)
        else:
            percentile = clamp(score, PERCENTILE_MIN, PERCENTILE_MAX)
        category = server_category(percentile)

        statistics_updated = False
        with graceful_failure("update population statistics", logger, context=log_context):
            self.engine.ingest(score)
            statistics_updated = True

        logger.info(
            "Submission processed",
            extra={"session_id": session_id, "score": score, "percentile": percentile},
        )

        return SubmissionOutcome(
            session_id=session_id,
            score=score,
            percentile=percentile,
            category=category,
            timestamp=timestamp,
            statistics_updated=statistics_updated,
        )
