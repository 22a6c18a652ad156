"""
Assessment submission and population statistics endpoints.
"""
import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query

from app.api.v1._dependencies import get_statistics_engine, get_submission_service
from app.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_not_found,
    raise_service_unavailable,
)
from app.core.exceptions import (
    InvalidSubmissionError,
    StorageError,
    TransientStorageFailure,
)
from app.schemas.assessment import (
    AggregateStatisticsResponse,
    SessionStatsResponse,
    SubmissionRequest,
    SubmissionResponse,
)
from app.services.submission_service import SubmissionService
from app.statistics.engine import PopulationStatisticsEngine

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/submit", response_model=SubmissionResponse)
def submit_assessment(
    submission: SubmissionRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    """
    Submit a completed assessment session.

    Scores the responses, ranks the score against the population and
    folds it into the running statistics.

    Raises:
        HTTPException: 400 if the response set is incomplete or inconsistent
    """
    try:
        outcome = service.submit(submission)
    except InvalidSubmissionError as e:
        logger.info(f"Rejected submission: {e}")
        raise_bad_request(ErrorMessages.INVALID_RESPONSE_DATA)

    return SubmissionResponse(
        success=True,
        session_id=outcome.session_id,
        score=outcome.score,
        percentile=outcome.percentile,
        category=outcome.category,
        timestamp=outcome.timestamp,
    )


@router.get(
    "/stats",
    response_model=Union[SessionStatsResponse, AggregateStatisticsResponse],
)
def get_statistics(
    session: Optional[str] = Query(
        None, description="Session id to look up instead of the aggregate"
    ),
    engine: PopulationStatisticsEngine = Depends(get_statistics_engine),
):
    """
    Return the population statistics, or one session's result.

    Without ``session`` the running aggregate is returned. With it, the
    stored score is returned together with its percentile against the
    current aggregate.

    Raises:
        HTTPException: 404 if the session is unknown, 503 if storage is down
    """
    if session is not None:
        try:
            record = engine.get_submission(session)
        except StorageError as e:
            logger.error(f"Session lookup failed: {e}", extra={"session_id": session})
            raise_service_unavailable(ErrorMessages.STATISTICS_UNAVAILABLE)

        if record is None:
            raise_not_found(ErrorMessages.SESSION_NOT_FOUND)

        return SessionStatsResponse(
            session_id=record.session_id,
            score=record.score,
            percentile=engine.percentile(record.score),
            timestamp=record.timestamp,
        )

    try:
        aggregate = engine.get_aggregate()
    except TransientStorageFailure as e:
        logger.error(f"Statistics read failed: {e}")
        raise_service_unavailable(ErrorMessages.STATISTICS_UNAVAILABLE)

    return AggregateStatisticsResponse(
        count=aggregate.count,
        mean=aggregate.mean,
        stddev=aggregate.stddev,
        histogram=dict(aggregate.histogram),
        last_updated=aggregate.last_updated,
    )
