"""
Shared FastAPI dependencies for v1 endpoints.
"""
from fastapi import Depends, Request

from app.core.config import settings
from app.services.submission_service import SubmissionService
from app.statistics.engine import PopulationStatisticsEngine


def get_statistics_engine(request: Request) -> PopulationStatisticsEngine:
    """Return the engine created at application startup."""
    return request.app.state.statistics_engine


def get_submission_service(
    engine: PopulationStatisticsEngine = Depends(get_statistics_engine),
) -> SubmissionService:
    return SubmissionService(engine, item_count=settings.ASSESSMENT_ITEM_COUNT)
