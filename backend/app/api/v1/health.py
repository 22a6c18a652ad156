"""
Health check and status endpoints.
"""
from fastapi import APIRouter, Depends

from app.api.v1._dependencies import get_statistics_engine
from app.core import settings
from app.core.datetime_utils import utc_now
from app.core.exceptions import TransientStorageFailure
from app.statistics import PopulationStatisticsEngine

router = APIRouter()


@router.get("/health")
def health_check(
    engine: PopulationStatisticsEngine = Depends(get_statistics_engine),
):
    """
    Health check endpoint.

    Reads the population aggregate to confirm the statistics backend is
    reachable. An unreachable backend reports ``degraded`` rather than failing,
    because submissions are still scored and answered without it.
    """
    try:
        submissions = engine.get_aggregate().count
        reachable = True
    except TransientStorageFailure:
        submissions = None
        reachable = False

    return {
        "status": "healthy" if reachable else "degraded",
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "statistics": {
            "backend": type(engine.storage).__name__,
            "reachable": reachable,
            "submissions": submissions,
        },
    }


@router.get("/ping")
async def ping():
    return {"message": "pong"}
