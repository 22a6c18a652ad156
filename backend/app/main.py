"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from urllib.parse import urlparse

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.error_responses import ErrorMessages
from app.core.logging_config import setup_logging
from app.middleware import RequestLoggingMiddleware
from app.statistics import (
    DatabaseStorage,
    InMemoryStorage,
    PopulationStatisticsEngine,
    StatisticsStorage,
)

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)


def _sanitize_redis_url(url: str) -> str:
    """
    Remove password from Redis URL for safe logging.

    Args:
        url: Redis connection URL (e.g., redis://:password@host:port/db)

    Returns:
        URL with password redacted
    """
    parsed = urlparse(url)
    if parsed.password:
        netloc = parsed.hostname or "localhost"
        if parsed.port:
            netloc = f"{netloc}:{parsed.port}"
        return f"{parsed.scheme}://{netloc}{parsed.path}"
    return url


def _create_statistics_storage() -> StatisticsStorage:
    """
    Create the population statistics storage backend from configuration.

    If Redis is configured but unavailable, falls back to in-memory storage.
    A database backend that cannot be created is a startup error.

    Returns:
        StatisticsStorage: The configured storage backend
    """
    if settings.STATS_STORAGE == "redis":
        try:
            # Import RedisStorage only when needed (redis-py is optional)
            from app.statistics.storage import RedisStorage

            storage = RedisStorage(redis_url=settings.STATS_REDIS_URL)
            if storage.is_connected():
                logger.info(
                    "Population statistics using Redis storage at "
                    f"{_sanitize_redis_url(settings.STATS_REDIS_URL)}"
                )
                return storage
            storage.close()
            logger.warning(
                "Redis not available for population statistics, falling back to "
                "in-memory storage. Statistics will NOT be shared across workers."
            )
            return InMemoryStorage()
        except ImportError:
            logger.warning(
                "Redis storage configured but redis-py not installed. "
                "Falling back to in-memory storage. "
                "Install redis-py with: pip install redis"
            )
            return InMemoryStorage()
        except Exception as e:
            logger.warning(
                f"Failed to initialize Redis storage: {e}. "
                "Falling back to in-memory storage."
            )
            return InMemoryStorage()

    if settings.STATS_STORAGE == "database":
        from app.models import create_db_engine, create_session_factory

        engine = create_db_engine(settings.DATABASE_URL)
        logger.info("Population statistics using database storage")
        return DatabaseStorage(create_session_factory(engine))

    logger.info("Population statistics using in-memory storage (single worker only)")
    return InMemoryStorage()


def create_statistics_engine(storage: StatisticsStorage) -> PopulationStatisticsEngine:
    """Build the statistics engine with the configured tuning."""
    return PopulationStatisticsEngine(
        storage,
        stats_key=settings.STATS_KEY,
        min_sample_size=settings.STATS_MIN_SAMPLE_SIZE,
        max_retries=settings.STATS_MAX_RETRIES,
        variance_method=settings.STATS_VARIANCE_METHOD,
        submission_ttl=settings.SUBMISSION_TTL_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    On shutdown, closes the statistics storage (Redis pool / DB engine).
    """
    logger.info(
        f"{settings.APP_NAME} {settings.APP_VERSION} starting "
        f"(env={settings.ENV}, items={settings.ASSESSMENT_ITEM_COUNT}, "
        f"scoring={settings.SCORING_STRATEGY})"
    )

    yield

    storage = getattr(app.state, "statistics_storage", None)
    if storage is not None:
        storage.close()
        logger.info("Closed population statistics storage")


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "assessment",
        "description": "Submission of completed sessions and population statistics",
    },
]


def create_application(storage: Optional[StatisticsStorage] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        storage: Statistics storage to use instead of the configured backend
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**Body Perception API** - scoring and population statistics for the "
            "body perception assessment.\n\n"
            "This API provides:\n"
            "* Submission of completed assessment sessions\n"
            "* A perception score, percentile and category for each submission\n"
            "* Running population statistics\n\n"
            "Percentiles are an approximation (50 + 15 z, clamped to 1-99), "
            "not an inverse normal CDF."
        ),
        docs_url=f"{settings.API_PREFIX}/docs",
        redoc_url=f"{settings.API_PREFIX}/redoc",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    # Configure CORS
    # The browser client only posts JSON and reads statistics
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    if storage is None:
        storage = _create_statistics_storage()
    app.state.statistics_storage = storage
    app.state.statistics_engine = create_statistics_engine(storage)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Handle HTTP exceptions with a uniform body.
        """
        if exc.status_code >= 500:
            logger.error(
                f"HTTP {exc.status_code} on {request.method} {request.url.path}: "
                f"{exc.detail}"
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Handle request validation errors.
        """
        # Convert errors to serializable format; inputs are omitted since
        # they may contain the participant's answers
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
            for error in exc.errors()
        ]

        logger.info(
            f"Validation failed on {request.method} {request.url.path}: "
            f"{len(errors)} error(s)"
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": errors},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.

        Generates a unique error_id (UUID) for each exception so a specific
        failure can be traced in the logs. The error_id is included in the
        response body and logged with the full exception.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )

        # Don't leak internal details
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": ErrorMessages.INTERNAL_SERVER_ERROR,
                "error_id": error_id,
            },
        )

    return app


app = create_application()


@app.get("/")
async def root():
    """
    Root endpoint.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_PREFIX}/docs",
    }


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG and settings.ENV == "development",
        log_config=None,
    )


if __name__ == "__main__":
    run()
