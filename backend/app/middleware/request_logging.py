"""
Request/response logging middleware for tracking API interactions.
"""
import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable, Sequence

from app.core.logging_config import request_id_context

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log incoming requests and outgoing responses.

    Logs method, path, status code and duration. Request bodies and the
    client address are never logged. Every response carries an
    ``X-Request-ID`` header, taken from the request when the client sent one.
    """

    def __init__(self, app, skip_paths: Sequence[str] = ("/health", "/ping")):
        """
        Initialize request logging middleware.

        Args:
            app: FastAPI application
            skip_paths: Path suffixes logged at DEBUG instead of INFO (probes)
        """
        super().__init__(app)
        self.skip_paths = tuple(skip_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate or extract request ID for correlation
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_context.set(request_id)

        start_time = time.time()

        method = request.method
        path = str(request.url.path)
        is_probe = path.endswith(self.skip_paths)

        logger.log(
            logging.DEBUG if is_probe else logging.INFO,
            "Incoming request",
            extra={"method": method, "path": path},
        )

        response = await call_next(request)

        duration_ms = round((time.time() - start_time) * 1000, 2)
        status_code = response.status_code

        response.headers["X-Request-ID"] = request_id

        extra_fields = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        }

        if status_code >= 500:
            logger.error("Server error response", extra=extra_fields)
        elif status_code >= 400:
            logger.warning("Client error response", extra=extra_fields)
        elif is_probe:
            logger.debug("Request completed", extra=extra_fields)
        else:
            logger.info("Request completed", extra=extra_fields)

        return response
