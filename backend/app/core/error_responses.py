"""
Standardized error response messages and builders.

User-facing messages live here so every endpoint reports the same failure
the same way, without leaking storage or parsing details. Technical
details belong in the logs.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Use "Please try again later." for transient server errors

Usage:
    from app.core.error_responses import ErrorMessages, raise_not_found

    if record is None:
        raise_not_found(ErrorMessages.SESSION_NOT_FOUND)
"""

from typing import NoReturn

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates."""

    # ==========================================================================
    # Bad Request Errors (400)
    # ==========================================================================
    INVALID_RESPONSE_DATA = "Invalid response data."

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    SESSION_NOT_FOUND = "Session not found."

    # ==========================================================================
    # Server Errors (500 / 503)
    # ==========================================================================
    INTERNAL_SERVER_ERROR = "Internal server error"
    STATISTICS_UNAVAILABLE = (
        "Population statistics are temporarily unavailable. Please try again later."
    )


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Use for client errors where the request is malformed or invalid.

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_service_unavailable(detail: str) -> NoReturn:
    """Raise a 503 Service Unavailable exception.

    Use when a backing store is temporarily unreachable and the client
    may retry.

    Raises:
        HTTPException: 503 Service Unavailable
    """
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
    )
