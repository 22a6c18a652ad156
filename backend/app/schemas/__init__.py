"""
Pydantic schemas for request/response validation.
"""
from .assessment import (
    ResponseItem,
    SubmissionRequest,
    SubmissionResponse,
    AggregateStatisticsResponse,
    SessionStatsResponse,
)

__all__ = [
    "ResponseItem",
    "SubmissionRequest",
    "SubmissionResponse",
    "AggregateStatisticsResponse",
    "SessionStatsResponse",
]
