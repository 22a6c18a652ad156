"""
Pydantic schemas for assessment submission and statistics endpoints.

Wire names are camelCase (``imageNumber``, ``isFat``, ...) to match the
browser client; snake_case names are accepted as well.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional
from datetime import datetime


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseItem(_CamelModel):
    """Schema for a single image judgment."""

    image_number: int = Field(..., ge=1, description="Image identifier (1..N)")
    is_fat: bool = Field(
        ..., description="Whether the participant judged the image as overweight"
    )
    response_time: int = Field(
        ...,
        ge=0,
        description="Milliseconds between the image being shown and the answer",
    )
    position: int = Field(..., ge=1, description="Ordinal position in the session (1..N)")


class SubmissionRequest(_CamelModel):
    """Schema for submitting a completed assessment session."""

    responses: List[ResponseItem] = Field(
        ..., description="One response per image, in presentation order"
    )
    image_order: List[int] = Field(
        ..., description="Presentation order (a permutation of 1..N)"
    )
    total_time: Optional[int] = Field(
        None, ge=0, description="Total session duration in milliseconds"
    )
    timestamp: Optional[datetime] = Field(
        None, description="Client-side submission timestamp"
    )


class SubmissionResponse(_CamelModel):
    """Schema for the result of a submission."""

    success: bool = Field(True, description="Submission accepted")
    session_id: str = Field(..., description="Identifier for later lookups")
    score: int = Field(..., ge=0, le=100, description="Perception score (0-100)")
    percentile: int = Field(
        ..., ge=1, le=99, description="Estimated percentile among all participants"
    )
    category: str = Field(..., description="Human-readable result category")
    timestamp: str = Field(..., description="Server timestamp (ISO-8601 UTC)")


class AggregateStatisticsResponse(_CamelModel):
    """Schema for population statistics."""

    count: int = Field(..., ge=0, description="Number of submissions ingested")
    mean: float = Field(..., description="Running mean score")
    stddev: float = Field(..., ge=0, description="Running standard deviation")
    histogram: Dict[str, int] = Field(
        default_factory=dict,
        description="Submissions per score decade (keys '0', '10', ..., '100')",
    )
    last_updated: Optional[str] = Field(
        None, description="Timestamp of the last update (ISO-8601 UTC)"
    )


class SessionStatsResponse(_CamelModel):
    """Schema for a single session's result lookup."""

    session_id: str = Field(..., description="Session identifier")
    score: int = Field(..., ge=0, le=100, description="Perception score (0-100)")
    percentile: int = Field(
        ..., ge=1, le=99, description="Percentile against the current statistics"
    )
    timestamp: str = Field(..., description="Submission timestamp (ISO-8601 UTC)")
