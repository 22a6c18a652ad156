"""
Services package for business logic.
"""

from .submission_service import SubmissionOutcome, SubmissionService, to_responses

__all__ = [
    "SubmissionOutcome",
    "SubmissionService",
    "to_responses",
]
