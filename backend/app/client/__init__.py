"""
Assessment client: submits completed sessions and falls back to a local estimate.
"""
from .api_client import AssessmentClient, AssessmentResult

__all__ = ["AssessmentClient", "AssessmentResult"]
