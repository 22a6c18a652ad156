"""HTTP client for the assessment API.

Submits a completed ``AssessmentSession`` and returns the server's score,
percentile and category. If the API cannot be reached, answers with a
non-2xx status or returns an unreadable body, the result is estimated
locally by ``LocalFallbackEstimator`` instead. The participant always gets
a result; the fallback is flagged on ``AssessmentResult.used_fallback``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import EngineUnreachableError
from app.core.fallback import LocalFallbackEstimator
from app.core.scoring import UnweightedScoring
from app.core.session import AssessmentSession

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/submit"


@dataclass
class AssessmentResult:
    """Result shown to the participant."""

    score: int
    percentile: int
    category: str
    session_id: Optional[str] = None
    used_fallback: bool = False


class AssessmentClient:
    """Submits assessment sessions to the API.

    Attributes:
        base_url: Base URL of the API including its prefix (e.g. ".../api")
        timeout: HTTP request timeout in seconds
        estimator: Estimator used when the API is unreachable
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        estimator: Optional[LocalFallbackEstimator] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize AssessmentClient.

        Args:
            base_url: API base URL (default: ``CLIENT_API_URL`` setting)
            timeout: Request timeout in seconds (default: ``CLIENT_TIMEOUT_SECONDS``)
            estimator: Fallback estimator (default: built from settings)
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``
        """
        self.base_url = (base_url or settings.CLIENT_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.CLIENT_TIMEOUT_SECONDS
        self.estimator = estimator or LocalFallbackEstimator(
            item_count=settings.ASSESSMENT_ITEM_COUNT,
            reference_count=settings.FALLBACK_REFERENCE_COUNT,
        )
        self._transport = transport

    def _post_submission(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a submission and return the decoded body.

        Raises:
            EngineUnreachableError: On transport failure, non-2xx status or
                a body that is not a JSON object
        """
        url = f"{self.base_url}{SUBMIT_PATH}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as e:
            raise EngineUnreachableError(f"Submission timed out: {e}", e) from e
        except httpx.HTTPStatusError as e:
            raise EngineUnreachableError(
                f"Submission rejected: HTTP {e.response.status_code}", e
            ) from e
        except httpx.HTTPError as e:
            raise EngineUnreachableError(f"Could not reach {url}: {e}", e) from e
        except ValueError as e:
            raise EngineUnreachableError(f"Undecodable submission response: {e}", e) from e

        if not isinstance(body, dict):
            raise EngineUnreachableError("Submission response is not a JSON object")
        return body

    def submit(self, session: AssessmentSession) -> AssessmentResult:
        """Submit a completed session.

        Args:
            session: A complete assessment session

        Returns:
            The server's result, or the local estimate if the API is unavailable

        Raises:
            InvalidSubmissionError: If the session is not complete
        """
        payload = session.to_submission_payload()
        local_score = (
            UnweightedScoring().calculate_score(session.responses, session.item_count).score
        )

        try:
            body = self._post_submission(payload)
            percentile = int(body["percentile"])
            category = str(body["category"])
            score = int(body["score"]) if body.get("score") is not None else local_score
        except EngineUnreachableError as e:
            logger.warning(f"Assessment API unavailable, using local estimate: {e}")
            return self._fallback(session)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed submission response, using local estimate: {e}")
            return self._fallback(session)

        return AssessmentResult(
            score=score,
            percentile=percentile,
            category=category,
            session_id=body.get("sessionId"),
            used_fallback=False,
        )

    def _fallback(self, session: AssessmentSession) -> AssessmentResult:
        estimate = self.estimator.estimate(session.responses)
        return AssessmentResult(
            score=estimate.score,
            percentile=estimate.percentile,
            category=estimate.category,
            session_id=None,
            used_fallback=True,
        )
