"""
Assessment session model.

A session shows N images in a random order and records one binary
judgment per image. Responses are appended strictly in presentation
order; once the N-th response is recorded the session is sealed.
"""

import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from app.core.datetime_utils import to_iso, utc_now
from app.core.exceptions import InvalidSubmissionError, SessionSealedError


@dataclass(frozen=True)
class Response:
    """A single recorded judgment."""

    item_id: int
    is_overweight: bool
    elapsed_ms: int
    position: int

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation used by the submission endpoint."""
        return {
            "imageNumber": self.item_id,
            "isFat": self.is_overweight,
            "responseTime": self.elapsed_ms,
            "position": self.position,
        }


def generate_presentation_order(
    item_count: int, rng: Optional[random.Random] = None
) -> List[int]:
    """
    Return a uniformly random permutation of item ids 1..item_count.

    Uses an in-place Fisher-Yates shuffle (``random.shuffle``).
    """
    order = list(range(1, item_count + 1))
    (rng or random).shuffle(order)
    return order


def validate_response_set(
    responses: Sequence[Response],
    presentation_order: Sequence[int],
    item_count: int,
) -> None:
    """
    Check that a response set forms a complete session.

    Raises:
        InvalidSubmissionError: If the response count is not ``item_count``,
            the presentation order is not a permutation of 1..item_count, or
            the responses do not follow the presentation order.
    """
    if len(responses) != item_count:
        raise InvalidSubmissionError(
            f"Expected {item_count} responses, got {len(responses)}"
        )
    if sorted(presentation_order) != list(range(1, item_count + 1)):
        raise InvalidSubmissionError(
            f"Presentation order must be a permutation of 1..{item_count}"
        )
    for index, response in enumerate(responses):
        if response.position != index + 1:
            raise InvalidSubmissionError(
                f"Response {index} has position {response.position}, expected {index + 1}"
            )
        if response.item_id != presentation_order[index]:
            raise InvalidSubmissionError(
                f"Response {index} is for item {response.item_id}, "
                f"expected item {presentation_order[index]}"
            )


@dataclass
class AssessmentSession:
    """
    One participant's run through the image set.

    Created with a fresh presentation order; mutated only by ``record``.
    The elapsed time of each response is measured from the moment its
    image was presented, using the injected monotonic ``clock`` (seconds).
    """

    item_count: int
    presentation_order: List[int]
    started_at: datetime = field(default_factory=utc_now)
    ended_at: Optional[datetime] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _responses: List[Response] = field(default_factory=list, init=False, repr=False)
    _presented_at: float = field(default=0.0, init=False, repr=False)
    _started_clock: float = field(default=0.0, init=False, repr=False)
    _ended_clock: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        self._started_clock = self.clock()
        self._presented_at = self._started_clock

    @classmethod
    def start(
        cls,
        item_count: int,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "AssessmentSession":
        """Start a new session with a random presentation order."""
        return cls(
            item_count=item_count,
            presentation_order=generate_presentation_order(item_count, rng),
            clock=clock,
        )

    @property
    def responses(self) -> List[Response]:
        return list(self._responses)

    @property
    def is_complete(self) -> bool:
        return len(self._responses) == self.item_count

    @property
    def current_item(self) -> Optional[int]:
        """Item id currently on screen, or None once the session is sealed."""
        if self.is_complete:
            return None
        return self.presentation_order[len(self._responses)]

    @property
    def total_time_ms(self) -> Optional[int]:
        if self.ended_at is None:
            return None
        return int(round((self._ended_clock - self._started_clock) * 1000))

    def record(self, is_overweight: bool) -> Response:
        """
        Record the judgment for the current image and present the next one.

        Raises:
            SessionSealedError: If all responses have already been recorded.
        """
        if self.is_complete:
            raise SessionSealedError("Session is complete; no further responses accepted")

        now = self.clock()
        response = Response(
            item_id=self.presentation_order[len(self._responses)],
            is_overweight=bool(is_overweight),
            elapsed_ms=max(0, int(round((now - self._presented_at) * 1000))),
            position=len(self._responses) + 1,
        )
        self._responses.append(response)
        self._presented_at = now

        if self.is_complete:
            self.ended_at = utc_now()
            self._ended_clock = now
        return response

    def to_submission_payload(self) -> Dict[str, Any]:
        """
        Build the JSON body for the submission endpoint.

        Raises:
            InvalidSubmissionError: If the session is not complete.
        """
        if not self.is_complete:
            raise InvalidSubmissionError(
                f"Session has {len(self._responses)} of {self.item_count} responses"
            )
        return {
            "responses": [r.to_payload() for r in self._responses],
            "imageOrder": list(self.presentation_order),
            "totalTime": self.total_time_ms,
            "timestamp": to_iso(utc_now()),
        }
