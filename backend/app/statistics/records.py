"""
Per-session submission records.

Stored as JSON under ``submission:<session id>`` so a participant's result
can be looked up later. Only the assessment data is kept; no IP address,
user agent or other client metadata.
"""

import json
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

SUBMISSION_KEY_PREFIX = "submission:"


def submission_key(session_id: str) -> str:
    return f"{SUBMISSION_KEY_PREFIX}{session_id}"


def _to_base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    out = []
    while number:
        number, remainder = divmod(number, 36)
        out.append(digits[remainder])
    return "".join(reversed(out))


def generate_session_id() -> str:
    """
    Generate a short, roughly time-ordered session id.

    Format: ``<base36 epoch millis>-<random suffix>``, e.g. ``m2x1k9qa-4f7c2b``.
    """
    return f"{_to_base36(int(time.time() * 1000))}-{secrets.token_hex(3)}"


@dataclass
class SubmissionRecord:
    """A stored submission."""

    session_id: str
    timestamp: str
    score: int
    responses: List[Dict[str, Any]] = field(default_factory=list)
    image_order: List[int] = field(default_factory=list)
    total_time: Optional[int] = None

    def to_json(self) -> str:
        return json.dumps(
            {
                "sessionId": self.session_id,
                "timestamp": self.timestamp,
                "responses": self.responses,
                "imageOrder": self.image_order,
                "totalTime": self.total_time,
                "score": self.score,
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, raw: str) -> "SubmissionRecord":
        """
        Raises:
            ValueError: If the stored value is not a valid submission record
        """
        try:
            data = json.loads(raw)
            return cls(
                session_id=str(data["sessionId"]),
                timestamp=str(data["timestamp"]),
                score=int(data["score"]),
                responses=list(data.get("responses") or []),
                image_order=[int(i) for i in data.get("imageOrder") or []],
                total_time=data.get("totalTime"),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed submission record: {e}") from e
