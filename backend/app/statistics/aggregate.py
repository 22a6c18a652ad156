"""
Population aggregate statistics and the online update rules.

The aggregate is a small JSON document stored under one global key:

    {
        "count": 42,
        "mean": 47.3,
        "stddev": 18.9,
        "histogram": {"0": 1, "10": 3, ..., "100": 2},
        "lastUpdated": "2026-01-01T12:00:00.000Z"
    }

Histogram keys are the decade bucket of a score (floor(score / 10) * 10)
as a string.
"""

import json
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Literal, Optional

from app.core.datetime_utils import utc_now_iso

DEFAULT_MEAN = 50.0
DEFAULT_STDDEV = 20.0

VarianceMethod = Literal["legacy", "welford"]

# Field names used by earlier deployments, accepted on read
_LEGACY_FIELD_NAMES = {
    "totalSubmissions": "count",
    "averageScore": "mean",
    "scoreStdDev": "stddev",
    "scoreDistribution": "histogram",
}


@dataclass(frozen=True)
class AggregateStatistics:
    """Running count, mean, standard deviation and histogram of all scores."""

    count: int = 0
    mean: float = DEFAULT_MEAN
    stddev: float = DEFAULT_STDDEV
    histogram: Dict[str, int] = field(default_factory=dict)
    last_updated: Optional[str] = None

    @classmethod
    def initial(cls) -> "AggregateStatistics":
        """Defaults used before any score has been ingested."""
        return cls(last_updated=utc_now_iso())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "mean": self.mean,
            "stddev": self.stddev,
            "histogram": dict(self.histogram),
            "lastUpdated": self.last_updated,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregateStatistics":
        """
        Build from a stored document.

        Accepts both the current field names and the legacy worker names.

        Raises:
            ValueError: If the document violates count >= 0 or stddev >= 0,
                or a field has the wrong type
        """
        normalized = dict(data)
        for legacy_name, name in _LEGACY_FIELD_NAMES.items():
            if legacy_name in normalized and name not in normalized:
                normalized[name] = normalized.pop(legacy_name)

        try:
            count = int(normalized.get("count", 0))
            mean = float(normalized.get("mean", DEFAULT_MEAN))
            stddev = float(normalized.get("stddev", DEFAULT_STDDEV))
            histogram = {
                str(bucket): int(freq)
                for bucket, freq in (normalized.get("histogram") or {}).items()
            }
        except (TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Malformed aggregate statistics: {e}") from e

        if count < 0:
            raise ValueError(f"Aggregate count cannot be negative, got {count}")
        if stddev < 0 or math.isnan(stddev) or math.isnan(mean):
            raise ValueError(f"Aggregate mean/stddev invalid: mean={mean}, stddev={stddev}")

        return cls(
            count=count,
            mean=mean,
            stddev=stddev,
            histogram=histogram,
            last_updated=normalized.get("lastUpdated"),
        )

    @classmethod
    def from_json(cls, raw: str) -> "AggregateStatistics":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Aggregate statistics are not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Aggregate statistics must be a JSON object")
        return cls.from_dict(data)


def histogram_bucket(score: int) -> str:
    """Decade bucket label for a score: 0-9 → "0", ..., 100 → "100"."""
    return str((score // 10) * 10)


def apply_score(
    stats: AggregateStatistics,
    new_score: int,
    variance_method: VarianceMethod = "legacy",
    timestamp: Optional[str] = None,
) -> AggregateStatistics:
    """
    Return the aggregate after ingesting one score. Pure; does not persist.

    Mean: incremental update, mean' = mean + (x - mean) / count'.

    Standard deviation, ``legacy`` (default):
        The first sample leaves stddev at its default. Afterwards
        variance' = ((count' - 1) * stddev^2 + (x - mean')^2) / count'.
        This is not the textbook Welford update but every writer of the
        shared aggregate uses it, so it is reproduced exactly.

    Standard deviation, ``welford``:
        Population variance via M2 = stddev^2 * count,
        M2' = M2 + (x - mean)(x - mean'), stddev' = sqrt(M2' / count').
        The first sample gives stddev 0.
    """
    prior_count = stats.count
    count = prior_count + 1
    mean = stats.mean + (new_score - stats.mean) / count

    if variance_method == "welford":
        if prior_count == 0:
            stddev = 0.0
        else:
            m2 = stats.stddev**2 * prior_count
            m2 += (new_score - stats.mean) * (new_score - mean)
            stddev = math.sqrt(max(0.0, m2 / count))
    elif prior_count == 0:
        stddev = stats.stddev
    else:
        variance = ((count - 1) * stats.stddev**2 + (new_score - mean) ** 2) / count
        stddev = math.sqrt(variance)

    histogram = dict(stats.histogram)
    bucket = histogram_bucket(new_score)
    histogram[bucket] = histogram.get(bucket, 0) + 1

    return replace(
        stats,
        count=count,
        mean=mean,
        stddev=stddev,
        histogram=histogram,
        last_updated=timestamp or utc_now_iso(),
    )
