"""
Severity levels shared by every stored record.

Records always carry one of the four levels; sources that have no
severity signal get DEFAULT_SEVERITY.
"""
from enum import Enum
from typing import Any, List, Optional, Tuple


class Severity(str, Enum):
    """Four-level severity scale."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def coerce(cls, value: Any) -> "Severity":
        """Map arbitrary input onto the enum, falling back to the default."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return DEFAULT_SEVERITY
        return DEFAULT_SEVERITY


DEFAULT_SEVERITY = Severity.MEDIUM

# (inclusive lower bound, severity), highest first
SCORE_THRESHOLDS: List[Tuple[float, Severity]] = [
    (9.0, Severity.CRITICAL),
    (7.0, Severity.HIGH),
    (4.0, Severity.MEDIUM),
]


def severity_from_score(score: Optional[float]) -> Severity:
    """
    Map a CVSS base score to a severity level.

    Args:
        score: Base score, or None if no scoring scheme was present

    Returns:
        CRITICAL for >= 9.0, HIGH for >= 7.0, MEDIUM for >= 4.0, LOW below
        that, and MEDIUM when no score is available
    """
    if score is None:
        return Severity.MEDIUM

    for lower_bound, severity in SCORE_THRESHOLDS:
        if score >= lower_bound:
            return severity
    return Severity.LOW
