"""
Severity and category classification.

Provides a closed set of classifiers, one bound to each source:
- KevClassifier: known-exploited catalog (ransomware flag)
- CveScoreClassifier: CVE database (CVSS base score thresholds)
- NoneClassifier: news feeds (no severity signal)
"""
from .classifiers import (
    Classification,
    Classifier,
    CveScoreClassifier,
    KevClassifier,
    NoneClassifier,
    extract_base_score,
    get_classifier,
)
from .severity import DEFAULT_SEVERITY, Severity, severity_from_score

__all__ = [
    "Classification",
    "Classifier",
    "KevClassifier",
    "CveScoreClassifier",
    "NoneClassifier",
    "Severity",
    "DEFAULT_SEVERITY",
    "extract_base_score",
    "get_classifier",
    "severity_from_score",
]
