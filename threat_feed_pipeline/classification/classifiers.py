"""
Severity/category classifiers.

Each source is bound to exactly one classifier when its adapter is built.
The set is closed: KEV-style, CVE-score-style, and a pass-through for
news feeds that carry no severity signal.
"""
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .severity import DEFAULT_SEVERITY, Severity, severity_from_score

# Newest scoring scheme first
CVSS_METRIC_KEYS = ("cvssMetricV40", "cvssMetricV31", "cvssMetricV30", "cvssMetricV2")


@dataclass(frozen=True)
class Classification:
    """Result of classifying one raw item."""
    severity: Severity
    category: str


class Classifier(ABC):
    """Base class for all classifiers."""

    def __init__(self, classifier_id: str):
        self.classifier_id = classifier_id

    @abstractmethod
    def classify(self, raw_record: Dict[str, Any], unit: Optional[str] = None) -> Classification:
        """
        Classify a raw item.

        Args:
            raw_record: Raw payload as returned by the source
            unit: Work unit the item came from (news category)
        """
        pass


class KevClassifier(Classifier):
    """Known-exploited catalog: ransomware use makes an item critical."""

    CATEGORY = "CISA KEV"

    def __init__(self):
        super().__init__("kev")

    def classify(self, raw_record: Dict[str, Any], unit: Optional[str] = None) -> Classification:
        severity = Severity.CRITICAL if has_known_ransomware_use(raw_record) else Severity.HIGH
        return Classification(severity=severity, category=self.CATEGORY)


class CveScoreClassifier(Classifier):
    """CVE database: severity from the first available CVSS base score."""

    CATEGORY = "NVD CVE"

    def __init__(self):
        super().__init__("cve_score")

    def classify(self, raw_record: Dict[str, Any], unit: Optional[str] = None) -> Classification:
        cve = raw_record.get("cve") if isinstance(raw_record.get("cve"), dict) else raw_record
        score = extract_base_score(cve.get("metrics"))
        return Classification(severity=severity_from_score(score), category=self.CATEGORY)


class NoneClassifier(Classifier):
    """News feeds: no severity signal, category is the feed category."""

    def __init__(self, default_category: str = "general"):
        super().__init__("none")
        self.default_category = default_category

    def classify(self, raw_record: Dict[str, Any], unit: Optional[str] = None) -> Classification:
        return Classification(severity=DEFAULT_SEVERITY, category=unit or self.default_category)


def has_known_ransomware_use(raw_record: Dict[str, Any]) -> bool:
    # Catalog values are "Known" or "Unknown"; a substring test would match both
    flag = raw_record.get("knownRansomwareCampaignUse") or ""
    return isinstance(flag, str) and flag.strip().lower() == "known"


def extract_base_score(metrics: Any) -> Optional[float]:
    """
    Return the first numeric base score across CVSS schemes.

    Schemes are tried newest first; within a scheme, entries are tried in
    order. Booleans and non-finite numbers are ignored.
    """
    if not isinstance(metrics, dict):
        return None

    for key in CVSS_METRIC_KEYS:
        entries = metrics.get(key)
        if not isinstance(entries, list):
            continue
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            cvss_data = entry.get("cvssData") or {}
            score = cvss_data.get("baseScore") if isinstance(cvss_data, dict) else None
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                continue
            if math.isfinite(score):
                return float(score)
    return None


def get_classifier(source_id: str) -> Classifier:
    """
    Get the classifier bound to a source.

    Unknown sources are treated as news feeds.
    """
    if source_id == "cisa_kev":
        return KevClassifier()
    if source_id == "nvd":
        return CveScoreClassifier()
    return NoneClassifier()
