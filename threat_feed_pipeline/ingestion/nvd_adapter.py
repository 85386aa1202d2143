"""
NVD CVE API 2.0 adapter.

Performs one windowed query per run (CVEs published in the last
`hours_back` hours, up to `max_results`). Items are processed one at a time
with a short pause between them.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from classification import Classifier

from .base_adapter import BaseAdapter, CanonicalRecord
from .errors import MalformedResponseError
from .normalization import clean_text, pick_english, published_at_or_now, unique

logger = logging.getLogger(__name__)

NVD_MAX_RESULTS_PER_PAGE = 2000

HOURS_BACK_RANGE = (1, 168)
MAX_RESULTS_RANGE = (10, NVD_MAX_RESULTS_PER_PAGE)

WINDOW_UNIT = "window"


def clamp(value: Any, bounds: tuple, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = default
    low, high = bounds
    return min(max(number, low), high)


class NvdAdapter(BaseAdapter):
    """NVD API adapter. The API key is optional and raises upstream quotas."""

    source_id = "nvd"
    credential_env = "NVD_API_KEY"
    credential_required = False

    def __init__(self, config: Dict[str, Any], classifier: Classifier, credential: Optional[str] = None):
        super().__init__(config, classifier, credential)
        self.base_url = config.get("base_url", "https://services.nvd.nist.gov/rest/json/cves/2.0")
        self.detail_url = config.get("detail_url", "https://nvd.nist.gov/vuln/detail/")
        self.hours_back = clamp(config.get("hours_back", 24), HOURS_BACK_RANGE, 24)
        self.max_results = clamp(config.get("max_results", 200), MAX_RESULTS_RANGE, 200)
        self.client = self._build_client()

    def work_units(self) -> List[str]:
        return [WINDOW_UNIT]

    def fetch_batch(self, unit: str) -> List[Dict[str, Any]]:
        params = self._build_window_params(datetime.now(timezone.utc))
        data = self.client.get_json(self.base_url, params=params, headers=self._build_headers())

        if not isinstance(data, dict):
            raise MalformedResponseError(self.source_id, "top-level payload is not an object")

        vulnerabilities = data.get("vulnerabilities")
        if vulnerabilities is None:
            return []
        if not isinstance(vulnerabilities, list):
            raise MalformedResponseError(self.source_id, "vulnerabilities is not a list")

        logger.info(
            "  NVD window %dh: %d of %s results",
            self.hours_back, len(vulnerabilities), data.get("totalResults", "?")
        )
        return vulnerabilities

    def normalize(self, raw_record: Any, unit: str) -> Optional[CanonicalRecord]:
        """
        Transform an NVD vulnerability wrapper into a canonical record.

        Args:
            raw_record: {"cve": {...}} entry from the vulnerabilities list

        Returns:
            CanonicalRecord or None if the entry has no CVE id
        """
        cve = raw_record.get("cve") if isinstance(raw_record, dict) else None
        if not isinstance(cve, dict):
            self._log_validation_failure(logger, "missing cve object", raw_record)
            return None

        cve_id = clean_text(cve.get("id"))
        if not cve_id:
            self._log_validation_failure(logger, "missing cve id", raw_record)
            return None

        classification = self.classifier.classify(raw_record, unit=unit)
        references = [r for r in cve.get("references") or [] if isinstance(r, dict)]
        reference_url = next((r["url"] for r in references if isinstance(r.get("url"), str)), None)
        weaknesses = self._extract_weaknesses(cve.get("weaknesses"))

        return CanonicalRecord(
            source=self.source_id,
            external_id=cve_id,
            title=cve_id,
            description=pick_english(cve.get("descriptions")),
            severity=classification.severity,
            category=classification.category,
            published_at=published_at_or_now(cve.get("published")),
            url=reference_url or f"{self.detail_url}{quote(cve_id)}",
            cve_ids=[cve_id],
            affected=self._extract_affected(cve.get("configurations")),
            tags=unique(["cve"] + weaknesses),
            raw={
                "cveId": cve_id,
                "vulnStatus": cve.get("vulnStatus"),
                "metrics": cve.get("metrics"),
                "weaknesses": cve.get("weaknesses"),
                "references": cve.get("references"),
                "lastModified": cve.get("lastModified"),
            },
        )

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.credential:
            headers["apiKey"] = self.credential
        return headers

    def _build_window_params(self, end: datetime) -> Dict[str, Any]:
        start = end - timedelta(hours=self.hours_back)
        return {
            "pubStartDate": self._format_timestamp(start),
            "pubEndDate": self._format_timestamp(end),
            "resultsPerPage": self.max_results,
        }

    @staticmethod
    def _format_timestamp(value: datetime) -> str:
        ts = value.astimezone(timezone.utc)
        return ts.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    @staticmethod
    def _extract_weaknesses(weaknesses: Any) -> List[str]:
        found = []
        for weakness in weaknesses or []:
            if not isinstance(weakness, dict):
                continue
            value = pick_english(weakness.get("description"))
            if value and value.startswith("CWE-"):
                found.append(value)
        return unique(found)

    @staticmethod
    def _extract_affected(configurations: Any) -> List[str]:
        """Collect vendor:product pairs from CPE 2.3 match criteria."""
        pairs = []
        nodes: List[Any] = []
        for configuration in configurations or []:
            if isinstance(configuration, dict):
                nodes.extend(configuration.get("nodes") or [])

        while nodes:
            node = nodes.pop(0)
            if not isinstance(node, dict):
                continue
            nodes.extend(node.get("children") or [])
            for match in node.get("cpeMatch") or []:
                criteria = match.get("criteria") if isinstance(match, dict) else None
                if not isinstance(criteria, str) or not criteria.startswith("cpe:2.3:"):
                    continue
                parts = criteria.split(":")
                if len(parts) >= 5 and parts[3] and parts[4]:
                    pairs.append(f"{parts[3]}:{parts[4]}")
        return unique(pairs)
