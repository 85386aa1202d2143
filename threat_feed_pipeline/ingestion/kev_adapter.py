"""
CISA Known Exploited Vulnerabilities (KEV) catalog adapter.

The whole catalog is fetched in one request and iterated in memory.
Expected structure:
{
    "catalogVersion": "2024.01.15",
    "dateReleased": "2024-01-15T12:00:00.000Z",
    "vulnerabilities": [
        {"cveID": "CVE-2024-1234", "vendorProject": "...", "product": "...",
         "vulnerabilityName": "...", "dateAdded": "2024-01-15",
         "shortDescription": "...", "requiredAction": "...",
         "knownRansomwareCampaignUse": "Known" | "Unknown"}
    ]
}
"""
import logging
from typing import Any, Dict, List, Optional

from classification import Classifier
from classification.classifiers import has_known_ransomware_use

from .base_adapter import BaseAdapter, CanonicalRecord
from .errors import MalformedResponseError
from .normalization import clean_text, published_at_or_now, synthesize_title, unique

logger = logging.getLogger(__name__)

CATALOG_UNIT = "catalog"


class KevAdapter(BaseAdapter):
    """CISA KEV catalog adapter. No credential required."""

    source_id = "cisa_kev"
    credential_env = None
    credential_required = False

    def __init__(self, config: Dict[str, Any], classifier: Classifier, credential: Optional[str] = None):
        super().__init__(config, classifier, credential)
        self.feed_url = config.get(
            "feed_url",
            "https://www.cisa.gov/sites/default/files/feeds/known_exploited_vulnerabilities.json",
        )
        self.catalog_url = config.get(
            "catalog_url",
            "https://www.cisa.gov/known-exploited-vulnerabilities-catalog",
        )
        self.client = self._build_client(default_timeout=60.0)
        self._catalog_meta: Dict[str, Any] = {}

    def work_units(self) -> List[str]:
        return [CATALOG_UNIT]

    def fetch_batch(self, unit: str) -> List[Dict[str, Any]]:
        data = self.client.get_json(self.feed_url)
        if not isinstance(data, dict):
            raise MalformedResponseError(self.source_id, "top-level payload is not an object")

        self._catalog_meta = {
            "catalogVersion": data.get("catalogVersion"),
            "dateReleased": data.get("dateReleased"),
        }
        items = data.get("vulnerabilities")
        if not isinstance(items, list):
            raise MalformedResponseError(self.source_id, "catalog has no vulnerabilities list")

        logger.info("  CISA KEV catalog %s: %d entries", data.get("catalogVersion"), len(items))
        return items

    def normalize(self, raw_record: Any, unit: str) -> Optional[CanonicalRecord]:
        """
        Transform a KEV catalog entry into a canonical record.

        Entries without a CVE id are dropped.
        """
        if not isinstance(raw_record, dict):
            self._log_validation_failure(logger, "not an object", raw_record)
            return None

        cve_id = clean_text(raw_record.get("cveID"))
        if not cve_id:
            self._log_validation_failure(logger, "missing cveID", raw_record)
            return None

        vendor = clean_text(raw_record.get("vendorProject"))
        product = clean_text(raw_record.get("product"))
        classification = self.classifier.classify(raw_record, unit=unit)
        ransomware = has_known_ransomware_use(raw_record)

        return CanonicalRecord(
            source=self.source_id,
            external_id=cve_id,
            title=synthesize_title(vendor, product, raw_record.get("vulnerabilityName"), cve_id),
            description=clean_text(raw_record.get("shortDescription")) or clean_text(raw_record.get("requiredAction")),
            severity=classification.severity,
            category=classification.category,
            published_at=published_at_or_now(raw_record.get("dateAdded")),
            url=self.catalog_url,
            cve_ids=[cve_id],
            affected=unique([vendor, product]),
            tags=["kev", "ransomware"] if ransomware else ["kev"],
            raw={**raw_record, **self._catalog_meta},
        )
