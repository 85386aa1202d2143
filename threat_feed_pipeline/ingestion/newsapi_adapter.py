"""
NewsAPI adapter for general news headlines.

One top-headlines request per configured category, sequentially.
"""
import logging
from typing import Any, Dict, List, Optional

from classification import Classifier

from .base_adapter import BaseAdapter, CanonicalRecord
from .errors import MalformedResponseError, NetworkFailureError
from .normalization import clean_text, extract_cve_ids, published_at_or_now, unique

logger = logging.getLogger(__name__)

# Upstream category -> stored category label
CATEGORY_MAP: Dict[str, str] = {
    "technology": "technology",
    "tech": "technology",
    "science": "science",
    "business": "business",
    "sports": "sports",
    "entertainment": "entertainment",
    "general": "general",
    "health": "health",
}


class NewsApiAdapter(BaseAdapter):
    """NewsAPI top-headlines adapter."""

    source_id = "newsapi"
    credential_env = "NEWSAPI_API_KEY"
    credential_required = True

    def __init__(self, config: Dict[str, Any], classifier: Classifier, credential: Optional[str] = None):
        super().__init__(config, classifier, credential)
        self.base_url = config.get("base_url", "https://newsapi.org/v2")
        self.categories = list(config.get("categories") or ["technology", "science", "business"])
        self.country = config.get("country", "us")
        self.page_size = int(config.get("page_size", 10))
        self.client = self._build_client()

    def work_units(self) -> List[str]:
        return self.categories

    def fetch_batch(self, unit: str) -> List[Dict[str, Any]]:
        params = {
            "country": self.country,
            "category": unit,
            "pageSize": self.page_size,
        }
        headers = {"X-Api-Key": self.credential}
        try:
            data = self.client.get_json(f"{self.base_url}/top-headlines", params=params, headers=headers)
        except NetworkFailureError as exc:
            if exc.status_code == 426:
                raise NetworkFailureError(
                    self.source_id,
                    f"{exc} (NewsAPI free plan only allows localhost; use a paid plan in production)",
                    exc.status_code,
                ) from exc
            raise

        if not isinstance(data, dict):
            raise MalformedResponseError(self.source_id, "top-level payload is not an object")

        if data.get("status") != "ok" or not isinstance(data.get("articles"), list):
            raise MalformedResponseError(
                self.source_id,
                f"NewsAPI: {data.get('code') or 'error'} - {data.get('message') or 'Unknown'}",
            )

        return data["articles"]

    def normalize(self, raw_record: Any, unit: str) -> Optional[CanonicalRecord]:
        """
        Transform a NewsAPI article into a canonical record.

        The article URL is the external id; articles without a URL or a
        title are dropped.
        """
        if not isinstance(raw_record, dict):
            self._log_validation_failure(logger, "not an object", raw_record)
            return None

        url = clean_text(raw_record.get("url"))
        title = clean_text(raw_record.get("title"))
        if not url or not title:
            self._log_validation_failure(logger, "missing url or title", raw_record)
            return None

        category_label = CATEGORY_MAP.get(unit, unit)
        classification = self.classifier.classify(raw_record, unit=category_label)
        description = clean_text(raw_record.get("description")) or clean_text(raw_record.get("content"))

        return CanonicalRecord(
            source=self.source_id,
            external_id=url,
            title=title,
            description=description,
            severity=classification.severity,
            category=classification.category,
            published_at=published_at_or_now(raw_record.get("publishedAt")),
            url=url,
            cve_ids=extract_cve_ids(title, description),
            tags=unique(["news", category_label]),
            raw=raw_record,
        )
