"""
GNews adapter for technology headlines.
"""
import logging
from typing import Any, Dict, List, Optional

from classification import Classifier

from .base_adapter import BaseAdapter, CanonicalRecord
from .errors import MalformedResponseError
from .normalization import clean_text, extract_cve_ids, published_at_or_now, unique

logger = logging.getLogger(__name__)


class GNewsAdapter(BaseAdapter):
    """GNews top-headlines adapter."""

    source_id = "gnews"
    credential_env = "GNEWS_API_KEY"
    credential_required = True

    def __init__(self, config: Dict[str, Any], classifier: Classifier, credential: Optional[str] = None):
        super().__init__(config, classifier, credential)
        self.base_url = config.get("base_url", "https://gnews.io/api/v4")
        self.categories = list(config.get("categories") or ["technology"])
        self.language = config.get("language", "en")
        self.max_articles = int(config.get("max_articles", 30))
        self.client = self._build_client()

    def work_units(self) -> List[str]:
        return self.categories

    def fetch_batch(self, unit: str) -> List[Dict[str, Any]]:
        params = {
            "category": unit,
            "lang": self.language,
            "max": self.max_articles,
            "apikey": self.credential,
        }
        data = self.client.get_json(f"{self.base_url}/top-headlines", params=params)

        if not isinstance(data, dict):
            raise MalformedResponseError(self.source_id, "top-level payload is not an object")

        articles = data.get("articles")
        if isinstance(articles, list):
            return articles

        errors = data.get("errors")
        if errors:
            if isinstance(errors, list):
                messages = [e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors]
            else:
                messages = [str(errors)]
            raise MalformedResponseError(self.source_id, f"GNews: {', '.join(messages)}")

        raise MalformedResponseError(self.source_id, "GNews: response has no articles list")

    def normalize(self, raw_record: Any, unit: str) -> Optional[CanonicalRecord]:
        if not isinstance(raw_record, dict):
            self._log_validation_failure(logger, "not an object", raw_record)
            return None

        url = clean_text(raw_record.get("url"))
        title = clean_text(raw_record.get("title"))
        if not url or not title:
            self._log_validation_failure(logger, "missing url or title", raw_record)
            return None

        classification = self.classifier.classify(raw_record, unit=unit)
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
            tags=unique(["news", unit]),
            raw=raw_record,
        )
