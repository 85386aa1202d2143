"""
Shared pytest fixtures for ingestion pipeline tests.

This module provides reusable fixtures that simplify test setup
and reduce code duplication across test modules.
"""
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from classification import NoneClassifier
from ingestion import RateLimiter
from ingestion.base_adapter import BaseAdapter, CanonicalRecord
from ingestion.normalization import clean_text, published_at_or_now
from storage import Database, DuckDbUpsertGateway


class StubAdapter(BaseAdapter):
    """
    In-memory adapter for orchestrator tests.

    Args:
        source_id: Source identifier to report
        batches: Raw items per work unit, in unit order
        failures: Exception to raise instead of returning a unit's batch
    """

    def __init__(
        self,
        source_id: str,
        batches: Dict[str, List[Any]],
        failures: Optional[Dict[str, Exception]] = None,
        credential: Optional[str] = "test-key",
        credential_required: bool = True,
    ):
        self.source_id = source_id
        self.credential_env = f"{source_id.upper()}_API_KEY"
        self.credential_required = credential_required
        super().__init__({}, classifier=NoneClassifier(), credential=credential)
        self.batches = batches
        self.failures = failures or {}
        self.fetch_calls: List[str] = []

    def work_units(self) -> List[str]:
        return list(self.batches)

    def fetch_batch(self, unit: str) -> List[Dict[str, Any]]:
        self.fetch_calls.append(unit)
        if unit in self.failures:
            raise self.failures[unit]
        return self.batches[unit]

    def normalize(self, raw_record: Any, unit: str) -> Optional[CanonicalRecord]:
        if not isinstance(raw_record, dict):
            return None
        url = clean_text(raw_record.get("url"))
        title = clean_text(raw_record.get("title"))
        if not url or not title:
            return None
        classification = self.classifier.classify(raw_record, unit=unit)
        return CanonicalRecord(
            source=self.source_id,
            external_id=url,
            title=title,
            severity=classification.severity,
            category=classification.category,
            published_at=published_at_or_now(raw_record.get("publishedAt")),
            url=url,
            raw=raw_record,
        )


class RecordingSleep:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def temp_db():
    """
    Create a temporary database for testing.

    Yields:
        Database instance with schema initialized

    Cleanup:
        Automatically closes connection and removes file after test
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(str(Path(tmpdir) / "test.duckdb"))
        db.initialize_schema()
        yield db
        db.close()


@pytest.fixture
def gateway(temp_db):
    """DuckDB upsert gateway over the temporary database."""
    return DuckDbUpsertGateway(temp_db)


@pytest.fixture
def stub_adapter():
    """Factory for in-memory adapters: stub_adapter(source_id, batches, ...)."""
    return StubAdapter


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def rate_limiter(sleeper):
    """Rate limiter with default policies that never actually sleeps."""
    return RateLimiter(sleep=sleeper)


@pytest.fixture
def sample_news_articles():
    """
    Sample NewsAPI articles for testing.

    Returns:
        Two valid articles and one with neither url nor title
    """
    return [
        {
            "source": {"id": None, "name": "Example Wire"},
            "author": "A. Writer",
            "title": "Patch now: CVE-2024-21412 exploited in the wild",
            "description": "Attackers chain cve-2024-21412 with CVE-2024-21351.",
            "url": "https://news.example.com/a1",
            "urlToImage": None,
            "publishedAt": "2024-02-14T10:00:00Z",
            "content": None,
        },
        {
            "source": {"id": "tech", "name": "Tech Daily"},
            "author": None,
            "title": "New chip announced",
            "description": None,
            "url": "https://news.example.com/a2",
            "urlToImage": None,
            "publishedAt": "not a date",
            "content": "Full text of the chip story",
        },
        {
            "source": {"id": None, "name": "Broken"},
            "title": None,
            "url": None,
        },
    ]


@pytest.fixture
def sample_kev_feed():
    """Sample CISA KEV catalog payload."""
    return {
        "title": "CISA Catalog of Known Exploited Vulnerabilities",
        "catalogVersion": "2024.02.14",
        "dateReleased": "2024-02-14T17:00:00.000Z",
        "count": 3,
        "vulnerabilities": [
            {
                "cveID": "CVE-2024-21412",
                "vendorProject": "Microsoft",
                "product": "Windows",
                "vulnerabilityName": "Microsoft Windows Internet Shortcut Files Security Feature Bypass",
                "dateAdded": "2024-02-13",
                "shortDescription": "Security feature bypass in Internet Shortcut Files.",
                "requiredAction": "Apply mitigations per vendor instructions.",
                "dueDate": "2024-03-05",
                "knownRansomwareCampaignUse": "Known",
                "notes": "",
            },
            {
                "cveID": "CVE-2023-99999",
                "vendorProject": "",
                "product": "",
                "vulnerabilityName": "",
                "dateAdded": "",
                "shortDescription": "",
                "requiredAction": "Discontinue use.",
                "knownRansomwareCampaignUse": "Unknown",
            },
            {
                "cveID": "  ",
                "vendorProject": "Nobody",
            },
        ],
    }


@pytest.fixture
def sample_nvd_response():
    """Sample NVD CVE API 2.0 payload."""
    return {
        "resultsPerPage": 3,
        "startIndex": 0,
        "totalResults": 3,
        "format": "NVD_CVE",
        "version": "2.0",
        "vulnerabilities": [
            {
                "cve": {
                    "id": "CVE-2024-0001",
                    "published": "2024-01-10T15:15:08.123",
                    "lastModified": "2024-01-11T10:00:00.000",
                    "vulnStatus": "Analyzed",
                    "descriptions": [
                        {"lang": "es", "value": "Desbordamiento de búfer."},
                        {"lang": "en", "value": "Buffer overflow in example-lib."},
                    ],
                    "metrics": {
                        "cvssMetricV31": [{"cvssData": {"baseScore": 9.8}}],
                        "cvssMetricV2": [{"cvssData": {"baseScore": 5.0}}],
                    },
                    "weaknesses": [
                        {"description": [{"lang": "en", "value": "CWE-787"}]},
                    ],
                    "configurations": [
                        {
                            "nodes": [
                                {
                                    "cpeMatch": [
                                        {"criteria": "cpe:2.3:a:example:example-lib:1.0:*:*:*:*:*:*:*"},
                                        {"criteria": "cpe:2.3:a:example:example-lib:1.1:*:*:*:*:*:*:*"},
                                    ]
                                }
                            ]
                        }
                    ],
                    "references": [
                        {"url": "https://example.com/advisory/1", "source": "vendor"},
                    ],
                }
            },
            {
                "cve": {
                    "id": "CVE-2024-0002",
                    "published": "garbage",
                    "descriptions": [{"lang": "fr", "value": "Description française."}],
                    "metrics": {},
                }
            },
            {"cve": {"descriptions": []}},
        ],
    }
