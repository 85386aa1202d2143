"""
Ingestion layer for the threat and news feed pipeline.

Provides adapters for fetching and normalizing data from multiple sources:
- NewsAPI (general news headlines)
- GNews (technology headlines)
- CISA KEV (known exploited vulnerabilities catalog)
- NVD API (CVE database)
"""
from typing import Any, Dict, Type

from classification import get_classifier

from .base_adapter import BaseAdapter, CanonicalRecord, SourceHealth
from .credentials import Credentials
from .errors import (
    FetchError,
    MalformedResponseError,
    MissingCredentialError,
    NetworkFailureError,
    RateLimitedError,
)
from .gnews_adapter import GNewsAdapter
from .kev_adapter import KevAdapter
from .newsapi_adapter import NewsApiAdapter
from .nvd_adapter import NvdAdapter
from .rate_limiter import RateLimiter, RatePolicy

ADAPTER_TYPES: Dict[str, Type[BaseAdapter]] = {
    NewsApiAdapter.source_id: NewsApiAdapter,
    GNewsAdapter.source_id: GNewsAdapter,
    KevAdapter.source_id: KevAdapter,
    NvdAdapter.source_id: NvdAdapter,
}


def build_adapter(source_id: str, config: Dict[str, Any], credentials: Credentials) -> BaseAdapter:
    """Construct the adapter for a source with its classifier and credential."""
    if source_id not in ADAPTER_TYPES:
        raise ValueError(f"Unknown source: {source_id}")
    adapter_type = ADAPTER_TYPES[source_id]
    return adapter_type(
        config,
        classifier=get_classifier(source_id),
        credential=credentials.for_source(source_id),
    )


__all__ = [
    "ADAPTER_TYPES",
    "BaseAdapter",
    "CanonicalRecord",
    "Credentials",
    "SourceHealth",
    "FetchError",
    "MissingCredentialError",
    "NetworkFailureError",
    "RateLimitedError",
    "MalformedResponseError",
    "NewsApiAdapter",
    "GNewsAdapter",
    "KevAdapter",
    "NvdAdapter",
    "RateLimiter",
    "RatePolicy",
    "build_adapter",
]
