"""
Base adapter interface for all source adapters.

Defines the contract that all source adapters must implement and provides
the canonical record shape every feed is normalized into.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from classification import Classifier, Severity

from .errors import MissingCredentialError
from .http_client import HttpClient, RetryConfig


@dataclass
class CanonicalRecord:
    """
    Normalized record from any source.

    This is the canonical format that all adapters must produce.
    (source, external_id) is the idempotency key used by the upsert gateway.
    """
    # Identity
    source: str                   # newsapi | gnews | cisa_kev | nvd
    external_id: str              # Article URL or CVE id, unique within source

    # Display
    title: str
    category: str
    url: str
    published_at: int             # Epoch milliseconds, never negative
    description: Optional[str] = None
    severity: Severity = Severity.MEDIUM

    # Associations
    cve_ids: List[str] = field(default_factory=list)
    affected: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    # Original payload, kept for audit
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SourceHealth:
    """Health status of a source adapter."""
    source_id: str
    is_healthy: bool
    last_fetch: Optional[datetime]
    records_fetched: int
    error_message: Optional[str] = None


class BaseAdapter(ABC):
    """
    Abstract base class for source adapters.

    A run of one adapter is a sequence of work units (news categories, or a
    single catalog/window fetch). The orchestrator calls fetch_batch() once
    per unit and normalize() once per raw item, in order.
    """

    source_id: str = ""
    credential_env: Optional[str] = None
    credential_required: bool = True

    def __init__(
        self,
        config: Dict[str, Any],
        classifier: Classifier,
        credential: Optional[str] = None,
    ):
        self.config = config
        self.classifier = classifier
        self.credential = credential
        self._last_fetch: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._records_fetched: int = 0
        self._validation_failures = 0
        self._validation_sample_limit = config.get("validation_sample_limit", 3)

    def _build_client(self, default_timeout: float = 30.0) -> HttpClient:
        return HttpClient(
            source_id=self.source_id,
            retry_config=RetryConfig(
                max_retries=self.config.get("max_retries", 2),
                base_delay_seconds=self.config.get("retry_base_seconds", 1.0),
                max_delay_seconds=self.config.get("retry_max_seconds", 30.0),
                jitter_ratio=self.config.get("retry_jitter_ratio", 0.3),
                timeout_seconds=self.config.get("timeout_seconds", default_timeout),
            ),
            secrets=[self.credential] if self.credential else None,
        )

    def ensure_credential(self) -> None:
        """Raise MissingCredentialError if a required credential is absent."""
        if self.credential_required and not self.credential:
            raise MissingCredentialError(self.source_id, self.credential_env or "credential")

    @abstractmethod
    def work_units(self) -> List[str]:
        """Return the ordered units of work (categories, or a single fetch)."""
        pass

    @abstractmethod
    def fetch_batch(self, unit: str) -> List[Dict[str, Any]]:
        """
        Fetch raw items for one unit of work.

        Raises:
            FetchError subclass on network, quota, or payload failures
        """
        pass

    @abstractmethod
    def normalize(self, raw_record: Any, unit: str) -> Optional[CanonicalRecord]:
        """
        Transform a raw source item into a canonical record.

        Returns:
            CanonicalRecord or None if the item lacks identifying fields
        """
        pass

    def mark_fetched(self, count: int) -> None:
        self._last_fetch = datetime.now(timezone.utc)
        self._records_fetched += count

    def mark_failed(self, error_message: str) -> None:
        self._last_fetch = datetime.now(timezone.utc)
        self._last_error = error_message

    def reset_health(self) -> None:
        self._last_error = None
        self._records_fetched = 0
        self._validation_failures = 0

    def get_health(self) -> SourceHealth:
        """Return health status of this adapter."""
        return SourceHealth(
            source_id=self.source_id,
            is_healthy=self._last_error is None,
            last_fetch=self._last_fetch,
            records_fetched=self._records_fetched,
            error_message=self._last_error
        )

    def _log_validation_failure(self, logger, reason: str, payload: Any) -> None:
        if self._validation_failures < self._validation_sample_limit:
            logger.debug("%s dropped item (%s): %s", self.source_id, reason, str(payload)[:500])
        self._validation_failures += 1
