"""
HTTP utilities for source adapters.

Provides bounded retries with backoff for transient failures and translates
transport problems into the adapter error taxonomy. Quota responses (429)
are never retried here: the cooldown policy lives in the rate limiter.
"""
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional

import requests

from .errors import MalformedResponseError, NetworkFailureError, RateLimitedError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {500, 502, 503, 504}


@dataclass
class RetryConfig:
    max_retries: int = 2
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter_ratio: float = 0.3
    timeout_seconds: float = 30.0


class HttpClient:
    """HTTP client with retries and error translation."""

    def __init__(
        self,
        source_id: str,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        secrets: Optional[List[str]] = None,
    ):
        self.source_id = source_id
        self.secrets = [s for s in (secrets or []) if s]
        self.session = session or requests.Session()
        self.retry_config = retry_config or RetryConfig()
        self._sleep = sleep

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        response = self._request("GET", url, params=params, headers=headers)
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                self.source_id, f"invalid JSON from {self._describe(url)}: {exc}"
            ) from exc

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        last_error: Optional[str] = None

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                response = self.session.request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    timeout=self.retry_config.timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = self._redact(f"{type(exc).__name__}: {exc}")
                if attempt < self.retry_config.max_retries:
                    logger.debug("%s request failed (attempt %d): %s", self.source_id, attempt + 1, last_error)
                    self._sleep_with_backoff(attempt, None)
                    continue
                raise NetworkFailureError(self.source_id, last_error) from exc

            if response.status_code == 429:
                raise RateLimitedError(self.source_id, self._retry_after_seconds(response))

            if response.status_code in RETRYABLE_STATUS_CODES:
                last_error = self._status_message(response)
                if attempt < self.retry_config.max_retries:
                    self._sleep_with_backoff(attempt, self._retry_after_seconds(response))
                    continue
                raise NetworkFailureError(self.source_id, last_error, response.status_code)

            if response.status_code >= 400:
                raise NetworkFailureError(
                    self.source_id, self._status_message(response), response.status_code
                )

            return response

        raise NetworkFailureError(self.source_id, last_error or "HTTP request failed")

    def _redact(self, message: str) -> str:
        for secret in self.secrets:
            message = message.replace(secret, "***")
        return message

    @staticmethod
    def _describe(url: str) -> str:
        # Query strings may carry API keys
        return url.split("?", 1)[0]

    def _status_message(self, response: requests.Response) -> str:
        message = f"HTTP {response.status_code} {response.reason or ''}".strip()
        try:
            body = response.json()
        except ValueError:
            return message
        if isinstance(body, dict):
            detail = body.get("message") or body.get("code")
            if detail:
                # Upstream bodies sometimes echo the request, key included
                return self._redact(f"{message}: {detail}")
        return message

    def _retry_after_seconds(self, response: requests.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if not value:
            return None

        try:
            return float(value)
        except ValueError:
            try:
                dt = parsedate_to_datetime(value)
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=timezone.utc)
                return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())
            except (TypeError, ValueError):
                logger.debug("Unable to parse Retry-After header: %s", value)
                return None

    def _sleep_with_backoff(self, attempt: int, retry_after: Optional[float]) -> None:
        base = min(
            self.retry_config.max_delay_seconds,
            self.retry_config.base_delay_seconds * (2 ** attempt),
        )
        jitter = base * random.uniform(0, self.retry_config.jitter_ratio)
        delay = base + jitter
        if retry_after is not None:
            delay = max(delay, min(retry_after, self.retry_config.max_delay_seconds))
        self._sleep(delay)
