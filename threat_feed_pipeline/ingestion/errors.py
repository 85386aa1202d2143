"""
Error taxonomy for source adapters.

Every failure an adapter can surface is a FetchError subclass so the
orchestrator can catch at source granularity without swallowing programming
errors raised elsewhere. Items that are merely incomplete are not errors:
they are dropped by the normalizer and never reach this hierarchy.
"""
from typing import Optional


class FetchError(RuntimeError):
    """Base class for failures that abandon a source's remaining work."""

    def __init__(self, source_id: str, message: str):
        super().__init__(message)
        self.source_id = source_id


class MissingCredentialError(FetchError):
    """Raised before any network call when a required credential is absent."""

    def __init__(self, source_id: str, credential_env: str):
        super().__init__(source_id, f"{credential_env} not set")
        self.credential_env = credential_env


class NetworkFailureError(FetchError):
    """A request could not complete (connection error, timeout, HTTP error)."""

    def __init__(self, source_id: str, message: str, status_code: Optional[int] = None):
        super().__init__(source_id, message)
        self.status_code = status_code


class RateLimitedError(FetchError):
    """Upstream answered 429 Too Many Requests."""

    def __init__(self, source_id: str, retry_after: Optional[float] = None):
        super().__init__(source_id, "HTTP 429 Too Many Requests")
        self.retry_after = retry_after


class MalformedResponseError(FetchError):
    """Top-level payload could not be decoded into the expected shape."""
