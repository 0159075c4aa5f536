"""Exception taxonomy for the search proxy.

- CacheUnavailable: the key-value store failed. Always recovered locally
  (cache miss, rate limiter fails open), never surfaced to clients.
- RateLimitExceeded: a quota tier rejected the request.
- UpstreamProviderError: the places provider failed.
- InvalidRequest: the request was malformed and was rejected before any
  cache or rate-limit work.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.core import RateLimitResult


class SearchProxyError(Exception):
    """Base class for all search proxy errors."""


class CacheUnavailable(SearchProxyError):
    """The backing key-value store could not be reached or failed."""


class InvalidRequest(SearchProxyError):
    """The search request is malformed."""


class UpstreamProviderError(SearchProxyError):
    """The external places provider failed or returned garbage."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceeded(SearchProxyError):
    """A rate limit tier rejected the request."""

    def __init__(self, result: "RateLimitResult") -> None:
        super().__init__(f"Rate limit exceeded ({result.reason})")
        self.result = result

    @property
    def reason(self) -> str | None:
        return self.result.reason
