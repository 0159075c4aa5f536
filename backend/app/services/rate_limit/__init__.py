"""Sliding-window rate limiting."""

from .service import (
    REASON_DEGRADED,
    REASON_IP_LIMIT,
    REASON_SYSTEM_LIMIT,
    SYSTEM_KEY,
    RateLimiter,
    RateLimitTier,
)

__all__ = [
    "REASON_DEGRADED",
    "REASON_IP_LIMIT",
    "REASON_SYSTEM_LIMIT",
    "SYSTEM_KEY",
    "RateLimiter",
    "RateLimitTier",
]
