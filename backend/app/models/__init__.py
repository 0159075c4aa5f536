"""Data models for the search proxy."""

from .core import (
    MAX_RADIUS_METERS,
    Coordinates,
    Place,
    RateLimitResult,
    RecentSearchEntry,
    ResolveResult,
    ResultSource,
    SearchRequest,
)
from .errors import AppError, ErrorCode

__all__ = [
    "MAX_RADIUS_METERS",
    "Coordinates",
    "Place",
    "RateLimitResult",
    "RecentSearchEntry",
    "ResolveResult",
    "ResultSource",
    "SearchRequest",
    "AppError",
    "ErrorCode",
]
