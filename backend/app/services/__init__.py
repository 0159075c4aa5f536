"""Search proxy services.

Service layer components:
- Cache: shared key-value store (Redis, in-memory fallback), bucket keys,
  location cache and per-client recent searches
- Rate limit: per-client and process-wide sliding windows
- Places: Google Places "searchNearby" client
- Search: the orchestrator tying them together
"""

from .cache import (
    BucketKeyDeriver,
    InMemoryKeyValueStore,
    KeyValueStore,
    LocationCache,
    RecentSearchCache,
    RedisKeyValueStore,
)
from .places import GooglePlacesProvider, PlacesProvider, map_google_place
from .rate_limit import RateLimiter
from .search import SearchOrchestrator, merge_places

__all__ = [
    # Cache
    "BucketKeyDeriver",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LocationCache",
    "RecentSearchCache",
    "RedisKeyValueStore",
    # Places
    "GooglePlacesProvider",
    "PlacesProvider",
    "map_google_place",
    # Rate limiting
    "RateLimiter",
    # Search
    "SearchOrchestrator",
    "merge_places",
]
