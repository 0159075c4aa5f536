"""Caching layer: shared store, bucket keys, location and recent-search caches."""

from .keys import DEFAULT_CATEGORY_SUPERSET, KEY_VERSION, BucketKeyDeriver
from .location import LocationCache
from .recent import RecentSearchCache
from .service import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore

__all__ = [
    "DEFAULT_CATEGORY_SUPERSET",
    "KEY_VERSION",
    "BucketKeyDeriver",
    "LocationCache",
    "RecentSearchCache",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
]
