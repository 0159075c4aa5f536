"""Key-value store backing the caches and the rate limiter.

This module provides an abstract store interface and two implementations:
a Redis store for production and an in-memory store for local development
and tests. Both expose the same two families of operations:

- plain JSON values with a TTL (location cache, recent searches)
- sliding-window event logs kept in a sorted collection (rate limiter)

Every failure to talk to the backend is raised as ``CacheUnavailable`` so
callers can degrade without knowing which backend they run against.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.exceptions import CacheUnavailable

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract base class for the shared key-value store."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve a stored value by key.

        Args:
            key: The key to look up.

        Returns:
            The deserialized value if present and unexpired, None otherwise.

        Raises:
            CacheUnavailable: If the backend failed.
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store a JSON-serializable value, overwriting any previous one.

        Args:
            key: The key to store under.
            value: The value to store.
            ttl_seconds: Time-to-live in seconds.

        Raises:
            CacheUnavailable: If the backend failed.
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if the key was deleted, False if it didn't exist.

        Raises:
            CacheUnavailable: If the backend failed.
        """
        pass

    @abstractmethod
    async def window_add(
        self,
        key: str,
        *,
        window_start: float,
        score: float,
        member: str,
        ttl_seconds: int,
    ) -> int:
        """Record an event in a sliding-window log as one atomic batch.

        The batch drops every event scored at or before ``window_start``,
        counts the survivors, adds ``member`` at ``score`` and refreshes the
        key's expiry to ``ttl_seconds``.

        Returns:
            The number of events in the window before this one was added.

        Raises:
            CacheUnavailable: If the backend failed.
        """
        pass

    @abstractmethod
    async def window_remove(self, key: str, member: str) -> None:
        """Remove a single event from a sliding-window log.

        Raises:
            CacheUnavailable: If the backend failed.
        """
        pass

    async def close(self) -> None:
        """Release backend resources."""
        pass


class RedisKeyValueStore(KeyValueStore):
    """Redis-based implementation of the store.

    Plain values are JSON strings set with ``EX``. Sliding windows are sorted
    sets scored by event time; ``window_add`` runs ZREMRANGEBYSCORE, ZCARD,
    ZADD and EXPIRE inside a single MULTI/EXEC transaction so concurrent
    checks against the same key observe a consistent count.

    Attributes:
        _client: The Redis async client instance.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379") -> None:
        """Initialize the Redis store.

        Args:
            redis_url: Redis connection URL. Defaults to localhost:6379.
        """
        self._redis_url = redis_url
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Create the Redis client.

        The connection itself is established lazily on first command.
        """
        if self._client is None:
            self._client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _ensure_connected(self) -> redis.Redis:
        if self._client is None:
            await self.connect()
        return self._client  # type: ignore

    async def get(self, key: str) -> Any | None:
        client = await self._ensure_connected()
        try:
            value = await client.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"GET {key} failed: {e}") from e
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"[CACHE] Ignoring non-JSON value at {key}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        client = await self._ensure_connected()
        serialized = json.dumps(value)
        try:
            await client.set(key, serialized, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"SET {key} failed: {e}") from e

    async def delete(self, key: str) -> bool:
        client = await self._ensure_connected()
        try:
            result = await client.delete(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"DEL {key} failed: {e}") from e
        return result > 0

    async def window_add(
        self,
        key: str,
        *,
        window_start: float,
        score: float,
        member: str,
        ttl_seconds: int,
    ) -> int:
        client = await self._ensure_connected()
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, "-inf", window_start)
                pipe.zcard(key)
                pipe.zadd(key, {member: score})
                pipe.expire(key, ttl_seconds)
                _, count, _, _ = await pipe.execute()
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"sliding window update on {key} failed: {e}") from e
        return int(count)

    async def window_remove(self, key: str, member: str) -> None:
        client = await self._ensure_connected()
        try:
            await client.zrem(key, member)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"ZREM {key} failed: {e}") from e


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store with TTL expiry.

    Used when no Redis URL is configured and as the store in tests. Expiry
    is checked lazily on access against ``clock``, so tests can drive time
    with a fake clock. Each method runs without awaiting, which makes
    ``window_add`` atomic with respect to other coroutines.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._values: dict[str, tuple[float, str]] = {}
        self._windows: dict[str, tuple[float, dict[str, float]]] = {}

    def _expired(self, expires_at: float) -> bool:
        return self._clock() >= expires_at

    async def get(self, key: str) -> Any | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        expires_at, serialized = entry
        if self._expired(expires_at):
            del self._values[key]
            return None
        return json.loads(serialized)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        # Serialize on write so callers can't mutate stored data in place
        self._values[key] = (self._clock() + ttl_seconds, json.dumps(value))

    async def delete(self, key: str) -> bool:
        return self._values.pop(key, None) is not None

    async def window_add(
        self,
        key: str,
        *,
        window_start: float,
        score: float,
        member: str,
        ttl_seconds: int,
    ) -> int:
        entry = self._windows.get(key)
        events: dict[str, float] = {}
        if entry is not None and not self._expired(entry[0]):
            events = entry[1]

        events = {m: s for m, s in events.items() if s > window_start}
        count = len(events)
        events[member] = score
        self._windows[key] = (self._clock() + ttl_seconds, events)
        return count

    async def window_remove(self, key: str, member: str) -> None:
        entry = self._windows.get(key)
        if entry is not None:
            entry[1].pop(member, None)

    def window_size(self, key: str) -> int:
        """Number of logged events for ``key`` (expired keys count as 0)."""
        entry = self._windows.get(key)
        if entry is None or self._expired(entry[0]):
            return 0
        return len(entry[1])
