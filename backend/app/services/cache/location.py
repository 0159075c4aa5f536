"""Location cache: provider result sets stored under geo bucket keys."""

import logging
import time
from typing import Callable

from pydantic import ValidationError

from app.exceptions import CacheUnavailable
from app.models import Place
from app.services.cache.service import KeyValueStore

logger = logging.getLogger(__name__)


class LocationCache:
    """Bucket key -> list of places, expired by the store's TTL.

    Cache failures never fail a request: reads degrade to a miss and
    writes are dropped with a warning.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    async def get(self, bucket_key: str) -> list[Place] | None:
        try:
            cached = await self._store.get(bucket_key)
        except CacheUnavailable as e:
            logger.warning(f"[CACHE] Read of {bucket_key} failed, treating as miss: {e}")
            return None

        if cached is None:
            logger.debug(f"[CACHE] Miss {bucket_key}")
            return None

        try:
            places = [Place.model_validate(p) for p in cached["places"]]
        except (KeyError, TypeError, ValidationError) as e:
            logger.warning(f"[CACHE] Malformed entry at {bucket_key}, ignoring: {e}")
            return None

        logger.debug(f"[CACHE] Hit {bucket_key} ({len(places)} places)")
        return places

    async def put(
        self, bucket_key: str, places: list[Place], ttl_seconds: int | None = None
    ) -> None:
        """Overwrite the bucket with a fresh result set.

        An empty result set removes the bucket instead of caching "nothing here".
        """
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl
        try:
            if not places:
                await self._store.delete(bucket_key)
                return
            await self._store.set(
                bucket_key,
                {
                    "places": [p.model_dump(mode="json") for p in places],
                    "stored_at": int(self._clock() * 1000),
                },
                ttl,
            )
        except CacheUnavailable as e:
            logger.warning(f"[CACHE] Write of {bucket_key} dropped: {e}")
