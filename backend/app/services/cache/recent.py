"""Per-client history of recent searches.

Each client gets one stored list, newest first, capped at a few entries.
Two TTLs apply: an entry only counts as a match while it is younger than
the location cache TTL (checked here at read time), while the stored list
itself lives for a day so it can be re-displayed.
"""

import logging
import time
from typing import Callable

from pydantic import ValidationError

from app.exceptions import CacheUnavailable
from app.models import Place, RecentSearchEntry, SearchRequest
from app.services.cache.keys import BucketKeyDeriver
from app.services.cache.service import KeyValueStore

logger = logging.getLogger(__name__)


class RecentSearchCache:
    """Stores and matches the recent searches of each client."""

    def __init__(
        self,
        store: KeyValueStore,
        key_deriver: BucketKeyDeriver,
        max_entries: int = 5,
        match_ttl_seconds: int = 3600,
        storage_ttl_seconds: int = 86400,
        near_match_threshold: float = 0.001,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._keys = key_deriver
        self._max_entries = max_entries
        self._match_ttl_ms = match_ttl_seconds * 1000
        self._storage_ttl = storage_ttl_seconds
        self._threshold = near_match_threshold
        self._clock = clock

    @staticmethod
    def build_user_key(client_id: str) -> str:
        """Generate the store key for a client's history.

        Example:
            >>> RecentSearchCache.build_user_key("203.0.113.7")
            'user:203.0.113.7:searches'
        """
        return f"user:{client_id}:searches"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get_recent(self, client_id: str) -> list[RecentSearchEntry]:
        key = self.build_user_key(client_id)
        try:
            raw = await self._store.get(key)
        except CacheUnavailable as e:
            logger.warning(f"[RECENT] Read of {key} failed: {e}")
            return []

        if not isinstance(raw, list):
            return []

        entries: list[RecentSearchEntry] = []
        for item in raw:
            try:
                entries.append(RecentSearchEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"[RECENT] Skipping malformed entry in {key}: {e}")
        return entries

    async def find_match(
        self, client_id: str, request: SearchRequest
    ) -> RecentSearchEntry | None:
        """First recent entry that near-matches ``request`` and is still fresh."""
        now = self._now_ms()
        for entry in await self.get_recent(client_id):
            if now - entry.timestamp >= self._match_ttl_ms:
                continue
            if self._keys.is_near_match(entry.request, request, self._threshold):
                return entry
        return None

    async def append(
        self, client_id: str, request: SearchRequest, results: list[Place]
    ) -> None:
        """Prepend a search and keep only the newest ``max_entries``."""
        key = self.build_user_key(client_id)
        entries = await self.get_recent(client_id)
        entries.insert(
            0, RecentSearchEntry(request=request, results=results, timestamp=self._now_ms())
        )
        entries = entries[: self._max_entries]

        try:
            await self._store.set(
                key,
                [e.model_dump(mode="json") for e in entries],
                self._storage_ttl,
            )
        except CacheUnavailable as e:
            logger.warning(f"[RECENT] Write of {key} dropped: {e}")
