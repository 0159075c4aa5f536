"""Search orchestrator: recent searches -> location cache -> rate limit -> provider.

    1. Recent-search match for this client: return it, no quota spent.
    2. Location cache per category bucket: if every bucket hits, return.
    3. Rate limit check: reject before touching the provider.
    4. Fetch the missing categories, cache each bucket, merge and dedupe.

Categories are always iterated in the order the client gave them (or the
default superset order), so "first occurrence wins" dedup is reproducible.
"""

import asyncio
import logging

from app.exceptions import RateLimitExceeded, UpstreamProviderError
from app.models import Place, ResolveResult, ResultSource, SearchRequest
from app.services.cache import BucketKeyDeriver, LocationCache, RecentSearchCache
from app.services.places import PlacesProvider
from app.services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


def merge_places(*result_sets: list[Place]) -> list[Place]:
    """Concatenate result sets, keeping the first place seen for each id."""
    seen: set[str] = set()
    merged: list[Place] = []
    for places in result_sets:
        for place in places:
            if place.id in seen:
                continue
            seen.add(place.id)
            merged.append(place)
    return merged


class SearchOrchestrator:
    """Resolves nearby searches through the cache layers and the provider."""

    def __init__(
        self,
        key_deriver: BucketKeyDeriver,
        location_cache: LocationCache,
        recent_searches: RecentSearchCache,
        rate_limiter: RateLimiter,
        provider: PlacesProvider,
    ) -> None:
        self._keys = key_deriver
        self._location_cache = location_cache
        self._recent = recent_searches
        self._rate_limiter = rate_limiter
        self._provider = provider

    async def _fetch_category(self, request: SearchRequest, category: str) -> list[Place]:
        return await self._provider.search(request.center, request.radius_meters, [category])

    async def resolve(self, client_id: str, request: SearchRequest) -> ResolveResult:
        """Resolve a search for ``client_id``.

        Raises:
            RateLimitExceeded: If the provider would be needed but a quota
                tier rejected the request.
            UpstreamProviderError: If any provider fetch failed.
        """
        categories = self._keys.resolve_categories(request)

        match = await self._recent.find_match(client_id, request)
        if match is not None:
            logger.info(f"[SEARCH] {client_id}: recent search hit")
            return ResolveResult(results=match.results, source=ResultSource.RECENT_CACHE)

        hits: dict[str, list[Place]] = {}
        misses: list[str] = []
        for category in categories:
            cached = await self._location_cache.get(self._keys.bucket_key_for(request, category))
            if cached is None:
                misses.append(category)
            else:
                hits[category] = cached

        if not misses:
            results = merge_places(*(hits[c] for c in categories))
            await self._recent.append(client_id, request, results)
            logger.info(f"[SEARCH] {client_id}: all {len(categories)} buckets cached")
            return ResolveResult(results=results, source=ResultSource.LOCATION_CACHE)

        rate_limit = await self._rate_limiter.check_limit(client_id)
        if not rate_limit.admitted:
            raise RateLimitExceeded(rate_limit)

        logger.info(f"[SEARCH] {client_id}: fetching {misses} (cached: {list(hits)})")
        # Let every fetch finish; gather keeps results in ``misses`` order
        outcomes = await asyncio.gather(
            *(self._fetch_category(request, c) for c in misses),
            return_exceptions=True,
        )

        fetched: dict[str, list[Place]] = {}
        failures: list[BaseException] = []
        for category, outcome in zip(misses, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"[SEARCH] Provider fetch for {category} failed: {outcome}")
                failures.append(outcome)
                continue
            fetched[category] = outcome
            await self._location_cache.put(self._keys.bucket_key_for(request, category), outcome)

        if failures:
            first = failures[0]
            if isinstance(first, UpstreamProviderError):
                raise first
            raise UpstreamProviderError(f"Provider fetch failed: {first}") from first

        results = merge_places(
            *(hits[c] for c in categories if c in hits),
            *(fetched[c] for c in categories if c in fetched),
        )
        await self._recent.append(client_id, request, results)

        source = ResultSource.MIXED if hits else ResultSource.PROVIDER
        return ResolveResult(results=results, source=source, rate_limit=rate_limit)
