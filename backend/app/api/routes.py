"""API routes for the nearby search proxy.

POST /api/places resolves a search through the recent-search cache, the
location cache and, quota permitting, Google Places. Rate limit state is
reported through X-RateLimit-* headers whenever the limiter ran.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.config import Settings
from app.exceptions import InvalidRequest, RateLimitExceeded, UpstreamProviderError
from app.models import AppError, ErrorCode, Place, RateLimitResult, ResultSource, SearchRequest
from app.services import (
    BucketKeyDeriver,
    GooglePlacesProvider,
    InMemoryKeyValueStore,
    KeyValueStore,
    LocationCache,
    PlacesProvider,
    RateLimiter,
    RecentSearchCache,
    RedisKeyValueStore,
    SearchOrchestrator,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_CLIENT_ID = "127.0.0.1"


class PlacesSearchBody(BaseModel):
    """Request body for a nearby search."""

    location: dict[str, Any] = Field(..., description='{"lat": .., "lng": ..}')
    radius_meters: float = Field(..., description="Search radius in meters")
    categories: list[str] = Field(
        default_factory=list, description="Place types; empty searches the default set"
    )


class PlacesSearchResponse(BaseModel):
    """Response model for a nearby search."""

    success: bool
    data: list[Place] = Field(default_factory=list)
    source: Optional[ResultSource] = None
    error: Optional[AppError] = None


# Service instances
_settings: Settings | None = None
_store: KeyValueStore | None = None
_provider: PlacesProvider | None = None
_orchestrator: SearchOrchestrator | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_store() -> KeyValueStore:
    global _store
    if _store is None:
        settings = get_settings()
        if settings.redis_url:
            _store = RedisKeyValueStore(settings.redis_url)
        else:
            logger.warning("[CACHE] REDIS_URL not set, using process-local in-memory store")
            _store = InMemoryKeyValueStore()
    return _store


def get_provider() -> PlacesProvider:
    global _provider
    if _provider is None:
        settings = get_settings()
        if not settings.google_places_api_key:
            logger.warning(
                "[PLACES] GOOGLE_PLACES_API_KEY not set, only cached searches will succeed"
            )
        _provider = GooglePlacesProvider(
            api_key=settings.google_places_api_key or "",
            max_results=settings.places_max_results,
            language=settings.places_language,
            timeout=settings.provider_timeout_seconds,
        )
    return _provider


def create_search_orchestrator(
    settings: Settings, store: KeyValueStore, provider: PlacesProvider
) -> SearchOrchestrator:
    """Wire the caches, the limiter and the provider around one store."""
    key_deriver = BucketKeyDeriver(
        geohash_precision=settings.geohash_precision,
        coordinate_decimals=settings.coordinate_decimals,
        radius_rounding_meters=settings.radius_rounding_meters,
        default_categories=settings.default_category_superset,
    )
    return SearchOrchestrator(
        key_deriver=key_deriver,
        location_cache=LocationCache(store, ttl_seconds=settings.location_cache_ttl_seconds),
        recent_searches=RecentSearchCache(
            store,
            key_deriver,
            max_entries=settings.recent_search_max_entries,
            match_ttl_seconds=settings.location_cache_ttl_seconds,
            storage_ttl_seconds=settings.recent_search_ttl_seconds,
            near_match_threshold=settings.near_match_threshold_degrees,
        ),
        rate_limiter=RateLimiter(
            store,
            ip_limit=settings.ip_limit,
            ip_window_seconds=settings.ip_window_seconds,
            system_limit=settings.system_limit,
            system_window_seconds=settings.system_window_seconds,
        ),
        provider=provider,
    )


def get_search_orchestrator() -> SearchOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_search_orchestrator(get_settings(), get_store(), get_provider())
    return _orchestrator


async def shutdown_services() -> None:
    """Close the store and provider connections."""
    global _store, _provider, _orchestrator
    if _provider is not None:
        await _provider.close()
    if _store is not None:
        await _store.close()
    _store = None
    _provider = None
    _orchestrator = None


def get_client_id(request: Request) -> str:
    """Client identity: first X-Forwarded-For hop, else the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return DEFAULT_CLIENT_ID


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at_ms),
    }
    if result.degraded:
        headers["X-RateLimit-Degraded"] = "true"
    return headers


def _error_response(status_code: int, error: AppError, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error.model_dump(mode="json"),
            **extra,
        },
    )


@router.post("/places", response_model=PlacesSearchResponse)
async def search_places(
    body: PlacesSearchBody,
    request: Request,
    response: Response,
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """Find places near a location, from cache when possible."""
    client_id = get_client_id(request)

    try:
        search = SearchRequest.from_payload(
            {
                "center": body.location,
                "radius_meters": body.radius_meters,
                "categories": body.categories,
            }
        )
        result = await orchestrator.resolve(client_id, search)
    except InvalidRequest as e:
        return _error_response(
            400,
            AppError(
                code=ErrorCode.INVALID_INPUT,
                message=str(e),
                user_message="Please check the location and radius and try again.",
            ),
        )
    except RateLimitExceeded as e:
        logger.info(f"[API] {client_id} rate limited ({e.reason})")
        return JSONResponse(
            status_code=429,
            headers=rate_limit_headers(e.result),
            content={
                "success": False,
                "error": AppError(
                    code=ErrorCode.RATE_LIMITED,
                    message=f"Rate limit exceeded: {e.reason}",
                    user_message="Too many searches. Please wait a few minutes.",
                ).model_dump(mode="json"),
                "reason": e.reason,
                "limit": e.result.limit,
                "remaining": e.result.remaining,
                "reset": e.result.reset_at_ms,
            },
        )
    except UpstreamProviderError as e:
        return _error_response(
            502,
            AppError(
                code=ErrorCode.UPSTREAM_ERROR,
                message=str(e),
                user_message="The places service is unavailable. Please try again.",
            ),
        )

    if result.rate_limit is not None:
        response.headers.update(rate_limit_headers(result.rate_limit))

    return PlacesSearchResponse(success=True, data=result.results, source=result.source)
