"""Places provider: Google Places (New) "searchNearby" client.

The provider's JSON shape and our cached ``Place`` shape are kept apart:
``GooglePlace`` mirrors the API response and ``map_google_place`` is the
one place where defaults are filled in (missing rating -> 0, missing review
count -> 0, missing address -> "").

Retries are not done here; a failed call surfaces as UpstreamProviderError.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.exceptions import UpstreamProviderError
from app.models import Coordinates, Place

logger = logging.getLogger(__name__)


# Google's enum names for the new Places API price levels
PRICE_LEVELS = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}

FIELD_MASK = ",".join(
    [
        "places.id",
        "places.displayName",
        "places.priceLevel",
        "places.rating",
        "places.userRatingCount",
        "places.types",
        "places.formattedAddress",
        "places.photos",
    ]
)


class GoogleDisplayName(BaseModel):
    text: str = ""
    languageCode: Optional[str] = None


class GooglePhoto(BaseModel):
    name: str
    widthPx: Optional[int] = None
    heightPx: Optional[int] = None


class GooglePlace(BaseModel):
    """A place as returned by searchNearby (only the masked fields)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    displayName: Optional[GoogleDisplayName] = None
    priceLevel: Optional[Union[int, str]] = None
    rating: Optional[float] = None
    userRatingCount: Optional[int] = None
    types: list[str] = Field(default_factory=list)
    formattedAddress: Optional[str] = None
    photos: list[GooglePhoto] = Field(default_factory=list)


class GoogleSearchNearbyResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # Google omits "places" entirely when nothing matched
    places: list[GooglePlace] = Field(default_factory=list)


def _price_tier(level: Optional[Union[int, str]]) -> str:
    if level is None:
        return ""
    if isinstance(level, str):
        level = PRICE_LEVELS.get(level, 0)
    return "$" * max(0, level)


def map_google_place(
    place: GooglePlace, fallback_category: str, photo_max_width: int = 400
) -> Place:
    """Map a provider place onto the cached Place shape."""
    return Place(
        id=place.id,
        name=place.displayName.text if place.displayName else "",
        category=place.types[0] if place.types else fallback_category,
        price_tier=_price_tier(place.priceLevel),
        rating=place.rating or 0,
        address=place.formattedAddress or "",
        review_count=place.userRatingCount or 0,
        photos=[
            f"https://places.googleapis.com/v1/{photo.name}/media?maxWidthPx={photo_max_width}"
            for photo in place.photos
        ]
        or None,
    )


class PlacesProvider(ABC):
    """Abstract base class for nearby place providers."""

    @abstractmethod
    async def search(
        self, center: Coordinates, radius_meters: float, categories: list[str]
    ) -> list[Place]:
        """Search places around ``center``.

        Raises:
            UpstreamProviderError: On transport or provider-side failure.
        """
        pass

    async def close(self) -> None:
        pass


class GooglePlacesProvider(PlacesProvider):
    """Google Places API (New) client.

    Uses a shared httpx client with connection pooling.
    """

    SEARCH_NEARBY_URL = "https://places.googleapis.com/v1/places:searchNearby"

    def __init__(
        self,
        api_key: str,
        max_results: int = 20,
        language: str = "en",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._max_results = max_results
        self._language = language
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers={
                    "Content-Type": "application/json",
                    "X-Goog-Api-Key": self._api_key,
                    "X-Goog-FieldMask": FIELD_MASK,
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_search_params(
        self, center: Coordinates, radius_meters: float, categories: list[str]
    ) -> dict:
        return {
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": center.lat, "longitude": center.lng},
                    "radius": float(radius_meters),
                }
            },
            "includedTypes": list(categories),
            "maxResultCount": self._max_results,
            "languageCode": self._language,
        }

    async def search(
        self, center: Coordinates, radius_meters: float, categories: list[str]
    ) -> list[Place]:
        if not self._api_key:
            raise UpstreamProviderError("GOOGLE_PLACES_API_KEY not configured")

        body = self.build_search_params(center, radius_meters, categories)
        client = self._get_client()

        try:
            response = await client.post(self.SEARCH_NEARBY_URL, json=body)
        except httpx.HTTPError as e:
            logger.error(f"[PLACES] Request failed for {categories}: {e}")
            raise UpstreamProviderError(f"Google Places request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                f"[PLACES] Google Places returned {response.status_code} for {categories}"
            )
            raise UpstreamProviderError(
                f"Google Places API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            parsed = GoogleSearchNearbyResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamProviderError(f"Unexpected Google Places response: {e}") from e

        fallback = categories[0] if categories else "restaurant"
        places = [map_google_place(p, fallback) for p in parsed.places]
        logger.info(f"[PLACES] {len(places)} places for {categories}")
        return places
