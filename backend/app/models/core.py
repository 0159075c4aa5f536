"""Core data models for the nearby search proxy.

This module contains the Pydantic models shared by the caches, the rate
limiter, the orchestrator and the API layer: coordinates, search requests,
normalized places and the results the orchestrator hands back.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.exceptions import InvalidRequest


# Google Places "searchNearby" rejects radii above 50 km
MAX_RADIUS_METERS = 50_000


class Coordinates(BaseModel):
    """Geographic coordinates with validation.

    Latitude must be between -90 and 90 degrees.
    Longitude must be between -180 and 180 degrees.
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")

    @field_validator("lat", "lng")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("coordinate must be a finite number")
        return value


class SearchRequest(BaseModel):
    """A nearby search as issued by a client.

    Immutable once built. ``categories`` keeps the order the client gave
    (lower-cased, duplicates dropped); an empty tuple means "all" and is
    resolved to the default category superset by the orchestrator.
    """

    model_config = ConfigDict(frozen=True)

    center: Coordinates = Field(..., description="Search center")
    radius_meters: float = Field(
        ..., gt=0, le=MAX_RADIUS_METERS, description="Search radius in meters"
    )
    categories: tuple[str, ...] = Field(
        default=(), description="Place types to search; empty means all"
    )

    @field_validator("radius_meters")
    @classmethod
    def _finite_radius(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("radius must be a finite number")
        return value

    @field_validator("categories", mode="before")
    @classmethod
    def _normalize_categories(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        normalized: list[str] = []
        for item in value:
            if not isinstance(item, str) or not item.strip():
                raise ValueError("categories must be non-empty strings")
            category = item.strip().lower()
            if category not in normalized:
                normalized.append(category)
        return tuple(normalized)

    @classmethod
    def from_payload(cls, payload: dict) -> "SearchRequest":
        """Build a request from untrusted input.

        Raises:
            InvalidRequest: If coordinates, radius or categories are malformed.
        """
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise InvalidRequest(str(e)) from e


class Place(BaseModel):
    """A place as cached and returned to clients.

    This is the normalized shape; provider responses are mapped onto it
    explicitly (see ``app.services.places.map_google_place``).
    """

    id: str = Field(..., min_length=1, description="Provider place identifier")
    name: str = Field(..., description="Display name")
    category: str = Field(..., description="Primary place type")
    price_tier: str = Field(default="", description="Price tier as '$' symbols")
    rating: float = Field(default=0.0, ge=0, description="Average rating")
    address: str = Field(default="", description="Formatted address")
    review_count: int = Field(default=0, ge=0, description="Number of ratings")
    photos: Optional[list[str]] = Field(None, description="Photo URLs")


class ResultSource(str, Enum):
    """Where the results of a resolve call came from."""

    RECENT_CACHE = "recent_cache"
    LOCATION_CACHE = "location_cache"
    PROVIDER = "provider"
    MIXED = "mixed"


class RecentSearchEntry(BaseModel):
    """One remembered search of a client."""

    request: SearchRequest
    results: list[Place] = Field(default_factory=list)
    timestamp: int = Field(..., description="When the search ran, epoch milliseconds")


class RateLimitResult(BaseModel):
    """Outcome of an admission check.

    ``reason`` is None for a normal admission, ``ip_limit`` or
    ``system_limit`` naming the tier that rejected, or ``degraded`` when the
    store was unreachable and the limiter failed open.
    """

    admitted: bool
    limit: int
    remaining: int
    reset_at_ms: int
    reason: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.reason == "degraded"


class ResolveResult(BaseModel):
    """Results of a resolve call and the path that produced them."""

    results: list[Place]
    source: ResultSource
    rate_limit: Optional[RateLimitResult] = None
