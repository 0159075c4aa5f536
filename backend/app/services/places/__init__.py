"""Places provider service module."""

from .service import (
    GooglePlace,
    GooglePlacesProvider,
    GoogleSearchNearbyResponse,
    PlacesProvider,
    map_google_place,
)

__all__ = [
    "GooglePlace",
    "GooglePlacesProvider",
    "GoogleSearchNearbyResponse",
    "PlacesProvider",
    "map_google_place",
]
