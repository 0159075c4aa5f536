"""Cache key derivation for nearby searches.

Bucket keys are deliberately coarse so that nearby, similar requests collide:

    places:v1:{geohash}:{rounded_radius}:{sorted,categories}

The ``v1`` segment versions both the key layout and the default category
superset. Change it whenever either changes, or old entries stay reachable
under the new meaning.
"""

from dataclasses import dataclass, field

import pygeohash as pgh

from app.models import SearchRequest
from app.utils.geo import is_nearby, round_coordinates, round_radius

KEY_VERSION = "v1"

DEFAULT_CATEGORY_SUPERSET: tuple[str, ...] = (
    "restaurant",
    "cafe",
    "bakery",
    "meal_takeaway",
)


@dataclass(frozen=True)
class BucketKeyDeriver:
    """Turns search requests into deterministic bucket keys.

    Pure: no randomness and no clock, so the same request always maps to
    the same key on both the read and the write path.
    """

    geohash_precision: int = 5
    coordinate_decimals: int = 3
    radius_rounding_meters: int = 100
    default_categories: tuple[str, ...] = field(default=DEFAULT_CATEGORY_SUPERSET)

    def resolve_categories(self, request: SearchRequest) -> tuple[str, ...]:
        """Categories to search, in the order the client gave them."""
        return request.categories or self.default_categories

    def _category_token(self, categories: tuple[str, ...]) -> str:
        if not categories:
            categories = self.default_categories
        return ",".join(sorted(set(categories)))

    def _cell(self, request: SearchRequest) -> str:
        lat, lng = round_coordinates(
            request.center.lat, request.center.lng, self.coordinate_decimals
        )
        return pgh.encode(lat, lng, precision=self.geohash_precision)

    def derive_bucket_key(self, request: SearchRequest) -> str:
        """Bucket key for the request as a whole."""
        radius = round_radius(request.radius_meters, self.radius_rounding_meters)
        return (
            f"places:{KEY_VERSION}:{self._cell(request)}:{radius}:"
            f"{self._category_token(request.categories)}"
        )

    def bucket_key_for(self, request: SearchRequest, category: str) -> str:
        """Bucket key for a single-category slice of the request."""
        radius = round_radius(request.radius_meters, self.radius_rounding_meters)
        return f"places:{KEY_VERSION}:{self._cell(request)}:{radius}:{category}"

    def is_near_match(
        self,
        stored: SearchRequest,
        requested: SearchRequest,
        threshold_degrees: float = 0.001,
    ) -> bool:
        """Request-to-request proximity test used by the recent-search cache.

        Looser than the bucket test: it compares raw centers, so two points
        on either side of a geohash cell boundary still match. Radii must be
        equal after rounding and the category sets identical once an empty
        set is resolved to the default superset.
        """
        if not is_nearby(
            stored.center.lat,
            stored.center.lng,
            requested.center.lat,
            requested.center.lng,
            threshold_degrees,
        ):
            return False
        if round_radius(stored.radius_meters, self.radius_rounding_meters) != round_radius(
            requested.radius_meters, self.radius_rounding_meters
        ):
            return False
        return set(self.resolve_categories(stored)) == set(
            self.resolve_categories(requested)
        )
