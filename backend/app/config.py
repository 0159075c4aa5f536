"""Runtime configuration.

Values come from the environment (a local ``.env`` file is loaded first).
Every cache TTL, rounding step and quota is a tuning knob; none of the
defaults below is load-bearing beyond "coarser keys trade freshness for
hit rate".
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from app.services.cache.keys import DEFAULT_CATEGORY_SUPERSET

load_dotenv()


class Settings(BaseModel):
    """Search proxy settings."""

    # Caches
    location_cache_ttl_seconds: int = Field(default=3600, gt=0)
    recent_search_max_entries: int = Field(default=5, gt=0)
    recent_search_ttl_seconds: int = Field(default=86400, gt=0)

    # Bucket keys
    geohash_precision: int = Field(default=5, ge=1, le=12)
    coordinate_decimals: int = Field(default=3, ge=0, le=8)
    radius_rounding_meters: int = Field(default=100, gt=0)
    near_match_threshold_degrees: float = Field(default=0.001, gt=0)
    default_category_superset: tuple[str, ...] = DEFAULT_CATEGORY_SUPERSET

    # Rate limiting
    ip_limit: int = Field(default=10, gt=0)
    ip_window_seconds: int = Field(default=300, gt=0)
    system_limit: int = Field(default=100, gt=0)
    system_window_seconds: int = Field(default=3600, gt=0)

    # Backends
    redis_url: Optional[str] = None
    google_places_api_key: Optional[str] = None
    places_max_results: int = Field(default=20, ge=1, le=20)
    places_language: str = "en"
    provider_timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("default_category_superset", mode="before")
    @classmethod
    def _split_categories(cls, value):
        if isinstance(value, str):
            value = [c for c in value.split(",")]
        categories = tuple(c.strip().lower() for c in value if c and c.strip())
        if not categories:
            raise ValueError("default_category_superset cannot be empty")
        return categories

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from upper-cased environment variables.

        Unset variables keep their defaults, e.g. ``IP_LIMIT=20`` overrides
        ``ip_limit``.
        """
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)
