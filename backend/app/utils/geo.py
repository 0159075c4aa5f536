"""Geographic helpers: rounding and proximity checks.

Rounding is half-up (``floor(x + 0.5)``) rather than Python's banker's
rounding, so a value exactly between two grid points always lands on the
same side and rounding an already-rounded value returns it unchanged.
"""

import math


def _round_half_up(value: float, decimals: int) -> float:
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor


def round_coordinates(lat: float, lng: float, decimals: int = 3) -> tuple[float, float]:
    """Round latitude and longitude independently.

    3 decimals is a grid of roughly 110 m, enough to absorb GPS jitter.

    Example:
        >>> round_coordinates(1.30049, 103.80051)
        (1.3, 103.801)
    """
    return _round_half_up(lat, decimals), _round_half_up(lng, decimals)


def round_radius(radius: float, nearest: int = 100) -> int:
    """Round a radius in meters to the nearest multiple of ``nearest``."""
    return int(math.floor(radius / nearest + 0.5)) * nearest


def is_nearby(
    lat1: float, lng1: float, lat2: float, lng2: float, threshold: float = 0.001
) -> bool:
    """True if both the latitude and longitude deltas are below ``threshold``.

    0.001 degrees is roughly 100 m.
    """
    return abs(lat1 - lat2) < threshold and abs(lng1 - lng2) < threshold
