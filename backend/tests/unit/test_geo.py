"""Unit tests for the geo helpers."""

import pytest

from app.utils.geo import is_nearby, round_coordinates, round_radius


class TestRoundCoordinates:
    def test_rounds_to_three_decimals(self) -> None:
        assert round_coordinates(1.30049, 103.80051) == (1.3, 103.801)

    def test_half_up_on_exact_midpoint(self) -> None:
        assert round_coordinates(0.25, -0.25, decimals=1) == (0.3, -0.2)

    def test_negative_values(self) -> None:
        assert round_coordinates(-33.86882, -151.20929) == (-33.869, -151.209)

    @pytest.mark.parametrize(
        "lat,lng",
        [(1.3004, 103.8003), (-0.0008, 0.0001), (48.85837, 2.294481), (89.9996, -179.9996)],
    )
    def test_idempotent(self, lat: float, lng: float) -> None:
        once = round_coordinates(lat, lng)
        assert round_coordinates(*once) == once

    def test_custom_precision(self) -> None:
        assert round_coordinates(1.23456, 7.65432, decimals=1) == (1.2, 7.7)


class TestRoundRadius:
    def test_rounds_to_nearest_hundred(self) -> None:
        assert round_radius(1049) == 1000
        assert round_radius(1050) == 1100
        assert round_radius(960.5) == 1000

    def test_already_rounded(self) -> None:
        assert round_radius(1000) == 1000

    @pytest.mark.parametrize("radius", [1.0, 149.9, 250.0, 1234.5, 49999.0])
    def test_idempotent(self, radius: float) -> None:
        once = round_radius(radius)
        assert round_radius(once) == once

    def test_custom_step(self) -> None:
        assert round_radius(1260, nearest=500) == 1500


class TestIsNearby:
    def test_within_threshold(self) -> None:
        assert is_nearby(1.3000, 103.8000, 1.3004, 103.8003) is True

    def test_latitude_too_far(self) -> None:
        assert is_nearby(1.3000, 103.8000, 1.3011, 103.8000) is False

    def test_longitude_too_far(self) -> None:
        assert is_nearby(1.3000, 103.8000, 1.3000, 103.7985) is False

    def test_custom_threshold(self) -> None:
        assert is_nearby(1.30, 103.80, 1.35, 103.80, threshold=0.1) is True
