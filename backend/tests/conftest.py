"""Shared test doubles: a controllable clock, a failing store and a fake provider."""

from typing import Any

import pytest

from app.exceptions import CacheUnavailable, UpstreamProviderError
from app.models import Coordinates, Place
from app.services.cache import InMemoryKeyValueStore, KeyValueStore
from app.services.places import PlacesProvider


class FakeClock:
    """Callable clock returning epoch seconds, advanced by hand."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenStore(KeyValueStore):
    """Store whose backend is always unreachable."""

    async def get(self, key: str) -> Any | None:
        raise CacheUnavailable("connection refused")

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise CacheUnavailable("connection refused")

    async def delete(self, key: str) -> bool:
        raise CacheUnavailable("connection refused")

    async def window_add(self, key, *, window_start, score, member, ttl_seconds) -> int:
        raise CacheUnavailable("connection refused")

    async def window_remove(self, key: str, member: str) -> None:
        raise CacheUnavailable("connection refused")


class FakeProvider(PlacesProvider):
    """Provider returning canned places per category and recording calls."""

    def __init__(
        self,
        places: dict[str, list[Place]] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        self.places = places or {}
        self.failing = failing or set()
        self.calls: list[list[str]] = []

    async def search(
        self, center: Coordinates, radius_meters: float, categories: list[str]
    ) -> list[Place]:
        self.calls.append(list(categories))
        category = categories[0]
        if category in self.failing:
            raise UpstreamProviderError(f"{category} lookup failed", status_code=503)
        if category in self.places:
            return list(self.places[category])
        return [make_place(f"{category}-1", category), make_place(f"{category}-2", category)]


def make_place(place_id: str, category: str = "restaurant", **kwargs) -> Place:
    return Place(
        id=place_id,
        name=kwargs.pop("name", place_id.replace("-", " ").title()),
        category=category,
        **kwargs,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def broken_store() -> BrokenStore:
    return BrokenStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def place():
    """Factory fixture building Place records."""
    return make_place
