"""Unit tests for the key-value store implementations."""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.exceptions import CacheUnavailable
from app.services.cache import InMemoryKeyValueStore, RedisKeyValueStore


class TestInMemoryKeyValueStore:
    @pytest.mark.asyncio
    async def test_set_and_get(self, store) -> None:
        await store.set("k", {"a": [1, 2]}, ttl_seconds=60)
        assert await store.get("k") == {"a": [1, 2]}

    @pytest.mark.asyncio
    async def test_missing_key(self, store) -> None:
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_expiry(self, store, clock) -> None:
        await store.set("k", "v", ttl_seconds=60)
        clock.advance(59)
        assert await store.get("k") == "v"
        clock.advance(1)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_stored_value_is_a_copy(self, store) -> None:
        value = {"places": [1]}
        await store.set("k", value, ttl_seconds=60)
        value["places"].append(2)
        assert await store.get("k") == {"places": [1]}

    @pytest.mark.asyncio
    async def test_delete(self, store) -> None:
        await store.set("k", "v", ttl_seconds=60)
        assert await store.delete("k") is True
        assert await store.delete("k") is False
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_window_add_counts_before_insert(self, store) -> None:
        counts = [
            await store.window_add(
                "w", window_start=0, score=100 + i, member=f"m{i}", ttl_seconds=60
            )
            for i in range(3)
        ]
        assert counts == [0, 1, 2]
        assert store.window_size("w") == 3

    @pytest.mark.asyncio
    async def test_window_add_drops_old_events(self, store) -> None:
        await store.window_add("w", window_start=0, score=100, member="old", ttl_seconds=60)
        await store.window_add("w", window_start=0, score=200, member="new", ttl_seconds=60)
        count = await store.window_add(
            "w", window_start=100, score=300, member="newest", ttl_seconds=60
        )
        # The event scored exactly at the window start is out
        assert count == 1
        assert store.window_size("w") == 2

    @pytest.mark.asyncio
    async def test_window_remove(self, store) -> None:
        await store.window_add("w", window_start=0, score=100, member="a", ttl_seconds=60)
        await store.window_remove("w", "a")
        await store.window_remove("w", "not-there")
        await store.window_remove("other", "a")
        assert store.window_size("w") == 0

    @pytest.mark.asyncio
    async def test_idle_window_expires(self, store, clock) -> None:
        await store.window_add("w", window_start=0, score=100, member="a", ttl_seconds=60)
        clock.advance(60)
        assert store.window_size("w") == 0
        assert (
            await store.window_add("w", window_start=0, score=200, member="b", ttl_seconds=60)
            == 0
        )


class TestRedisKeyValueStore:
    def setup_method(self) -> None:
        self.store = RedisKeyValueStore("redis://localhost:6379")
        self.client = MagicMock()
        self.store._client = self.client

    @pytest.mark.asyncio
    async def test_get_decodes_json(self) -> None:
        self.client.get = AsyncMock(return_value='{"places": []}')
        assert await self.store.get("k") == {"places": []}

    @pytest.mark.asyncio
    async def test_get_missing(self) -> None:
        self.client.get = AsyncMock(return_value=None)
        assert await self.store.get("k") is None

    @pytest.mark.asyncio
    async def test_get_non_json_is_a_miss(self, caplog) -> None:
        self.client.get = AsyncMock(return_value="not-json")
        with caplog.at_level(logging.WARNING):
            assert await self.store.get("k") is None
        assert "non-JSON" in caplog.text

    @pytest.mark.asyncio
    async def test_set_serializes_with_expiry(self) -> None:
        self.client.set = AsyncMock()
        await self.store.set("k", {"a": 1}, ttl_seconds=3600)
        self.client.set.assert_awaited_once_with("k", '{"a": 1}', ex=3600)

    @pytest.mark.asyncio
    async def test_connection_errors_become_cache_unavailable(self) -> None:
        self.client.get = AsyncMock(side_effect=RedisConnectionError("refused"))
        self.client.set = AsyncMock(side_effect=RedisConnectionError("refused"))
        self.client.delete = AsyncMock(side_effect=OSError("network down"))
        with pytest.raises(CacheUnavailable):
            await self.store.get("k")
        with pytest.raises(CacheUnavailable):
            await self.store.set("k", "v", ttl_seconds=60)
        with pytest.raises(CacheUnavailable):
            await self.store.delete("k")

    @pytest.mark.asyncio
    async def test_window_add_runs_one_transaction(self) -> None:
        pipe = MagicMock()
        pipe.__aenter__.return_value = pipe
        pipe.execute = AsyncMock(return_value=[2, 7, 1, True])
        self.client.pipeline = MagicMock(return_value=pipe)

        count = await self.store.window_add(
            "ratelimit:ip:1.2.3.4",
            window_start=1000,
            score=2000,
            member="2000-abc",
            ttl_seconds=300,
        )

        assert count == 7
        self.client.pipeline.assert_called_once_with(transaction=True)
        pipe.zremrangebyscore.assert_called_once_with("ratelimit:ip:1.2.3.4", "-inf", 1000)
        pipe.zcard.assert_called_once_with("ratelimit:ip:1.2.3.4")
        pipe.zadd.assert_called_once_with("ratelimit:ip:1.2.3.4", {"2000-abc": 2000})
        pipe.expire.assert_called_once_with("ratelimit:ip:1.2.3.4", 300)

    @pytest.mark.asyncio
    async def test_window_add_failure(self) -> None:
        pipe = MagicMock()
        pipe.__aenter__.return_value = pipe
        pipe.execute = AsyncMock(side_effect=RedisConnectionError("refused"))
        self.client.pipeline = MagicMock(return_value=pipe)
        with pytest.raises(CacheUnavailable):
            await self.store.window_add(
                "k", window_start=0, score=1, member="m", ttl_seconds=60
            )

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        self.client.aclose = AsyncMock()
        await self.store.close()
        self.client.aclose.assert_awaited_once()
        assert self.store._client is None
