"""Tests for TTLCache lazy expiry over MemoryStorage."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from pydantic import TypeAdapter

from fxsync.exceptions import StorageError
from fxsync.models import RateSnapshot
from fxsync.storage.backend import MemoryStorage
from fxsync.storage.ttl_cache import TTLCache

TTL_SECONDS = 1800


@pytest.fixture
def cache(storage: MemoryStorage, clock) -> TTLCache[RateSnapshot]:
    return TTLCache(storage, "rates", TTL_SECONDS, TypeAdapter(RateSnapshot), clock)


class TestExpiry:
    @pytest.mark.asyncio
    async def test_hit_just_before_ttl(self, cache, clock, usd_snapshot) -> None:
        await cache.put("USD", usd_snapshot)
        clock.advance(TTL_SECONDS - 0.001)

        assert await cache.get("USD") == usd_snapshot

    @pytest.mark.asyncio
    async def test_hit_exactly_at_ttl(self, cache, clock, usd_snapshot) -> None:
        await cache.put("USD", usd_snapshot)
        clock.advance(TTL_SECONDS)

        assert await cache.get("USD") is not None

    @pytest.mark.asyncio
    async def test_miss_after_ttl_deletes_entry(
        self, cache, clock, storage: MemoryStorage, usd_snapshot
    ) -> None:
        await cache.put("USD", usd_snapshot)
        clock.advance(TTL_SECONDS + 0.0015)

        assert await cache.get("USD") is None
        assert "USD" not in await storage.get("rates")

        # rewinding the clock does not resurrect it
        clock.advance(-TTL_SECONDS)
        assert await cache.get("USD") is None

    @pytest.mark.asyncio
    async def test_put_refreshes_capture_time(self, cache, clock, usd_snapshot) -> None:
        await cache.put("USD", usd_snapshot)
        clock.advance(TTL_SECONDS - 1)
        await cache.put("USD", usd_snapshot)
        clock.advance(TTL_SECONDS - 1)

        assert await cache.get("USD") is not None


class TestEntries:
    @pytest.mark.asyncio
    async def test_round_trip_preserves_decimals(self, cache, usd_snapshot) -> None:
        await cache.put("USD", usd_snapshot)

        cached = await cache.get("USD")

        assert cached.rates["CNY"] == Decimal("7.2")
        assert isinstance(cached.rates["CNY"], Decimal)

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, cache, usd_snapshot) -> None:
        await cache.put("USD", usd_snapshot)

        assert await cache.get("CNY") is None
        await cache.remove("USD")
        assert await cache.get("USD") is None

    @pytest.mark.asyncio
    async def test_clear_drops_namespace(self, cache, storage: MemoryStorage, usd_snapshot) -> None:
        await cache.put("USD", usd_snapshot)
        await cache.clear()

        assert await storage.get("rates") is None

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_miss(
        self, cache, storage: MemoryStorage, clock
    ) -> None:
        await storage.set(
            "rates", {"USD": {"value": {"base": 1}, "cached_at": int(clock() * 1000)}}
        )

        assert await cache.get("USD") is None
        assert await storage.get("rates") == {}

    @pytest.mark.asyncio
    async def test_garbage_blob_is_empty_cache(self, cache, storage: MemoryStorage) -> None:
        await storage.set("rates", ["not", "a", "mapping"])
        assert await cache.get("USD") is None


class TestStorageFailures:
    @pytest.mark.asyncio
    async def test_read_failure_is_miss(self, clock) -> None:
        broken = AsyncMock()
        broken.get = AsyncMock(side_effect=StorageError("disk gone"))
        cache = TTLCache(broken, "rates", TTL_SECONDS, TypeAdapter(RateSnapshot), clock)

        assert await cache.get("USD") is None

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self, clock, usd_snapshot) -> None:
        broken = AsyncMock()
        broken.get = AsyncMock(return_value=None)
        broken.set = AsyncMock(side_effect=StorageError("quota exceeded"))
        cache = TTLCache(broken, "rates", TTL_SECONDS, TypeAdapter(RateSnapshot), clock)

        await cache.put("USD", usd_snapshot)

        broken.set.assert_awaited_once()
