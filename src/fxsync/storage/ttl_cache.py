"""Time-to-live cache over the key/value storage.

Each TTLCache instance owns one storage blob (its namespace) holding
{logical key: {"value": ..., "cached_at": ms}}. Expiry is lazy: a read of
an entry older than the instance TTL deletes it and reports a miss. There
is no background eviction.

Storage failures never propagate: a failed read is a miss, a failed write
is logged and dropped, and the caller carries on with in-memory data.
"""

import time
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from fxsync.exceptions import StorageError
from fxsync.logging import get_logger
from fxsync.storage.backend import KeyValueStorage

logger = get_logger(__name__)

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Lazy-expiry cache of values of one type.

    Usage:
        rates = TTLCache(storage, "exchange_rates", ttl_seconds=1800,
                         adapter=TypeAdapter(RateSnapshot))
        await rates.put("USD", snapshot)
        cached = await rates.get("USD")  # None once 30 minutes have passed
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        namespace: str,
        ttl_seconds: float,
        adapter: TypeAdapter[T],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._namespace = namespace
        self._ttl_ms = int(ttl_seconds * 1000)
        self._adapter = adapter
        self._clock = clock

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, key: str) -> T | None:
        """Return the cached value, or None on miss, expiry or undecodable entry."""
        entries = await self._load()
        entry = entries.get(key)
        if entry is None:
            return None

        age_ms = self._now_ms() - entry["cached_at"]
        if age_ms > self._ttl_ms:
            del entries[key]
            await self._save(entries)
            logger.debug("cache_entry_expired", namespace=self._namespace, key=key, age_ms=age_ms)
            return None

        try:
            return self._adapter.validate_python(entry.get("value"))
        except ValidationError:
            logger.warning("cache_entry_corrupt", namespace=self._namespace, key=key)
            del entries[key]
            await self._save(entries)
            return None

    async def put(self, key: str, value: T) -> None:
        """Store `value` under `key` stamped with the current time."""
        entries = await self._load()
        entries[key] = {
            "value": self._adapter.dump_python(value, mode="json"),
            "cached_at": self._now_ms(),
        }
        await self._save(entries)

    async def remove(self, key: str) -> None:
        entries = await self._load()
        if entries.pop(key, None) is not None:
            await self._save(entries)

    async def clear(self) -> None:
        """Drop every entry of this cache."""
        try:
            await self._storage.remove(self._namespace)
        except StorageError as e:
            logger.error("cache_clear_failed", namespace=self._namespace, error=str(e))

    async def _load(self) -> dict[str, Any]:
        try:
            blob = await self._storage.get(self._namespace)
        except StorageError as e:
            logger.error("cache_read_failed", namespace=self._namespace, error=str(e))
            return {}
        if not isinstance(blob, dict):
            return {}
        return {
            k: v
            for k, v in blob.items()
            if isinstance(v, dict) and isinstance(v.get("cached_at"), int)
        }

    async def _save(self, entries: dict[str, Any]) -> None:
        try:
            await self._storage.set(self._namespace, entries)
        except StorageError as e:
            logger.error("cache_write_failed", namespace=self._namespace, error=str(e))
