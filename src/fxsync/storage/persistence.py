"""Typed persistence of the store's slices over a KeyValueStorage.

Maps each persisted slice (settings, history, currency list, rate cache,
chart cache) to one storage key and converts between domain objects and
JSON with pydantic TypeAdapters. Reads and writes never raise: a storage
failure or an undecodable blob is logged and the caller's default is
returned, so the engine keeps running on in-memory state.

Backup export/import also lives here. Import validates the whole payload
before anything is written.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from fxsync.config import CacheSettings
from fxsync.exceptions import InvalidBackupError, StorageError
from fxsync.logging import get_logger
from fxsync.models import (
    ConversionRecord,
    Currency,
    RateSnapshot,
    SeriesPoint,
    StorageUsage,
    UserSettings,
)
from fxsync.storage.backend import KeyValueStorage
from fxsync.storage.ttl_cache import TTLCache

logger = get_logger(__name__)

T = TypeVar("T")

SETTINGS_KEY = "currency_converter_settings"
HISTORY_KEY = "currency_converter_history"
CURRENCIES_KEY = "currency_converter_currencies"
EXCHANGE_RATES_KEY = "currency_converter_exchange_rates"
CHART_DATA_KEY = "currency_converter_chart_data"

ALL_KEYS = (SETTINGS_KEY, HISTORY_KEY, CURRENCIES_KEY, EXCHANGE_RATES_KEY, CHART_DATA_KEY)

SETTINGS_ADAPTER = TypeAdapter(UserSettings)
HISTORY_ADAPTER = TypeAdapter(list[ConversionRecord])
CURRENCIES_ADAPTER = TypeAdapter(list[Currency])
SNAPSHOT_ADAPTER = TypeAdapter(RateSnapshot)
SERIES_ADAPTER = TypeAdapter(list[SeriesPoint])


@dataclass
class Backup:
    """Validated contents of an imported backup. Absent sections are None."""

    settings: UserSettings | None = None
    history: list[ConversionRecord] | None = None
    currencies: list[Currency] | None = None


class PersistenceService:
    """Typed load/save of persisted slices plus the two TTL caches.

    Usage:
        persistence = PersistenceService(MemoryStorage(), settings.cache)
        await persistence.save_settings(UserSettings())
        snapshot = await persistence.rate_cache.get("USD")
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        cache_settings: CacheSettings,
        capacity_bytes: int = 5 * 1024 * 1024,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._capacity_bytes = capacity_bytes
        self.rate_cache: TTLCache[RateSnapshot] = TTLCache(
            storage,
            EXCHANGE_RATES_KEY,
            cache_settings.rate_ttl_seconds,
            SNAPSHOT_ADAPTER,
            clock,
        )
        self.chart_cache: TTLCache[list[SeriesPoint]] = TTLCache(
            storage,
            CHART_DATA_KEY,
            cache_settings.series_ttl_seconds,
            SERIES_ADAPTER,
            clock,
        )

    # ──────────────────────────────────────────────
    # Slices
    # ──────────────────────────────────────────────

    async def load_settings(self) -> UserSettings | None:
        return await self._read(SETTINGS_KEY, SETTINGS_ADAPTER, None)

    async def save_settings(self, settings: UserSettings) -> None:
        await self._write(SETTINGS_KEY, SETTINGS_ADAPTER, settings)

    async def load_history(self) -> list[ConversionRecord]:
        return await self._read(HISTORY_KEY, HISTORY_ADAPTER, [])

    async def save_history(self, history: list[ConversionRecord]) -> None:
        await self._write(HISTORY_KEY, HISTORY_ADAPTER, history)

    async def clear_history(self) -> None:
        await self._remove(HISTORY_KEY)

    async def load_currencies(self) -> list[Currency] | None:
        return await self._read(CURRENCIES_KEY, CURRENCIES_ADAPTER, None)

    async def save_currencies(self, currencies: list[Currency]) -> None:
        await self._write(CURRENCIES_KEY, CURRENCIES_ADAPTER, currencies)

    # ──────────────────────────────────────────────
    # Housekeeping
    # ──────────────────────────────────────────────

    async def clear_all_cache(self) -> None:
        """Drop cached rates and chart series; user data is kept."""
        await self.rate_cache.clear()
        await self.chart_cache.clear()

    async def clear_all_data(self) -> None:
        """Remove every persisted key."""
        for key in ALL_KEYS:
            await self._remove(key)

    async def storage_usage(self) -> StorageUsage:
        """Report stored bytes against the assumed capacity."""
        try:
            used = await self._storage.usage_bytes()
        except StorageError as e:
            logger.error("storage_usage_failed", error=str(e))
            return StorageUsage(used=0, total=0, percentage=0.0)
        total = self._capacity_bytes
        return StorageUsage(used=used, total=total, percentage=used / total * 100)

    # ──────────────────────────────────────────────
    # Backup
    # ──────────────────────────────────────────────

    @staticmethod
    def export_payload(backup: Backup, exported_at: datetime | None = None) -> dict[str, Any]:
        """Return {settings, history, currencies, exportedAt} as JSON-ready data."""
        exported_at = exported_at or datetime.now(UTC)
        return {
            "settings": SETTINGS_ADAPTER.dump_python(backup.settings, mode="json")
            if backup.settings is not None
            else None,
            "history": HISTORY_ADAPTER.dump_python(backup.history or [], mode="json"),
            "currencies": CURRENCIES_ADAPTER.dump_python(backup.currencies, mode="json")
            if backup.currencies is not None
            else None,
            "exportedAt": exported_at.isoformat(),
        }

    @staticmethod
    def parse_backup(data: Any) -> Backup:
        """Validate a backup payload without touching storage.

        Unknown top-level and per-record fields are ignored. Raises
        InvalidBackupError if any present section is malformed.
        """
        if not isinstance(data, dict):
            raise InvalidBackupError("backup must be a JSON object")
        try:
            return Backup(
                settings=SETTINGS_ADAPTER.validate_python(data["settings"])
                if data.get("settings") is not None
                else None,
                history=HISTORY_ADAPTER.validate_python(data["history"])
                if data.get("history") is not None
                else None,
                currencies=CURRENCIES_ADAPTER.validate_python(data["currencies"])
                if data.get("currencies") is not None
                else None,
            )
        except ValidationError as e:
            raise InvalidBackupError(f"backup is malformed: {e.error_count()} error(s)") from e

    async def write_backup(self, backup: Backup) -> None:
        """Overwrite only the slices present in `backup`."""
        if backup.settings is not None:
            await self.save_settings(backup.settings)
        if backup.history is not None:
            await self.save_history(backup.history)
        if backup.currencies is not None:
            await self.save_currencies(backup.currencies)

    # ──────────────────────────────────────────────
    # Internal
    # ──────────────────────────────────────────────

    async def _read(self, key: str, adapter: TypeAdapter[T], default: T) -> T:
        try:
            raw = await self._storage.get(key)
        except StorageError as e:
            logger.error("storage_read_failed", key=key, error=str(e))
            return default
        if raw is None:
            return default
        try:
            return adapter.validate_python(raw)
        except ValidationError as e:
            logger.error("storage_value_corrupt", key=key, errors=e.error_count())
            return default

    async def _write(self, key: str, adapter: TypeAdapter[T], value: T) -> None:
        try:
            await self._storage.set(key, adapter.dump_python(value, mode="json"))
        except StorageError as e:
            logger.error("storage_write_failed", key=key, error=str(e))

    async def _remove(self, key: str) -> None:
        try:
            await self._storage.remove(key)
        except StorageError as e:
            logger.error("storage_remove_failed", key=key, error=str(e))
